import pytest

from apps.carts.models import Cart, CartItem
from apps.carts.snapshot import clear_cart, read_cart_snapshot
from apps.catalog.models import Product


@pytest.mark.django_db
def test_missing_cart_is_created_empty(shopper):
    assert not Cart.objects.filter(user=shopper).exists()
    snapshot = read_cart_snapshot(shopper.pk)
    assert snapshot.is_empty
    assert snapshot.total_cents == 0
    assert Cart.objects.filter(user=shopper, pk=snapshot.cart_id).exists()

    # Second read reuses the same cart
    assert read_cart_snapshot(shopper.pk).cart_id == snapshot.cart_id


@pytest.mark.django_db
def test_snapshot_reflects_live_product_rows(shopper, make_product, add_to_cart):
    p = make_product("Lamp", price_cents=1250, stock=7)
    add_to_cart(shopper, p, 2)
    Product.objects.filter(pk=p.pk).update(price_cents=1300, stock=4, is_active=False)

    (line,) = read_cart_snapshot(shopper.pk).lines
    assert line.product_id == p.pk
    assert line.product_name == "Lamp"
    assert line.quantity == 2
    assert line.unit_price_cents == 1300
    assert line.stock == 4
    assert line.is_active is False
    assert line.subtotal_cents == 2600


@pytest.mark.django_db
def test_locked_read_returns_lines_in_product_order(shopper, make_product, add_to_cart):
    products = [make_product(f"P{i}", price_cents=100 * (i + 1), stock=10) for i in range(4)]
    for p in products:
        add_to_cart(shopper, p, 1)

    snapshot = read_cart_snapshot(shopper.pk, lock=True)
    ids = [line.product_id for line in snapshot.lines]
    assert ids == sorted(ids)
    assert snapshot.total_cents == 100 + 200 + 300 + 400


@pytest.mark.django_db
def test_clear_cart_removes_only_that_cart(shopper, make_user, make_product, add_to_cart):
    p = make_product()
    other = make_user()
    add_to_cart(shopper, p, 1)
    add_to_cart(other, p, 1)

    removed = clear_cart(read_cart_snapshot(shopper.pk).cart_id)
    assert removed == 1
    assert read_cart_snapshot(shopper.pk).is_empty
    assert CartItem.objects.filter(cart__user=other).count() == 1
