"""Cart snapshot reader.

Loads a user's cart together with the *current* state of every product it
references (price, stock, active flag). The snapshot is a plain, immutable
value so the checkout service can validate and price it without touching the
ORM again.

When ``lock=True`` the cart row and the referenced product rows are read with
``SELECT ... FOR UPDATE`` (products in primary-key order so concurrent
checkouts always acquire locks in the same order). Locks are only meaningful
inside an enclosing ``transaction.atomic`` block.
"""

import uuid
from dataclasses import dataclass, field
from typing import List

from apps.catalog.models import Product
from .models import Cart, CartItem


@dataclass(frozen=True)
class CartLine:
    """One cart item joined with its live product row.

    Attributes:
        product_id: Product primary key.
        product_name: Product name, used in error messages.
        quantity: Requested units.
        unit_price_cents: Product price at read time (becomes the frozen
            order item price at checkout).
        stock: Product stock at read time (advisory only).
        is_active: Whether the product is still sellable.
    """

    product_id: uuid.UUID
    product_name: str
    quantity: int
    unit_price_cents: int
    stock: int
    is_active: bool = True

    @property
    def subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity


@dataclass(frozen=True)
class CartSnapshot:
    cart_id: uuid.UUID
    user_id: int
    lines: List[CartLine] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def total_cents(self) -> int:
        return sum(line.subtotal_cents for line in self.lines)


def get_or_create_cart(user_id: int) -> Cart:
    cart, _ = Cart.objects.get_or_create(user_id=user_id)
    return cart


def read_cart_snapshot(user_id: int, *, lock: bool = False) -> CartSnapshot:
    """Return the user's cart with live product data.

    A missing cart is created empty; an empty cart is returned as a snapshot
    whose ``is_empty`` is True, never as an error.

    Args:
        user_id: Owner of the cart.
        lock: Lock the cart and product rows for update.

    Returns:
        CartSnapshot with lines ordered by product id.
    """
    cart = get_or_create_cart(user_id)
    if lock:
        cart = Cart.objects.select_for_update().get(pk=cart.pk)

    quantities = dict(CartItem.objects.filter(cart=cart).values_list("product_id", "quantity"))
    products = Product.objects.filter(pk__in=list(quantities)).order_by("pk")
    if lock:
        products = products.select_for_update()

    lines = [
        CartLine(
            product_id=p.pk,
            product_name=p.name,
            quantity=quantities[p.pk],
            unit_price_cents=p.price_cents,
            stock=p.stock,
            is_active=p.is_active,
        )
        for p in products
    ]
    return CartSnapshot(cart_id=cart.pk, user_id=user_id, lines=lines)


def clear_cart(cart_id: uuid.UUID) -> int:
    """Delete every item of a cart and return how many were removed."""
    deleted, _ = CartItem.objects.filter(cart_id=cart_id).delete()
    return deleted
