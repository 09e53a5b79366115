"""API tests for the orders endpoints.

These tests exercise checkout, cancellation, admin status updates and reads
through the Django test client, asserting both the HTTP contract and the
resulting database rows.
"""

from uuid import UUID, uuid4

import pytest
from django.db import OperationalError
from django.test import Client

from apps.catalog.models import Product
from apps.orders import providers
from apps.orders.models import OrderModel

LIST_URL = "/api/orders/"
DETAIL_URL = "/api/orders/{oid}/"


def _checkout(client):
    return client.post(LIST_URL, content_type="application/json")


@pytest.fixture
def cart_ab(shopper, make_product, add_to_cart):
    a = make_product("Product A", price_cents=1000, stock=5)
    b = make_product("Product B", price_cents=2500, stock=1)
    add_to_cart(shopper, a, 2)
    add_to_cart(shopper, b, 1)
    return a, b


@pytest.mark.django_db
def test_checkout_returns_201_with_order_and_total(shopper_client, cart_ab):
    a, b = cart_ab
    r = _checkout(shopper_client)
    assert r.status_code == 201
    body = r.json()
    UUID(body["id"])
    assert body["status"] == "PENDING"
    assert body["total"] == "45.00"
    assert body["total_cents"] == 4500
    prices = {it["product_id"]: it["price"] for it in body["items"]}
    assert prices == {str(a.pk): "10.00", str(b.pk): "25.00"}

    row = OrderModel.objects.values_list("status", "total_cents").get(pk=body["id"])
    assert row == ("PENDING", 4500)


@pytest.mark.django_db
def test_checkout_empty_cart_returns_400(shopper_client):
    r = _checkout(shopper_client)
    assert r.status_code == 400
    assert r.json()["detail"] == "EMPTY_CART"


@pytest.mark.django_db
def test_checkout_insufficient_stock_names_products(shopper, shopper_client, make_product, add_to_cart):
    p = make_product("Teapot", stock=1)
    add_to_cart(shopper, p, 2)
    r = _checkout(shopper_client)
    assert r.status_code == 400
    body = r.json()
    assert body["detail"] == "INSUFFICIENT_STOCK"
    assert "Teapot" in body["message"]
    assert body["products"] == [{"product_id": str(p.pk), "name": "Teapot", "requested": 2, "available": 1}]
    assert OrderModel.objects.count() == 0


@pytest.mark.django_db
def test_checkout_requires_authentication(client):
    r = _checkout(client)
    assert r.status_code in (401, 403)


@pytest.mark.django_db
def test_checkout_store_failure_returns_503(shopper_client, cart_ab, monkeypatch):
    class Broken:
        def place_order(self, identity):
            raise OperationalError("connection refused")

    monkeypatch.setattr(providers, "get_order_service", lambda: Broken())
    r = _checkout(shopper_client)
    assert r.status_code == 503
    assert r.json()["detail"] == "STORE_UNAVAILABLE"


@pytest.mark.django_db
def test_cancel_own_order(shopper_client, cart_ab):
    a, b = cart_ab
    oid = _checkout(shopper_client).json()["id"]

    r = shopper_client.delete(DETAIL_URL.format(oid=oid))
    assert r.status_code == 200
    assert r.json()["status"] == "CANCELLED"
    assert Product.objects.get(pk=a.pk).stock == 5
    assert Product.objects.get(pk=b.pk).stock == 1

    again = shopper_client.delete(DETAIL_URL.format(oid=oid))
    assert again.status_code == 400
    assert again.json()["detail"] == "ORDER_NOT_CANCELLABLE"
    assert again.json()["status"] == "CANCELLED"


@pytest.mark.django_db
def test_cancel_someone_elses_order_is_forbidden(shopper_client, cart_ab, make_user):
    oid = _checkout(shopper_client).json()["id"]
    other = Client()
    other.force_login(make_user())
    r = other.delete(DETAIL_URL.format(oid=oid))
    assert r.status_code == 403
    assert OrderModel.objects.get(pk=oid).status == "PENDING"


@pytest.mark.django_db
def test_cancel_missing_order_returns_404(shopper_client):
    r = shopper_client.delete(DETAIL_URL.format(oid=uuid4()))
    assert r.status_code == 404
    assert r.json()["detail"] == "NOT_FOUND"


@pytest.mark.django_db
def test_admin_can_cancel_any_order(shopper_client, staff_client, cart_ab):
    oid = _checkout(shopper_client).json()["id"]
    r = staff_client.delete(DETAIL_URL.format(oid=oid))
    assert r.status_code == 200


@pytest.mark.django_db
def test_admin_updates_status(shopper_client, staff_client, cart_ab):
    oid = _checkout(shopper_client).json()["id"]
    r = staff_client.put(DETAIL_URL.format(oid=oid), data={"status": "shipped"}, content_type="application/json")
    assert r.status_code == 200
    assert r.json()["status"] == "SHIPPED"

    # Shipped orders can no longer be cancelled by the shopper
    r = shopper_client.delete(DETAIL_URL.format(oid=oid))
    assert r.status_code == 400
    assert r.json()["status"] == "SHIPPED"


@pytest.mark.django_db
def test_admin_update_on_delivered_order_is_rejected(shopper_client, staff_client, cart_ab):
    oid = _checkout(shopper_client).json()["id"]
    url = DETAIL_URL.format(oid=oid)
    assert staff_client.put(url, data={"status": "DELIVERED"}, content_type="application/json").status_code == 200

    r = staff_client.put(url, data={"status": "PROCESSING"}, content_type="application/json")
    assert r.status_code == 400
    assert r.json()["detail"] == "INVALID_STATUS_TRANSITION"
    assert r.json()["status"] == "DELIVERED"
    assert OrderModel.objects.get(pk=oid).status == "DELIVERED"


@pytest.mark.django_db
def test_status_update_by_non_admin_is_forbidden(shopper_client, cart_ab):
    oid = _checkout(shopper_client).json()["id"]
    r = shopper_client.put(DETAIL_URL.format(oid=oid), data={"status": "SHIPPED"}, content_type="application/json")
    assert r.status_code == 403
    assert OrderModel.objects.get(pk=oid).status == "PENDING"


@pytest.mark.django_db
def test_status_update_validates_payload(shopper_client, staff_client, cart_ab):
    oid = _checkout(shopper_client).json()["id"]
    r = staff_client.put(DETAIL_URL.format(oid=oid), data={"status": "LOST"}, content_type="application/json")
    assert r.status_code == 400
    assert r.json()["detail"] == "VALIDATION_ERROR"


@pytest.mark.django_db
def test_status_update_missing_order_returns_404(staff_client):
    r = staff_client.put(DETAIL_URL.format(oid=uuid4()), data={"status": "SHIPPED"}, content_type="application/json")
    assert r.status_code == 404


@pytest.mark.django_db
def test_get_order_detail_visibility(shopper_client, staff_client, cart_ab, make_user):
    oid = _checkout(shopper_client).json()["id"]
    url = DETAIL_URL.format(oid=oid)

    assert shopper_client.get(url).status_code == 200
    assert staff_client.get(url).json()["id"] == oid

    other = Client()
    other.force_login(make_user())
    assert other.get(url).status_code == 404


@pytest.mark.django_db
def test_list_orders_is_scoped_to_caller(shopper, shopper_client, staff_client, make_user, make_product, add_to_cart):
    product = make_product("Pen", price_cents=150, stock=10)
    add_to_cart(shopper, product, 1)
    assert _checkout(shopper_client).status_code == 201

    other_user = make_user()
    other = Client()
    other.force_login(other_user)
    add_to_cart(other_user, product, 2)
    assert _checkout(other).status_code == 201

    mine = shopper_client.get(LIST_URL).json()
    assert mine["count"] == 1
    assert mine["results"][0]["user_id"] == shopper.pk
    assert {"id", "order_number", "status", "total", "items"} <= set(mine["results"][0])

    everything = staff_client.get(LIST_URL, {"page_size": 1}).json()
    assert everything["count"] == 2
    assert len(everything["results"]) == 1


@pytest.mark.django_db
def test_list_orders_rejects_bad_pagination(shopper_client):
    r = shopper_client.get(LIST_URL, {"page": "abc"})
    assert r.status_code == 400
