import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import Client

from apps.catalog.models import Product
from apps.carts.models import CartItem
from apps.carts.snapshot import get_or_create_cart


@pytest.fixture(autouse=True)
def reset_throttle_cache():
    # Throttle counters live in the default cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def make_user(db):
    User = get_user_model()
    counter = {"n": 0}

    def _make(username=None, is_staff=False):
        counter["n"] += 1
        return User.objects.create_user(
            username=username or f"user{counter['n']}", password="pw", is_staff=is_staff
        )

    return _make


@pytest.fixture
def shopper(make_user):
    return make_user("shopper")


@pytest.fixture
def staff_user(make_user):
    return make_user("staff", is_staff=True)


@pytest.fixture
def shopper_client(client, shopper):
    client.force_login(shopper)
    return client


@pytest.fixture
def staff_client(staff_user):
    c = Client()
    c.force_login(staff_user)
    return c


@pytest.fixture
def make_product(db):
    def _make(name="Widget", price_cents=1000, stock=5, is_active=True):
        return Product.objects.create(name=name, price_cents=price_cents, stock=stock, is_active=is_active)

    return _make


@pytest.fixture
def add_to_cart(db):
    def _add(user, product, quantity):
        cart = get_or_create_cart(user.pk)
        return CartItem.objects.create(cart=cart, product=product, quantity=quantity)

    return _add
