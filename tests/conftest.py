from decimal import Decimal
from uuid import uuid4

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from modules.customers.models import Address, Customer
from modules.products.models import Product

User = get_user_model()


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Inventory locks live in the cache; never leak them between tests."""
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def user():
    return User.objects.create_user(username="shopper", password="testpass123")


@pytest.fixture()
def customer(user):
    return Customer.objects.create(
        user=user, name="Ada Shopper", email="ada@example.com", is_active=True
    )


@pytest.fixture()
def auth_client(api_client, user):
    """APIClient with a force-authenticated Django user."""
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture()
def make_product():
    """Factory for persisted catalog products."""

    def _make(
        price="10.00",
        stock=5,
        track_quantity=True,
        is_active=True,
        name=None,
    ) -> Product:
        suffix = uuid4().hex[:8]
        return Product.objects.create(
            sku=f"SKU-{suffix}",
            name=name or f"Widget {suffix}",
            slug=f"widget-{suffix}",
            price=Decimal(price),
            stock_quantity=stock,
            track_quantity=track_quantity,
            is_active=is_active,
            images=[f"https://cdn.example.com/{suffix}.png"],
        )

    return _make


@pytest.fixture()
def make_address():
    def _make(customer, **overrides) -> Address:
        data = {
            "first_name": "Ada",
            "last_name": "Shopper",
            "address1": "1 Market Street",
            "city": "Springfield",
            "province": "IL",
            "country": "US",
            "zip_code": "62701",
        }
        data.update(overrides)
        return Address.objects.create(customer=customer, **data)

    return _make
