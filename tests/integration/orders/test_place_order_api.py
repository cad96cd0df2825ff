"""Integration tests for the place-order endpoint.

Covers:
- Success 200: worked scenario, response envelope, camelCase order view.
- Rejections 400/404/409 with stable codes; nothing written.
- 401 without credentials or without a customer profile.
- Malformed payloads 400.
- 500 envelopes: compensation, committed-but-unreadable.
- OPTIONS preflight and CORS headers.
"""

from __future__ import annotations

import re
from decimal import Decimal
from unittest import mock
from uuid import uuid4

import pytest
from django.contrib.auth import get_user_model
from django.core import mail
from django.core.cache import cache
from django.db import DatabaseError

from modules.carts.models import CartItem
from modules.customers.models import Customer
from modules.orders.locks import CacheInventoryLocks
from modules.orders.models import Order, OrderItem
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.products.models import Product

pytestmark = pytest.mark.integration

URL = "/api/v1/orders/"
CORS_ALLOW_HEADERS = "authorization, x-client-info, apikey, content-type"


def payload(*lines, **extra):
    body = {
        "items": [
            {"productId": str(product.id), "quantity": quantity}
            for product, quantity in lines
        ]
    }
    body.update(extra)
    return body


@pytest.fixture()
def lamp(make_product):
    return make_product(price="10.00", stock=5, name="Desk Lamp")


# ---------------------------------------------------------------------------
# Success
# ---------------------------------------------------------------------------


class TestPlaceOrderSuccess:
    def test_worked_scenario(self, auth_client, customer, lamp):
        response = auth_client.post(URL, payload((lamp, 2)), format="json")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["message"] == "Order placed successfully"
        order = body["data"]["order"]
        assert order["subtotal"] == "20.00"
        assert order["taxAmount"] == "1.60"
        assert order["shippingAmount"] == "9.99"
        assert order["totalAmount"] == "31.59"
        assert order["status"] == "PENDING"
        assert order["paymentStatus"] == "PENDING"
        assert order["customerId"] == str(customer.id)
        assert re.fullmatch(r"ORD-\d{8}-[0-9A-F]{10}", order["orderNumber"])

        lamp.refresh_from_db()
        assert lamp.stock_quantity == 3

    def test_items_carry_price_snapshot_and_product_fields(self, auth_client, customer, lamp):
        response = auth_client.post(URL, payload((lamp, 2)), format="json")

        (item,) = response.json()["data"]["order"]["items"]
        assert item["productId"] == str(lamp.id)
        assert item["quantity"] == 2
        assert item["unitPrice"] == "10.00"
        assert item["lineTotal"] == "20.00"
        assert item["product"]["name"] == "Desk Lamp"
        assert item["product"]["slug"] == lamp.slug
        assert item["product"]["images"] == lamp.images

        Product.objects.filter(id=lamp.id).update(price=Decimal("99.00"))
        stored = OrderItem.objects.get(product=lamp)
        assert stored.unit_price == Decimal("10.00")

    def test_persisted_order_matches_response(self, auth_client, customer, lamp):
        response = auth_client.post(URL, payload((lamp, 2)), format="json")

        order = Order.objects.get(id=response.json()["data"]["order"]["id"])
        assert order.total_amount == Decimal("31.59")
        assert sum(i.line_total for i in order.items.all()) == order.subtotal

    def test_addresses_and_optional_fields(self, auth_client, customer, lamp, make_address):
        shipping = make_address(customer, city="Shelbyville")
        billing = make_address(customer, city="Capital City")

        response = auth_client.post(
            URL,
            payload(
                (lamp, 1),
                shippingAddressId=str(shipping.id),
                billingAddressId=str(billing.id),
                paymentMethod="card",
                notes="Gift wrap",
            ),
            format="json",
        )

        order = response.json()["data"]["order"]
        assert order["shippingAddress"]["city"] == "Shelbyville"
        assert order["billingAddress"]["city"] == "Capital City"
        assert order["shippingAddress"]["zipCode"] == "62701"
        assert order["paymentMethod"] == "card"
        assert order["notes"] == "Gift wrap"

    def test_free_shipping_over_threshold(self, auth_client, customer, make_product):
        desk = make_product(price="50.00", stock=2)

        response = auth_client.post(URL, payload((desk, 1)), format="json")

        order = response.json()["data"]["order"]
        assert order["shippingAmount"] == "0.00"
        assert order["totalAmount"] == "54.00"

    def test_purchased_cart_lines_removed(self, auth_client, customer, lamp, make_product):
        other = make_product()
        CartItem.objects.create(customer=customer, product=lamp, quantity=2)
        CartItem.objects.create(customer=customer, product=other, quantity=1)

        auth_client.post(URL, payload((lamp, 2)), format="json")

        assert list(
            CartItem.objects.filter(customer=customer).values_list("product_id", flat=True)
        ) == [other.id]

    def test_untracked_product_ignores_stock(self, auth_client, customer, make_product):
        ebook = make_product(price="5.00", stock=0, track_quantity=False)

        response = auth_client.post(URL, payload((ebook, 3)), format="json")

        assert response.status_code == 200
        ebook.refresh_from_db()
        assert ebook.stock_quantity == 0

    def test_confirmation_email_sent(self, auth_client, customer, lamp):
        response = auth_client.post(URL, payload((lamp, 1)), format="json")

        order_number = response.json()["data"]["order"]["orderNumber"]
        (message,) = mail.outbox
        assert message.to == [customer.email]
        assert order_number in message.subject


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------


class TestPlaceOrderRejections:
    def test_empty_items(self, auth_client, customer):
        response = auth_client.post(URL, {"items": []}, format="json")

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "No items in order",
            "code": "empty_cart",
        }

    def test_missing_items(self, auth_client, customer):
        response = auth_client.post(URL, {}, format="json")

        assert response.status_code == 400
        assert response.json()["code"] == "empty_cart"

    def test_insufficient_inventory(self, auth_client, customer, make_product):
        lamp = make_product(stock=1, name="Desk Lamp")

        response = auth_client.post(URL, payload((lamp, 3)), format="json")

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "insufficient_inventory"
        assert body["error"] == (
            "Insufficient inventory for Desk Lamp. Available: 1, Requested: 3"
        )
        assert Order.objects.count() == 0
        lamp.refresh_from_db()
        assert lamp.stock_quantity == 1

    def test_inactive_product(self, auth_client, customer, make_product):
        retired = make_product(is_active=False)

        response = auth_client.post(URL, payload((retired, 1)), format="json")

        assert response.status_code == 400
        assert response.json()["code"] == "product_inactive"

    def test_unknown_products(self, auth_client, customer, lamp):
        missing = uuid4()

        response = auth_client.post(
            URL,
            {
                "items": [
                    {"productId": str(lamp.id), "quantity": 1},
                    {"productId": str(missing), "quantity": 1},
                ]
            },
            format="json",
        )

        assert response.status_code == 404
        body = response.json()
        assert body["code"] == "products_not_found"
        assert str(missing) in body["error"]
        assert Order.objects.count() == 0

    def test_foreign_address(self, auth_client, customer, lamp, make_address):
        stranger = Customer.objects.create(
            user=get_user_model().objects.create_user(username="eve", password="x"),
            name="Eve",
            email="eve@example.com",
        )
        address = make_address(stranger)

        response = auth_client.post(
            URL, payload((lamp, 1), shippingAddressId=str(address.id)), format="json"
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_address"
        assert Order.objects.count() == 0

    def test_inventory_contention(self, auth_client, customer, lamp, settings):
        settings.ORDERS_INVENTORY_LOCK_WAIT_SECONDS = 0.0
        cache.add(CacheInventoryLocks.key(lamp.id), "another-checkout", timeout=30)

        response = auth_client.post(URL, payload((lamp, 1)), format="json")

        assert response.status_code == 409
        assert response.json()["code"] == "inventory_contention"
        lamp.refresh_from_db()
        assert lamp.stock_quantity == 5


# ---------------------------------------------------------------------------
# Authentication and malformed input
# ---------------------------------------------------------------------------


class TestPlaceOrderAuthAndValidation:
    def test_unauthenticated(self, api_client, lamp):
        response = api_client.post(URL, payload((lamp, 1)), format="json")

        assert response.status_code == 401
        assert response.json()["success"] is False
        assert response.json()["code"] == "not_authenticated"

    def test_invalid_bearer_token(self, api_client, lamp):
        api_client.credentials(HTTP_AUTHORIZATION="Bearer not-a-jwt")

        response = api_client.post(URL, payload((lamp, 1)), format="json")

        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_user_without_customer_profile(self, auth_client, lamp):
        response = auth_client.post(URL, payload((lamp, 1)), format="json")

        assert response.status_code == 401
        assert response.json()["code"] == "authentication_failed"

    def test_real_jwt_is_accepted(self, api_client, user, customer, lamp):
        token = api_client.post(
            "/api/v1/auth/token/",
            {"username": "shopper", "password": "testpass123"},
            format="json",
        ).json()["access"]
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

        response = api_client.post(URL, payload((lamp, 1)), format="json")

        assert response.status_code == 200

    @pytest.mark.parametrize(
        "body",
        [
            {"items": [{"productId": "nope", "quantity": 1}]},
            {"items": [{"productId": str(uuid4()), "quantity": 0}]},
            {"items": "not-a-list"},
            {"items": [{"productId": str(uuid4()), "quantity": 1}], "shippingAddressId": "x"},
        ],
    )
    def test_malformed_payload(self, auth_client, customer, body):
        response = auth_client.post(URL, body, format="json")

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_request"
        assert Order.objects.count() == 0

    def test_duplicate_product_ids(self, auth_client, customer, lamp):
        response = auth_client.post(
            URL,
            {
                "items": [
                    {"productId": str(lamp.id), "quantity": 1},
                    {"productId": str(lamp.id), "quantity": 1},
                ]
            },
            format="json",
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_request"


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestPlaceOrderFailures:
    def test_item_write_failure_is_compensated(self, auth_client, customer, lamp):
        with mock.patch.object(
            OrderDjangoRepository,
            "insert_line_items",
            side_effect=DatabaseError("items table locked"),
        ):
            response = auth_client.post(URL, payload((lamp, 2)), format="json")

        assert response.status_code == 500
        body = response.json()
        assert body == {
            "success": False,
            "error": "Failed to place order",
            "code": "order_persistence_failed",
        }
        assert Order.objects.count() == 0
        lamp.refresh_from_db()
        assert lamp.stock_quantity == 5

    def test_compensation_failure(self, auth_client, customer, lamp):
        with mock.patch.object(
            OrderDjangoRepository,
            "insert_line_items",
            side_effect=DatabaseError("items table locked"),
        ), mock.patch.object(
            OrderDjangoRepository,
            "delete_header",
            side_effect=DatabaseError("orders table locked"),
        ):
            response = auth_client.post(URL, payload((lamp, 2)), format="json")

        assert response.status_code == 500
        assert response.json()["code"] == "order_compensation_failed"
        assert "items table locked" not in response.content.decode()

    def test_committed_but_unreadable(self, auth_client, customer, lamp):
        with mock.patch.object(
            OrderDjangoRepository,
            "get_with_relations",
            side_effect=DatabaseError("replica lag"),
        ):
            response = auth_client.post(URL, payload((lamp, 2)), format="json")

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "order_committed_unreadable"
        order = Order.objects.get()
        assert body["orderNumber"] == order.order_number
        lamp.refresh_from_db()
        assert lamp.stock_quantity == 3

    def test_unexpected_exception_is_generic(self, auth_client, customer, lamp):
        with mock.patch(
            "modules.orders.views.build_order_placement",
            side_effect=RuntimeError("wiring bug"),
        ):
            response = auth_client.post(URL, payload((lamp, 1)), format="json")

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "Internal server error",
            "code": "internal_error",
        }


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


class TestPlaceOrderCors:
    def test_preflight_without_credentials(self, api_client):
        response = api_client.options(URL)

        assert response.status_code == 200
        assert response["Access-Control-Allow-Origin"] == "*"
        assert response["Access-Control-Allow-Headers"] == CORS_ALLOW_HEADERS

    def test_browser_preflight_from_any_origin(self, api_client):
        response = api_client.options(
            URL,
            HTTP_ORIGIN="https://shop.example.com",
            HTTP_ACCESS_CONTROL_REQUEST_METHOD="POST",
            HTTP_ACCESS_CONTROL_REQUEST_HEADERS="authorization, content-type",
        )

        assert response.status_code == 200
        assert response["Access-Control-Allow-Origin"] == "*"
        assert response["Access-Control-Allow-Headers"] == CORS_ALLOW_HEADERS

    def test_cross_origin_post_carries_cors_headers(self, auth_client, customer, lamp):
        response = auth_client.post(
            URL,
            payload((lamp, 1)),
            format="json",
            HTTP_ORIGIN="https://shop.example.com",
        )

        assert response.status_code == 200
        assert response["Access-Control-Allow-Origin"] == "*"

    def test_other_paths_keep_configured_origins(self, client):
        response = client.options(
            "/health",
            HTTP_ORIGIN="https://shop.example.com",
            HTTP_ACCESS_CONTROL_REQUEST_METHOD="GET",
        )

        assert "Access-Control-Allow-Origin" not in response

    def test_success_carries_cors_headers(self, auth_client, customer, lamp):
        response = auth_client.post(URL, payload((lamp, 1)), format="json")

        assert response["Access-Control-Allow-Origin"] == "*"
        assert response["Access-Control-Allow-Headers"] == CORS_ALLOW_HEADERS

    def test_errors_carry_cors_headers(self, api_client):
        response = api_client.post(URL, {}, format="json")

        assert response.status_code == 401
        assert response["Access-Control-Allow-Origin"] == "*"
