"""Unit tests for CartReconciler (best-effort, idempotent)."""

from __future__ import annotations

import logging
from unittest import mock

import pytest
from django.db import DatabaseError

from modules.carts.models import CartItem
from modules.carts.repositories.django_repository import CartDjangoRepository
from modules.carts.services import CartReconciler

pytestmark = pytest.mark.unit


@pytest.fixture()
def cart(customer, make_product):
    bought, kept = make_product(), make_product()
    CartItem.objects.create(customer=customer, product=bought, quantity=2)
    CartItem.objects.create(customer=customer, product=kept, quantity=1)
    return bought, kept


class TestCartReconciler:
    def test_removes_only_purchased_lines(self, customer, cart):
        bought, kept = cart

        report = CartReconciler(CartDjangoRepository()).clear_purchased_items(
            customer.id, [bought.id]
        )

        assert report.ok
        assert report.removed == 1
        remaining = list(
            CartItem.objects.filter(customer=customer).values_list("product_id", flat=True)
        )
        assert remaining == [kept.id]

    def test_is_idempotent(self, customer, cart):
        bought, _ = cart
        reconciler = CartReconciler(CartDjangoRepository())

        first = reconciler.clear_purchased_items(customer.id, [bought.id])
        second = reconciler.clear_purchased_items(customer.id, [bought.id])

        assert first.removed == 1
        assert second.ok
        assert second.removed == 0
        assert CartItem.objects.filter(customer=customer).count() == 1

    def test_store_failure_is_reported_not_raised(self, customer, cart, caplog):
        bought, _ = cart
        repo = CartDjangoRepository()

        with mock.patch.object(
            repo, "delete_items", side_effect=DatabaseError("carts down")
        ), caplog.at_level(logging.WARNING):
            report = CartReconciler(repo).clear_purchased_items(customer.id, [bought.id])

        assert not report.ok
        assert "carts down" in report.error
        assert CartItem.objects.filter(customer=customer).count() == 2
        assert any(
            "cart.reconciliation_failed" in r.getMessage() for r in caplog.records
        )

    def test_other_customers_cart_untouched(self, customer, cart, make_product):
        from django.contrib.auth import get_user_model

        from modules.customers.models import Customer

        bought, _ = cart
        other_user = get_user_model().objects.create_user(username="other", password="x")
        other = Customer.objects.create(user=other_user, name="Other", email="o@example.com")
        CartItem.objects.create(customer=other, product=bought, quantity=1)

        CartReconciler(CartDjangoRepository()).clear_purchased_items(
            customer.id, [bought.id]
        )

        assert CartItem.objects.filter(customer=other).count() == 1
