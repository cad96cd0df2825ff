"""Order and OrderItem models.

Rules implemented here:
- Order number auto-generated as a human-readable identifier, unique.
- Customer FK uses PROTECT to preserve financial history.
- OrderItem snapshots the product price at purchase time (``unit_price``).
- OrderItem ``line_total`` is always ``quantity * unit_price``.
- Items are owned by their order (CASCADE): deleting a header during
  compensation takes any stray items with it.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

from django.core.validators import MinValueValidator
from django.db import IntegrityError, models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import (
    ORDER_NUMBER_MAX_RETRIES,
    OrderStatus,
    PaymentStatus,
)

_MONEY = {"max_digits": 10, "decimal_places": 2}


class Order(BaseModel):
    """Order aggregate root.

    ``order_number`` (``ORD-YYYYMMDD-XXXXXXXXXX``) is what customers and
    support staff quote; the UUIDv7 ``id`` is used for internal references.
    ``status`` and ``payment_status`` start at ``PENDING`` and are moved on
    by fulfillment and payment processes outside checkout.
    """

    order_number = models.CharField(max_length=24, unique=True, editable=False)
    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    subtotal = models.DecimalField(**_MONEY, default=Decimal("0.00"))
    tax_amount = models.DecimalField(**_MONEY, default=Decimal("0.00"))
    shipping_amount = models.DecimalField(**_MONEY, default=Decimal("0.00"))
    total_amount = models.DecimalField(**_MONEY, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="USD")
    payment_method = models.CharField(max_length=50, blank=True, default="")
    shipping_address = models.ForeignKey(
        "customers.Address",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    billing_address = models.ForeignKey(
        "customers.Address",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(subtotal__gte=0)
                & models.Q(tax_amount__gte=0)
                & models.Q(shipping_amount__gte=0)
                & models.Q(total_amount__gte=0),
                name="orders_amounts_not_negative",
            ),
        ]

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDD-XXXXXXXXXX``.

        40 random bits per day; the unique constraint is the final word.
        """
        now = timezone.now()
        suffix = secrets.token_hex(5).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            for _ in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise IntegrityError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Line item linking an Order to a Product.

    ``unit_price`` is a **snapshot** of the product price at validation
    time; later catalog price changes never touch it.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    quantity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price = models.DecimalField(**_MONEY)
    line_total = models.DecimalField(**_MONEY)

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.line_total = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product_id} x{self.quantity} (${self.line_total})"
