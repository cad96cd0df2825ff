"""Product read model used by checkout.

The catalog subsystem owns products; checkout reads them and, for
products whose stock is tracked, decrements ``stock_quantity``.

Rules enforced at the database level:
- Price is never negative.
- Stock quantity is never negative (``PositiveIntegerField`` + check).
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel


class Product(BaseModel):
    """Product as seen by checkout.

    ``track_quantity=False`` marks always-available items (digital goods,
    made-to-order): their ``stock_quantity`` is informational only and is
    never checked nor decremented.
    """

    sku = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    stock_quantity = models.PositiveIntegerField(default=0)
    track_quantity = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)
    images = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = "products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["is_active"], name="products_active_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name="products_price_not_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(stock_quantity__gte=0),
                name="products_stock_not_negative",
            ),
        ]

    def save(self, *args, **kwargs) -> None:
        if self.sku:
            self.sku = self.sku.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"
