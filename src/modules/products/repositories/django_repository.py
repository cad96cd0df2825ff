"""Django ORM implementation of the Product repository.

Error handling follows the Null Object pattern: look-ups return ``None``
or an empty list instead of raising.  Database failures propagate as
``django.db.DatabaseError`` for the caller to classify.
"""

from __future__ import annotations

from typing import Iterable, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db.models import F
from django.utils import timezone

from modules.products.models import Product
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        """Retrieve a product by primary key.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return Product.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_many(self, ids: Iterable[UUID]) -> List[Product]:
        return list(Product.objects.filter(id__in=list(ids)))

    def decrement_stock(self, id: UUID, quantity: int) -> Optional[int]:
        """Single conditional ``UPDATE ... WHERE stock_quantity >= quantity``."""
        updated = Product.objects.filter(
            id=id,
            track_quantity=True,
            stock_quantity__gte=quantity,
        ).update(
            stock_quantity=F("stock_quantity") - quantity,
            updated_at=timezone.now(),
        )
        if not updated:
            logger.warning(
                "product.stock_guard_refused",
                product_id=str(id),
                quantity=quantity,
            )
            return None

        remaining = (
            Product.objects.filter(id=id)
            .values_list("stock_quantity", flat=True)
            .first()
        )
        logger.info(
            "product.stock_decremented",
            product_id=str(id),
            quantity=quantity,
            remaining=remaining,
        )
        return remaining
