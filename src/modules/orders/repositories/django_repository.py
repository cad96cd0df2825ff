"""Django ORM implementation of the Order repository.

Each write runs in its own ``transaction.atomic()`` block: the header and
the line items are committed separately, and the placement saga owns the
compensation between them.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from modules.orders.models import Order, OrderItem
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @transaction.atomic
    def insert_header(self, data: Dict[str, Any]) -> Order:
        order = Order(**data)
        order.save()
        logger.info(
            "order.header_inserted",
            order_id=str(order.id),
            order_number=order.order_number,
        )
        return order

    @transaction.atomic
    def insert_line_items(
        self, order_id: UUID, items: List[Dict[str, Any]]
    ) -> List[OrderItem]:
        # bulk_create skips Model.save(), so line_total is filled in here.
        rows = [
            OrderItem(
                order_id=order_id,
                product_id=item["product_id"],
                quantity=item["quantity"],
                unit_price=item["unit_price"],
                line_total=item["quantity"] * item["unit_price"],
            )
            for item in items
        ]
        created = OrderItem.objects.bulk_create(rows)
        logger.info(
            "order.items_inserted", order_id=str(order_id), item_count=len(created)
        )
        return created

    @transaction.atomic
    def delete_header(self, order_id: UUID) -> None:
        deleted, _ = Order.objects.filter(id=order_id).delete()
        logger.info("order.header_deleted", order_id=str(order_id), rows=deleted)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Returns ``None`` for non-existent or invalid IDs."""
        try:
            return Order.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_with_relations(self, order_id: UUID) -> Optional[Order]:
        """``select_related`` for the addresses, ``prefetch_related`` for
        items and their products (prevents N+1)."""
        return (
            Order.objects.select_related("shipping_address", "billing_address")
            .prefetch_related("items__product")
            .filter(id=order_id)
            .first()
        )
