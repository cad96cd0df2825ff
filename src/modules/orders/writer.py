"""Two-step order persistence with a single compensating action.

1. Insert the order header (``PENDING`` / ``PENDING``).
2. Insert all line items in one batch.

If step 2 fails the header is deleted again, so an order never exists
without line items.  If that delete fails too, the header is orphaned:
the writer logs ``order.compensation_failed`` at error level with
everything an operator needs and returns ``CompensationFailed``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence, Union
from uuid import UUID

import structlog
from django.conf import settings
from django.db import DatabaseError

from modules.orders.results import (
    CompensationFailed,
    Err,
    Ok,
    PersistenceError,
    Result,
)

if TYPE_CHECKING:
    from modules.orders.inventory import ValidatedLineItem
    from modules.orders.models import Order
    from modules.orders.pricing import PricingResult
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

WriteFailure = Union[PersistenceError, CompensationFailed]


class OrderWriter:
    def __init__(self, order_repository: IOrderRepository) -> None:
        self._order_repo = order_repository

    def create_order(
        self,
        customer_id: UUID,
        items: Sequence[ValidatedLineItem],
        pricing: PricingResult,
        shipping_address_id: Optional[UUID] = None,
        billing_address_id: Optional[UUID] = None,
        payment_method: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Result[Order, WriteFailure]:
        log = logger.bind(customer_id=str(customer_id), item_count=len(items))

        try:
            order = self._order_repo.insert_header(
                {
                    "customer_id": customer_id,
                    "subtotal": pricing.subtotal,
                    "tax_amount": pricing.tax_amount,
                    "shipping_amount": pricing.shipping_amount,
                    "total_amount": pricing.total_amount,
                    "currency": settings.ORDERS_CURRENCY,
                    "shipping_address_id": shipping_address_id,
                    "billing_address_id": billing_address_id,
                    "payment_method": payment_method or "",
                    "notes": notes or "",
                }
            )
        except DatabaseError as exc:
            log.error("order.header_insert_failed", error=str(exc))
            return Err(PersistenceError(step="order", detail=str(exc)))

        log = log.bind(order_id=str(order.id), order_number=order.order_number)

        try:
            self._order_repo.insert_line_items(
                order.id,
                [
                    {
                        "product_id": item.product_id,
                        "quantity": item.quantity,
                        "unit_price": item.unit_price,
                    }
                    for item in items
                ],
            )
        except DatabaseError as exc:
            log.warning("order.items_insert_failed", error=str(exc))
            return self._compensate(order, str(exc), log)

        log.info("order.committed", total_amount=str(order.total_amount))
        return Ok(order)

    def _compensate(self, order: Order, detail: str, log) -> Err[WriteFailure]:
        try:
            self._order_repo.delete_header(order.id)
        except DatabaseError as exc:
            log.error(
                "order.compensation_failed",
                error=detail,
                compensation_error=str(exc),
            )
            return Err(
                CompensationFailed(
                    order_id=order.id,
                    order_number=order.order_number,
                    detail=detail,
                    compensation_detail=str(exc),
                )
            )

        log.info("order.compensated")
        return Err(PersistenceError(step="order_items", detail=detail, compensated=True))
