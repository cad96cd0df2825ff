"""Event handlers for Orders domain events."""

from __future__ import annotations

import structlog

from modules.orders.events import InventoryAdjustmentFailed, OrderPlaced
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderPlacedHandler(IEventHandler[OrderPlaced]):
    """Queues the confirmation e-mail."""

    def handle(self, event: OrderPlaced) -> None:
        from modules.orders.tasks import send_order_confirmation

        send_order_confirmation.delay(str(event.aggregate_id))
        logger.info(
            "order.confirmation_queued",
            order_id=str(event.aggregate_id),
            order_number=event.order_number,
        )


class InventoryAdjustmentFailedHandler(IEventHandler[InventoryAdjustmentFailed]):
    def handle(self, event: InventoryAdjustmentFailed) -> None:
        logger.error(
            "inventory.reconciliation_required",
            **event.to_log_fields(),
        )


order_placed_handler = OrderPlacedHandler()
inventory_adjustment_failed_handler = InventoryAdjustmentFailedHandler()
