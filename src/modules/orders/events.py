"""Domain events for the Orders bounded context.

Published on the in-process event bus after the work they describe is
committed; ``aggregate_id`` is always the order id.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from uuid import UUID

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderPlaced(DomainEvent):
    """Raised when a placement reaches ``DONE``."""

    order_number: str = ""
    customer_id: Optional[UUID] = None
    total_amount: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class InventoryAdjustmentFailed(DomainEvent):
    """Raised per product whose stock could not be decremented.

    The order stays valid; the stock counter of ``product_id`` is now
    higher than it should be by ``quantity``.
    """

    product_id: Optional[UUID] = None
    quantity: int = 0
    error: str = ""
