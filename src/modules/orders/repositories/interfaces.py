"""Order repository interface.

Extends ``IRepository[Order]`` with the writes the placement saga needs.
Header and line items are deliberately two separate operations so the
saga can compensate a header whose items failed.

Store failures surface as ``django.db.DatabaseError``.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderItem


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root."""

    @abstractmethod
    def insert_header(self, data: Dict[str, Any]) -> Order:
        """Insert the order row only.

        ``data`` holds the Order field values (``customer_id``, amounts,
        address ids, ``payment_method``, ``notes``).  The order number is
        generated on insert.
        """

    @abstractmethod
    def insert_line_items(
        self, order_id: UUID, items: List[Dict[str, Any]]
    ) -> List[OrderItem]:
        """Insert all line items of *order_id* in one batch.

        Each dict has ``product_id``, ``quantity`` and ``unit_price``.
        """

    @abstractmethod
    def delete_header(self, order_id: UUID) -> None:
        """Remove an order header (compensation)."""

    @abstractmethod
    def get_with_relations(self, order_id: UUID) -> Optional[Order]:
        """Read an order with its items, their products and both addresses."""
