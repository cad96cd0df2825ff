"""Cart repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Iterable
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.carts.models import CartItem


class ICartRepository(IRepository["CartItem"]):
    """Repository contract for persisted cart lines."""

    @abstractmethod
    def delete_items(self, customer_id: UUID, product_ids: Iterable[UUID]) -> int:
        """Delete the customer's lines for *product_ids*; return how many went."""
