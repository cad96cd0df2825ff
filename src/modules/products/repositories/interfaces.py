"""Product repository interface.

Checkout needs two things from the catalog store: a batch read of the
products referenced by a cart, and a guarded stock decrement.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Iterable, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def get_many(self, ids: Iterable[UUID]) -> List[Product]:
        """Fetch every product whose id is in *ids* in one round trip.

        Missing ids are simply absent from the result.
        """

    @abstractmethod
    def decrement_stock(self, id: UUID, quantity: int) -> Optional[int]:
        """Atomically subtract *quantity* from a tracked product's stock.

        The write only happens if the stored stock is still ``>= quantity``.
        Returns the new stock level, or ``None`` when the guard refused the
        write (product missing, untracked, or not enough stock).
        """
