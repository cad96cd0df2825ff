"""Address repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Iterable, Set
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.customers.models import Address


class IAddressRepository(IRepository["Address"]):
    """Repository contract for customer addresses."""

    @abstractmethod
    def owned_ids(self, customer_id: UUID, ids: Iterable[UUID]) -> Set[UUID]:
        """Return the subset of *ids* that belong to *customer_id*."""
