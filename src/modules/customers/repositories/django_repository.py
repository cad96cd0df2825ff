"""Django ORM implementation of the Address repository."""

from __future__ import annotations

from typing import Iterable, Optional, Set
from uuid import UUID

from django.core.exceptions import ValidationError

from modules.customers.models import Address
from modules.customers.repositories.interfaces import IAddressRepository


class AddressDjangoRepository(IAddressRepository):
    def get_by_id(self, id: str) -> Optional[Address]:
        try:
            return Address.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def owned_ids(self, customer_id: UUID, ids: Iterable[UUID]) -> Set[UUID]:
        return set(
            Address.objects.filter(
                customer_id=customer_id, id__in=list(ids)
            ).values_list("id", flat=True)
        )
