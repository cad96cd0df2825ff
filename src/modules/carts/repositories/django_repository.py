"""Django ORM implementation of the Cart repository."""

from __future__ import annotations

from typing import Iterable, Optional
from uuid import UUID

from django.core.exceptions import ValidationError

from modules.carts.models import CartItem
from modules.carts.repositories.interfaces import ICartRepository


class CartDjangoRepository(ICartRepository):
    def get_by_id(self, id: str) -> Optional[CartItem]:
        try:
            return CartItem.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def delete_items(self, customer_id: UUID, product_ids: Iterable[UUID]) -> int:
        deleted, _ = CartItem.objects.filter(
            customer_id=customer_id, product_id__in=list(product_ids)
        ).delete()
        return deleted
