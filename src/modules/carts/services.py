"""Cart reconciliation after checkout.

Removing purchased lines from the cart happens after the order is already
committed, so it is strictly best-effort: a failure is logged and
reported, never raised.  Deleting by ``(customer, product)`` is
idempotent; a second call finds nothing left to remove.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional
from uuid import UUID

import structlog
from django.db import DatabaseError

if TYPE_CHECKING:
    from modules.carts.repositories.interfaces import ICartRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CartReconciliationReport:
    removed: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CartReconciler:
    def __init__(self, cart_repository: ICartRepository) -> None:
        self._cart_repo = cart_repository

    def clear_purchased_items(
        self, customer_id: UUID, product_ids: Iterable[UUID]
    ) -> CartReconciliationReport:
        product_ids = list(product_ids)
        log = logger.bind(customer_id=str(customer_id), product_count=len(product_ids))
        try:
            removed = self._cart_repo.delete_items(customer_id, product_ids)
        except DatabaseError as exc:
            log.warning("cart.reconciliation_failed", error=str(exc))
            return CartReconciliationReport(error=str(exc))

        log.info("cart.reconciled", removed=removed)
        return CartReconciliationReport(removed=removed)
