"""Order placement exceptions.

Business outcomes travel as ``results.Ok`` / ``results.Err`` values;
these exceptions cover the two conditions that interrupt control flow
instead: lock acquisition giving up, and a programming error in the
placement state machine.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID


class InventoryLockTimeout(Exception):
    """Exclusive access to some products' stock could not be obtained in time."""

    def __init__(self, product_ids: Iterable[UUID]) -> None:
        self.product_ids = tuple(product_ids)
        super().__init__(
            "Timed out waiting for inventory locks on "
            + ", ".join(str(product_id) for product_id in self.product_ids)
        )


class InvalidPlacementTransition(RuntimeError):
    """The placement saga attempted a transition its state machine forbids."""
