"""Tagged results and the enumerable reasons an order placement can stop.

Every step of the placement saga returns ``Ok(value)`` or ``Err(reason)``.
Reasons are frozen dataclasses split in two families:

- ``RejectionReason``: the cart itself is unacceptable.  Nothing was
  written; the customer can fix the cart and resubmit.
- ``FailureReason``: the system failed.  ``committed`` tells whether the
  order exists anyway (it did get persisted, only the response could not
  be built).

Each reason carries a stable ``code``, the HTTP status it maps to and a
``message`` that is safe to show to the customer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Generic, Optional, Tuple, TypeVar, Union
from uuid import UUID

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    @property
    def is_ok(self) -> bool:
        return False


Result = Union[Ok[T], Err[E]]


# ---------------------------------------------------------------------------
# Rejections (HTTP 4xx, nothing written)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RejectionReason:
    code: ClassVar[str] = "rejected"
    http_status: ClassVar[int] = 400

    @property
    def message(self) -> str:
        return "The order was rejected."


@dataclass(frozen=True)
class EmptyCart(RejectionReason):
    code: ClassVar[str] = "empty_cart"

    @property
    def message(self) -> str:
        return "No items in order"


@dataclass(frozen=True)
class ProductsNotFound(RejectionReason):
    code: ClassVar[str] = "products_not_found"
    http_status: ClassVar[int] = 404

    missing_ids: Tuple[UUID, ...] = ()

    @property
    def message(self) -> str:
        ids = ", ".join(str(product_id) for product_id in self.missing_ids)
        return f"Some products not found: {ids}"


@dataclass(frozen=True)
class ProductInactive(RejectionReason):
    code: ClassVar[str] = "product_inactive"

    product_id: Optional[UUID] = None
    product_name: str = ""

    @property
    def message(self) -> str:
        return f"Product not available: {self.product_name or self.product_id}"


@dataclass(frozen=True)
class InsufficientInventory(RejectionReason):
    code: ClassVar[str] = "insufficient_inventory"

    product_id: Optional[UUID] = None
    product_name: str = ""
    available: int = 0
    requested: int = 0

    @property
    def message(self) -> str:
        return (
            f"Insufficient inventory for {self.product_name or self.product_id}. "
            f"Available: {self.available}, Requested: {self.requested}"
        )


@dataclass(frozen=True)
class InvalidAddress(RejectionReason):
    code: ClassVar[str] = "invalid_address"

    address_id: Optional[UUID] = None

    @property
    def message(self) -> str:
        return f"Address not found: {self.address_id}"


@dataclass(frozen=True)
class InventoryContention(RejectionReason):
    """Another checkout held the stock of these products for too long."""

    code: ClassVar[str] = "inventory_contention"
    http_status: ClassVar[int] = 409

    product_ids: Tuple[UUID, ...] = ()

    @property
    def message(self) -> str:
        return "Some products are being purchased by another customer, please retry"


# ---------------------------------------------------------------------------
# Failures (HTTP 5xx)
# ---------------------------------------------------------------------------

GENERIC_FAILURE_MESSAGE = "Failed to place order"


@dataclass(frozen=True)
class FailureReason:
    code: ClassVar[str] = "placement_failed"
    http_status: ClassVar[int] = 500
    committed: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return GENERIC_FAILURE_MESSAGE


@dataclass(frozen=True)
class PersistenceError(FailureReason):
    """A store operation failed before the order was committed.

    ``step`` names the write or read that failed; ``compensated`` is set
    when an order header had been inserted and was deleted again.
    """

    code: ClassVar[str] = "order_persistence_failed"

    step: str = ""
    detail: str = ""
    compensated: bool = False


@dataclass(frozen=True)
class CompensationFailed(FailureReason):
    """Line items failed and the header delete failed too.

    The header with id ``order_id`` is orphaned and must be reconciled by
    an operator.
    """

    code: ClassVar[str] = "order_compensation_failed"

    order_id: Optional[UUID] = None
    order_number: str = ""
    detail: str = ""
    compensation_detail: str = ""


@dataclass(frozen=True)
class PlacementDeadlineExceeded(FailureReason):
    """The request budget ran out before anything was written."""

    code: ClassVar[str] = "placement_timeout"

    elapsed_seconds: float = 0.0


@dataclass(frozen=True)
class AssemblyFailure(FailureReason):
    """The order is committed but could not be read back in time.

    Kept distinct from genuine placement failures: the customer's order
    exists and must not be placed a second time.
    """

    code: ClassVar[str] = "order_committed_unreadable"
    committed: ClassVar[bool] = True

    order_id: Optional[UUID] = None
    order_number: str = ""
    detail: str = ""

    @property
    def message(self) -> str:
        return (
            "Your order was placed but its details could not be loaded. "
            "Please check your order history before trying again."
        )


@dataclass(frozen=True)
class OrderNotFound:
    order_id: UUID
