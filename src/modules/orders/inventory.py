"""Inventory validation and adjustment for order placement.

``InventoryValidator`` is read-only: it checks a requested cart against
a snapshot of the catalog and either rejects it or returns the priced
line items plus the stock adjustments to apply once the order commits.

``InventoryAdjuster`` applies those adjustments after the order is
committed.  Each product is decremented independently through a guarded
write, so the counter never goes negative; failures are collected into
an ``AdjustmentReport`` rather than raised, because the order they
belong to can no longer be undone by this step.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, List, Sequence, Tuple
from uuid import UUID

import structlog
from django.db import DatabaseError

from modules.orders.results import (
    EmptyCart,
    Err,
    InsufficientInventory,
    Ok,
    ProductInactive,
    ProductsNotFound,
    RejectionReason,
    Result,
)

if TYPE_CHECKING:
    from modules.orders.dtos import LineItemRequestDTO
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ValidatedLineItem:
    """A requested line priced at the catalog price of validation time."""

    product_id: UUID
    product_name: str
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class InventoryAdjustment:
    """Stock change for one tracked product.

    ``new_quantity`` is the level expected from the validation snapshot;
    the write itself is a guarded decrement by ``quantity``.
    """

    product_id: UUID
    quantity: int
    new_quantity: int


@dataclass(frozen=True)
class ValidatedCart:
    items: Tuple[ValidatedLineItem, ...]
    adjustments: Tuple[InventoryAdjustment, ...]

    @property
    def product_ids(self) -> List[UUID]:
        return [item.product_id for item in self.items]


class InventoryValidator:
    def __init__(self, product_repository: IProductRepository) -> None:
        self._product_repo = product_repository

    def validate(
        self, requested_items: Sequence[LineItemRequestDTO]
    ) -> Result[ValidatedCart, RejectionReason]:
        """Check availability of every requested line.

        Rejections, in order of precedence: ``EmptyCart``,
        ``ProductsNotFound`` (all missing ids at once), then per line in
        request order ``ProductInactive`` and ``InsufficientInventory``.

        Raises:
            DatabaseError: the product lookup itself failed.
        """
        if not requested_items:
            return Err(EmptyCart())

        requested_ids = [item.product_id for item in requested_items]
        products = {
            product.id: product for product in self._product_repo.get_many(requested_ids)
        }

        missing = tuple(
            product_id for product_id in requested_ids if product_id not in products
        )
        if missing:
            logger.info(
                "inventory.products_not_found",
                missing_ids=[str(product_id) for product_id in missing],
            )
            return Err(ProductsNotFound(missing_ids=missing))

        items: List[ValidatedLineItem] = []
        adjustments: List[InventoryAdjustment] = []
        for requested in requested_items:
            product = products[requested.product_id]

            if not product.is_active:
                return Err(
                    ProductInactive(product_id=product.id, product_name=product.name)
                )

            if product.track_quantity:
                if product.stock_quantity < requested.quantity:
                    logger.info(
                        "inventory.insufficient",
                        product_id=str(product.id),
                        available=product.stock_quantity,
                        requested=requested.quantity,
                    )
                    return Err(
                        InsufficientInventory(
                            product_id=product.id,
                            product_name=product.name,
                            available=product.stock_quantity,
                            requested=requested.quantity,
                        )
                    )
                adjustments.append(
                    InventoryAdjustment(
                        product_id=product.id,
                        quantity=requested.quantity,
                        new_quantity=product.stock_quantity - requested.quantity,
                    )
                )

            items.append(
                ValidatedLineItem(
                    product_id=product.id,
                    product_name=product.name,
                    quantity=requested.quantity,
                    unit_price=product.price,
                )
            )

        return Ok(ValidatedCart(items=tuple(items), adjustments=tuple(adjustments)))


# ---------------------------------------------------------------------------
# Adjustment
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AdjustmentFailure:
    product_id: UUID
    quantity: int
    error: str


@dataclass
class AdjustmentReport:
    applied: List[UUID] = field(default_factory=list)
    failed: List[AdjustmentFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class InventoryAdjuster:
    def __init__(self, product_repository: IProductRepository) -> None:
        self._product_repo = product_repository

    def apply_adjustments(
        self, adjustments: Iterable[InventoryAdjustment]
    ) -> AdjustmentReport:
        report = AdjustmentReport()
        for adjustment in adjustments:
            log = logger.bind(
                product_id=str(adjustment.product_id),
                quantity=adjustment.quantity,
            )
            try:
                remaining = self._product_repo.decrement_stock(
                    adjustment.product_id, adjustment.quantity
                )
            except DatabaseError as exc:
                log.error("inventory.adjustment_failed", error=str(exc))
                report.failed.append(
                    AdjustmentFailure(
                        product_id=adjustment.product_id,
                        quantity=adjustment.quantity,
                        error=str(exc),
                    )
                )
                continue

            if remaining is None:
                log.error("inventory.adjustment_refused")
                report.failed.append(
                    AdjustmentFailure(
                        product_id=adjustment.product_id,
                        quantity=adjustment.quantity,
                        error="stock guard refused the decrement",
                    )
                )
                continue

            if remaining != adjustment.new_quantity:
                # Someone changed the stock outside checkout since validation.
                log.warning(
                    "inventory.adjustment_drift",
                    expected=adjustment.new_quantity,
                    remaining=remaining,
                )
            report.applied.append(adjustment.product_id)

        return report
