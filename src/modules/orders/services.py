"""Order placement service layer (Use Case).

``OrderPlacementOrchestrator.place_order`` turns a customer's cart into a
committed order by running an explicit state machine:

    VALIDATING -> PRICING -> WRITING -> ADJUSTING_INVENTORY
        -> RECONCILING_CART -> ASSEMBLING -> DONE

with ``REJECTED`` (the cart is unacceptable, nothing written) and
``FAILED`` (the system failed) as the other terminal states.

Concurrency: every requested product is locked, in sorted id order, from
before validation until the stock adjustments are applied, so the
availability seen by the validator cannot be consumed by another checkout
before this one decrements it.  The decrement itself is also guarded in
the database.  Contention beyond the wait budget is rejected, never
retried silently.

Once the order is committed nothing is rolled back: inventory and cart
steps report their failures instead of raising, and a failure to read
the order back is reported with its own ``order_committed_unreadable``
code so the client does not place it twice.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, List, Optional, Tuple, Union
from uuid import UUID

import structlog
from django.conf import settings
from django.db import DatabaseError

from modules.orders.constants import (
    COMMITTED_PLACEMENT_STATES,
    PLACEMENT_TRANSITIONS,
    PlacementState,
)
from modules.orders.events import InventoryAdjustmentFailed, OrderPlaced
from modules.orders.exceptions import InvalidPlacementTransition, InventoryLockTimeout
from modules.orders.results import (
    AssemblyFailure,
    FailureReason,
    InvalidAddress,
    InventoryContention,
    PersistenceError,
    PlacementDeadlineExceeded,
    RejectionReason,
)

if TYPE_CHECKING:
    from modules.carts.services import CartReconciler, CartReconciliationReport
    from modules.customers.repositories.interfaces import IAddressRepository
    from modules.orders.assembler import OrderAssembler, OrderView
    from modules.orders.dtos import PlaceOrderDTO
    from modules.orders.inventory import (
        AdjustmentReport,
        InventoryAdjuster,
        InventoryValidator,
        ValidatedCart,
    )
    from modules.orders.locks import InventoryLocks
    from modules.orders.models import Order
    from modules.orders.pricing import PricingEngine
    from modules.orders.writer import OrderWriter
    from shared.domain.bus import IEventBus

logger = structlog.get_logger(__name__)


@dataclass
class PlacementOutcome:
    """Everything a placement run produced, whatever state it ended in."""

    state: PlacementState = PlacementState.VALIDATING
    history: List[PlacementState] = field(
        default_factory=lambda: [PlacementState.VALIDATING]
    )
    order_id: Optional[UUID] = None
    order_number: Optional[str] = None
    view: Optional[OrderView] = None
    rejection: Optional[RejectionReason] = None
    failure: Optional[FailureReason] = None
    adjustment_report: Optional[AdjustmentReport] = None
    cart_report: Optional[CartReconciliationReport] = None

    @property
    def succeeded(self) -> bool:
        return self.state is PlacementState.DONE

    @property
    def committed(self) -> bool:
        """True when the order exists in the store, even if the run failed."""
        return self.order_id is not None and (
            self.state in COMMITTED_PLACEMENT_STATES
            or (self.failure is not None and self.failure.committed)
        )

    @property
    def reason(self) -> Optional[Union[RejectionReason, FailureReason]]:
        return self.rejection or self.failure

    def transition(self, target: PlacementState) -> None:
        if target not in PLACEMENT_TRANSITIONS[self.state]:
            raise InvalidPlacementTransition(
                f"Cannot move placement from {self.state.value} to {target.value}."
            )
        self.state = target
        self.history.append(target)


class OrderPlacementOrchestrator:
    """Application service for the place-order use case.

    Receives every collaborator via constructor injection (DIP); see
    ``build_order_placement`` for the production wiring.
    """

    def __init__(
        self,
        validator: InventoryValidator,
        pricing_engine: PricingEngine,
        writer: OrderWriter,
        adjuster: InventoryAdjuster,
        cart_reconciler: CartReconciler,
        assembler: OrderAssembler,
        address_repository: IAddressRepository,
        locks: InventoryLocks,
        event_bus: IEventBus,
        deadline_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._validator = validator
        self._pricing = pricing_engine
        self._writer = writer
        self._adjuster = adjuster
        self._cart = cart_reconciler
        self._assembler = assembler
        self._address_repo = address_repository
        self._locks = locks
        self._event_bus = event_bus
        self._deadline_seconds = (
            deadline_seconds
            if deadline_seconds is not None
            else float(settings.ORDERS_PLACEMENT_DEADLINE_SECONDS)
        )
        self._clock = clock

    # ------------------------------------------------------------------
    # Command
    # ------------------------------------------------------------------

    def place_order(self, customer_id: UUID, dto: PlaceOrderDTO) -> PlacementOutcome:
        started = self._clock()
        outcome = PlacementOutcome()
        log = logger.bind(customer_id=str(customer_id), item_count=len(dto.items))
        log.info("order.placement_started")

        if dto.address_ids:
            try:
                owned = self._address_repo.owned_ids(customer_id, dto.address_ids)
            except DatabaseError as exc:
                return self._fail(
                    outcome, PersistenceError(step="address_lookup", detail=str(exc)), log
                )
            foreign = [a for a in dto.address_ids if a not in owned]
            if foreign:
                return self._reject(outcome, InvalidAddress(address_id=foreign[0]), log)

        try:
            with self._locks.hold(dto.product_ids):
                written = self._validate_and_commit(
                    customer_id, dto, outcome, started, log
                )
        except InventoryLockTimeout as exc:
            return self._reject(
                outcome, InventoryContention(product_ids=exc.product_ids), log
            )

        if written is None:
            return outcome
        cart, order = written
        log = log.bind(order_id=str(order.id), order_number=order.order_number)

        self._move(outcome, PlacementState.RECONCILING_CART, log)
        outcome.cart_report = self._cart.clear_purchased_items(
            customer_id, cart.product_ids
        )

        self._move(outcome, PlacementState.ASSEMBLING, log)
        return self._assemble(outcome, order, started, log)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _validate_and_commit(
        self,
        customer_id: UUID,
        dto: PlaceOrderDTO,
        outcome: PlacementOutcome,
        started: float,
        log,
    ) -> Optional[Tuple[ValidatedCart, Order]]:
        """VALIDATING through ADJUSTING_INVENTORY, run under the inventory locks.

        Returns ``None`` when the run ended here (rejected or failed).
        """
        try:
            validation = self._validator.validate(dto.items)
        except DatabaseError as exc:
            self._fail(outcome, PersistenceError(step="product_lookup", detail=str(exc)), log)
            return None
        if not validation.is_ok:
            self._reject(outcome, validation.error, log)
            return None
        cart = validation.value

        self._move(outcome, PlacementState.PRICING, log)
        pricing = self._pricing.price(cart.items)

        elapsed = self._clock() - started
        if elapsed > self._deadline_seconds:
            self._fail(outcome, PlacementDeadlineExceeded(elapsed_seconds=elapsed), log)
            return None

        self._move(outcome, PlacementState.WRITING, log)
        written = self._writer.create_order(
            customer_id,
            cart.items,
            pricing,
            shipping_address_id=dto.shipping_address_id,
            billing_address_id=dto.billing_address_id,
            payment_method=dto.payment_method,
            notes=dto.notes,
        )
        if not written.is_ok:
            self._fail(outcome, written.error, log)
            return None
        order = written.value
        outcome.order_id = order.id
        outcome.order_number = order.order_number

        self._move(outcome, PlacementState.ADJUSTING_INVENTORY, log)
        report = self._adjuster.apply_adjustments(cart.adjustments)
        outcome.adjustment_report = report
        for failure in report.failed:
            self._event_bus.publish(
                InventoryAdjustmentFailed(
                    aggregate_id=order.id,
                    product_id=failure.product_id,
                    quantity=failure.quantity,
                    error=failure.error,
                )
            )
        return cart, order

    def _assemble(
        self, outcome: PlacementOutcome, order: Order, started: float, log
    ) -> PlacementOutcome:
        elapsed = self._clock() - started
        if elapsed > self._deadline_seconds:
            return self._fail(
                outcome,
                AssemblyFailure(
                    order_id=order.id,
                    order_number=order.order_number,
                    detail=f"deadline exceeded after {elapsed:.3f}s",
                ),
                log,
            )

        try:
            assembled = self._assembler.assemble(order.id)
        except DatabaseError as exc:
            return self._fail(
                outcome,
                AssemblyFailure(
                    order_id=order.id, order_number=order.order_number, detail=str(exc)
                ),
                log,
            )
        if not assembled.is_ok:
            return self._fail(
                outcome,
                AssemblyFailure(
                    order_id=order.id,
                    order_number=order.order_number,
                    detail="order not found on read-back",
                ),
                log,
            )

        outcome.view = assembled.value
        self._move(outcome, PlacementState.DONE, log)
        log.info(
            "order.placed",
            total_amount=str(order.total_amount),
            adjustments_failed=len(outcome.adjustment_report.failed),
            cart_reconciled=outcome.cart_report.ok,
        )
        self._event_bus.publish(
            OrderPlaced(
                aggregate_id=order.id,
                order_number=order.order_number,
                customer_id=order.customer_id,
                total_amount=order.total_amount,
            )
        )
        return outcome

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _move(self, outcome: PlacementOutcome, target: PlacementState, log) -> None:
        previous = outcome.state
        outcome.transition(target)
        log.debug(
            "order.placement_transition", from_state=previous.value, to_state=target.value
        )

    def _reject(
        self, outcome: PlacementOutcome, reason: RejectionReason, log
    ) -> PlacementOutcome:
        self._move(outcome, PlacementState.REJECTED, log)
        outcome.rejection = reason
        log.info("order.placement_rejected", code=reason.code, reason=reason.message)
        return outcome

    def _fail(
        self, outcome: PlacementOutcome, reason: FailureReason, log
    ) -> PlacementOutcome:
        from_state = outcome.state
        self._move(outcome, PlacementState.FAILED, log)
        outcome.failure = reason
        log.error(
            "order.placement_failed",
            code=reason.code,
            from_state=from_state.value,
            committed=reason.committed,
            detail=getattr(reason, "detail", ""),
        )
        return outcome


def build_order_placement() -> OrderPlacementOrchestrator:
    """Wire the orchestrator with the Django ORM repositories."""
    from modules.carts.repositories.django_repository import CartDjangoRepository
    from modules.carts.services import CartReconciler
    from modules.customers.repositories.django_repository import (
        AddressDjangoRepository,
    )
    from modules.orders.assembler import OrderAssembler
    from modules.orders.inventory import InventoryAdjuster, InventoryValidator
    from modules.orders.locks import get_inventory_locks
    from modules.orders.pricing import PricingEngine
    from modules.orders.repositories.django_repository import OrderDjangoRepository
    from modules.orders.writer import OrderWriter
    from modules.products.repositories.django_repository import (
        ProductDjangoRepository,
    )
    from shared.infrastructure.bus import event_bus

    products = ProductDjangoRepository()
    orders = OrderDjangoRepository()
    return OrderPlacementOrchestrator(
        validator=InventoryValidator(products),
        pricing_engine=PricingEngine(),
        writer=OrderWriter(orders),
        adjuster=InventoryAdjuster(products),
        cart_reconciler=CartReconciler(CartDjangoRepository()),
        assembler=OrderAssembler(orders),
        address_repository=AddressDjangoRepository(),
        locks=get_inventory_locks(),
        event_bus=event_bus,
    )
