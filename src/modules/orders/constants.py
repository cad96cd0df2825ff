"""Order domain constants.

Order and payment status choices, plus the states of the placement
saga (the request-scoped state machine that turns a cart into an order).
"""

from enum import Enum

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    CONFIRMED = "CONFIRMED", "Confirmed"
    SHIPPED = "SHIPPED", "Shipped"
    DELIVERED = "DELIVERED", "Delivered"
    CANCELLED = "CANCELLED", "Cancelled"


class PaymentStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PAID = "PAID", "Paid"
    FAILED = "FAILED", "Failed"
    REFUNDED = "REFUNDED", "Refunded"


class PlacementState(str, Enum):
    VALIDATING = "VALIDATING"
    PRICING = "PRICING"
    WRITING = "WRITING"
    ADJUSTING_INVENTORY = "ADJUSTING_INVENTORY"
    RECONCILING_CART = "RECONCILING_CART"
    ASSEMBLING = "ASSEMBLING"
    DONE = "DONE"
    REJECTED = "REJECTED"
    FAILED = "FAILED"


PLACEMENT_TRANSITIONS: dict[PlacementState, set[PlacementState]] = {
    PlacementState.VALIDATING: {
        PlacementState.PRICING,
        PlacementState.REJECTED,
        PlacementState.FAILED,
    },
    PlacementState.PRICING: {PlacementState.WRITING, PlacementState.FAILED},
    PlacementState.WRITING: {
        PlacementState.ADJUSTING_INVENTORY,
        PlacementState.FAILED,
    },
    PlacementState.ADJUSTING_INVENTORY: {PlacementState.RECONCILING_CART},
    PlacementState.RECONCILING_CART: {PlacementState.ASSEMBLING},
    PlacementState.ASSEMBLING: {PlacementState.DONE, PlacementState.FAILED},
    PlacementState.DONE: set(),
    PlacementState.REJECTED: set(),
    PlacementState.FAILED: set(),
}

TERMINAL_PLACEMENT_STATES: set[PlacementState] = {
    PlacementState.DONE,
    PlacementState.REJECTED,
    PlacementState.FAILED,
}

# States from which the order header and items are known to be persisted.
COMMITTED_PLACEMENT_STATES: set[PlacementState] = {
    PlacementState.ADJUSTING_INVENTORY,
    PlacementState.RECONCILING_CART,
    PlacementState.ASSEMBLING,
    PlacementState.DONE,
}

ORDER_NUMBER_MAX_RETRIES = 5

ORDER_PLACED_MESSAGE = "Order placed successfully"
