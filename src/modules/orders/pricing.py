"""Authoritative checkout pricing.

Pure functions over validated line items: no I/O, no failure modes for
well-formed input.  Amounts are ``Decimal`` throughout.

Rounding rule: line totals are exact (two-decimal price times an integer
quantity) and are never rounded.  Tax is computed once on the whole
subtotal and rounded to cents (``ROUND_HALF_UP``); the total is then the
exact sum ``subtotal + tax + shipping`` and is already at currency
precision, so ``total == subtotal + tax + shipping`` holds to the cent.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Iterable, Optional

from django.conf import settings

if TYPE_CHECKING:
    from modules.orders.inventory import ValidatedLineItem

CURRENCY_QUANTUM = Decimal("0.01")
ZERO = Decimal("0.00")


def round_currency(amount: Decimal) -> Decimal:
    return amount.quantize(CURRENCY_QUANTUM, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingPolicy:
    tax_rate: Decimal = Decimal("0.08")
    free_shipping_threshold: Decimal = Decimal("50.00")
    shipping_cost: Decimal = Decimal("9.99")

    @classmethod
    def from_settings(cls) -> PricingPolicy:
        return cls(
            tax_rate=Decimal(settings.ORDERS_TAX_RATE),
            free_shipping_threshold=Decimal(settings.ORDERS_FREE_SHIPPING_THRESHOLD),
            shipping_cost=Decimal(settings.ORDERS_SHIPPING_COST),
        )


@dataclass(frozen=True)
class PricingResult:
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    total_amount: Decimal


class PricingEngine:
    def __init__(self, policy: Optional[PricingPolicy] = None) -> None:
        self._policy = policy or PricingPolicy.from_settings()

    @property
    def policy(self) -> PricingPolicy:
        return self._policy

    def price(self, items: Iterable[ValidatedLineItem]) -> PricingResult:
        subtotal = sum((item.line_total for item in items), ZERO)
        tax_amount = round_currency(subtotal * self._policy.tax_rate)
        if subtotal >= self._policy.free_shipping_threshold:
            shipping_amount = ZERO
        else:
            shipping_amount = self._policy.shipping_cost
        total_amount = round_currency(subtotal + tax_amount + shipping_amount)
        return PricingResult(
            subtotal=subtotal,
            tax_amount=tax_amount,
            shipping_amount=shipping_amount,
            total_amount=total_amount,
        )
