"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``LineItemRequestDTO``: one product/quantity pair of a checkout request.
- ``PlaceOrderDTO``: the whole checkout request.

An empty ``items`` list is deliberately accepted here: it is a business
rejection (``EmptyCart``) decided by the placement saga, not a malformed
payload.
"""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class LineItemRequestDTO(BaseModel):
    """The client sends ``product_id`` and ``quantity`` only.

    Prices are resolved from the catalog by the Service Layer; a price
    supplied by the client is never trusted.
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class PlaceOrderDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: List[LineItemRequestDTO] = []
    shipping_address_id: Optional[UUID] = None
    billing_address_id: Optional[UUID] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def no_duplicate_products(self):
        """Prevent duplicate product IDs in the same order."""
        product_ids = [item.product_id for item in self.items]
        if len(product_ids) != len(set(product_ids)):
            raise ValueError("Duplicate product IDs are not allowed in the same order.")
        return self

    @property
    def product_ids(self) -> List[UUID]:
        return [item.product_id for item in self.items]

    @property
    def address_ids(self) -> List[UUID]:
        return [
            address_id
            for address_id in (self.shipping_address_id, self.billing_address_id)
            if address_id is not None
        ]
