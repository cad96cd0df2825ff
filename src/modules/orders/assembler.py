"""Read model of a placed order.

``OrderAssembler`` re-reads a committed order with its line items (and
the display fields of their products) and both addresses, and turns it
into an ``OrderView``.  It never writes.

Views are frozen pydantic models with camelCase aliases, so
``view.model_dump(by_alias=True, mode="json")`` is the response body.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, List, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from modules.orders.results import Err, Ok, OrderNotFound, Result

if TYPE_CHECKING:
    from modules.customers.models import Address
    from modules.orders.models import Order, OrderItem
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class _View(BaseModel):
    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )


class ProductSummaryView(_View):
    id: UUID
    name: str
    slug: str
    images: List[Any] = []


class OrderItemView(_View):
    id: UUID
    product_id: UUID
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    product: ProductSummaryView


class AddressView(_View):
    id: UUID
    first_name: str
    last_name: str
    company: str = ""
    address1: str
    address2: str = ""
    city: str
    province: str
    country: str
    zip_code: str
    phone: str = ""


class OrderView(_View):
    id: UUID
    order_number: str
    customer_id: UUID
    status: str
    payment_status: str
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    total_amount: Decimal
    currency: str
    payment_method: str = ""
    notes: str = ""
    shipping_address: Optional[AddressView] = None
    billing_address: Optional[AddressView] = None
    items: List[OrderItemView]
    created_at: datetime
    updated_at: datetime

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


def _address_view(address: Optional[Address]) -> Optional[AddressView]:
    if address is None:
        return None
    return AddressView(
        id=address.id,
        first_name=address.first_name,
        last_name=address.last_name,
        company=address.company,
        address1=address.address1,
        address2=address.address2,
        city=address.city,
        province=address.province,
        country=address.country,
        zip_code=address.zip_code,
        phone=address.phone,
    )


def _item_view(item: OrderItem) -> OrderItemView:
    product = item.product
    return OrderItemView(
        id=item.id,
        product_id=item.product_id,
        quantity=item.quantity,
        unit_price=item.unit_price,
        line_total=item.line_total,
        product=ProductSummaryView(
            id=product.id,
            name=product.name,
            slug=product.slug,
            images=product.images or [],
        ),
    )


def build_order_view(order: Order) -> OrderView:
    return OrderView(
        id=order.id,
        order_number=order.order_number,
        customer_id=order.customer_id,
        status=order.status,
        payment_status=order.payment_status,
        subtotal=order.subtotal,
        tax_amount=order.tax_amount,
        shipping_amount=order.shipping_amount,
        total_amount=order.total_amount,
        currency=order.currency,
        payment_method=order.payment_method,
        notes=order.notes,
        shipping_address=_address_view(order.shipping_address),
        billing_address=_address_view(order.billing_address),
        items=[_item_view(item) for item in order.items.all()],
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


class OrderAssembler:
    def __init__(self, order_repository: IOrderRepository) -> None:
        self._order_repo = order_repository

    def assemble(self, order_id: UUID) -> Result[OrderView, OrderNotFound]:
        """Raises ``DatabaseError`` if the read itself fails."""
        order = self._order_repo.get_with_relations(order_id)
        if order is None:
            logger.error("order.assembly_not_found", order_id=str(order_id))
            return Err(OrderNotFound(order_id=order_id))
        return Ok(build_order_view(order))
