"""Order DRF serializers for API input.

The serializer operates at the Interface layer (API Views) and speaks
the camelCase wire format.  Business logic lives in the Service Layer,
which receives Pydantic DTOs from ``dtos.py``.  The response side is the
pydantic ``OrderView`` built by ``assembler.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.dtos import LineItemRequestDTO, PlaceOrderDTO


class LineItemRequestSerializer(serializers.Serializer):
    """Validates a single item of a place-order request."""

    productId = serializers.UUIDField(source="product_id")
    quantity = serializers.IntegerField(min_value=1)


class PlaceOrderSerializer(serializers.Serializer):
    """Validates the place-order request payload.

    ``items`` may be missing or empty: that is an ``EmptyCart`` rejection
    decided by the placement saga, not a malformed request.
    """

    items = LineItemRequestSerializer(many=True, required=False, default=list)
    shippingAddressId = serializers.UUIDField(
        source="shipping_address_id", required=False, allow_null=True
    )
    billingAddressId = serializers.UUIDField(
        source="billing_address_id", required=False, allow_null=True
    )
    paymentMethod = serializers.CharField(
        source="payment_method",
        max_length=50,
        required=False,
        allow_null=True,
        allow_blank=True,
    )
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)

    def validate_items(self, value):
        product_ids = [item["product_id"] for item in value]
        if len(product_ids) != len(set(product_ids)):
            raise serializers.ValidationError(
                "Duplicate product IDs are not allowed in the same order."
            )
        return value

    def to_dto(self) -> PlaceOrderDTO:
        data = self.validated_data
        return PlaceOrderDTO(
            items=[
                LineItemRequestDTO(
                    product_id=item["product_id"], quantity=item["quantity"]
                )
                for item in data.get("items", [])
            ],
            shipping_address_id=data.get("shipping_address_id"),
            billing_address_id=data.get("billing_address_id"),
            payment_method=data.get("payment_method") or None,
            notes=data.get("notes") or None,
        )
