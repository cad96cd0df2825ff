"""Order API views.

Exposes the order placement use case via HTTP.  The view resolves the
customer, validates the payload, runs the orchestrator and maps the
placement outcome to a status code and the
``{"success": ..., "data" | "error": ...}`` envelope.
Authentication, validation and unexpected errors are rendered by the
project exception handler in the same envelope.
"""

from __future__ import annotations

from typing import Any

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.exceptions import error_body
from modules.customers.identity import CustomerIdentityResolver
from modules.orders.constants import ORDER_PLACED_MESSAGE
from modules.orders.serializers import PlaceOrderSerializer
from modules.orders.services import PlacementOutcome, build_order_placement

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


class PlaceOrderView(APIView):
    """POST /api/v1/orders/"""

    permission_classes = [IsAuthenticated]
    throttle_scope = "order_placement"

    def get_permissions(self):
        # Preflight requests carry no credentials.
        if self.request.method == "OPTIONS":
            return []
        return super().get_permissions()

    def finalize_response(
        self, request: Request, response: Response, *args: Any, **kwargs: Any
    ) -> Response:
        response = super().finalize_response(request, response, *args, **kwargs)
        for header, value in CORS_HEADERS.items():
            response[header] = value
        return response

    def options(self, request: Request, *args: Any, **kwargs: Any) -> Response:
        return Response("ok", status=status.HTTP_200_OK)

    @extend_schema(request=PlaceOrderSerializer, responses={200: OpenApiTypes.OBJECT})
    def post(self, request: Request) -> Response:
        customer_id = CustomerIdentityResolver().resolve(request.user)
        if customer_id is None:
            raise AuthenticationFailed("No customer profile for this user.")

        serializer = PlaceOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        outcome = build_order_placement().place_order(customer_id, serializer.to_dto())
        return self._to_response(outcome)

    @staticmethod
    def _to_response(outcome: PlacementOutcome) -> Response:
        if outcome.succeeded:
            return Response(
                {
                    "success": True,
                    "data": {
                        "order": outcome.view.to_response(),
                        "message": ORDER_PLACED_MESSAGE,
                    },
                },
                status=status.HTTP_200_OK,
            )

        reason = outcome.reason
        extra = {}
        if outcome.failure is not None and outcome.failure.committed:
            extra["orderNumber"] = outcome.order_number
        return Response(
            error_body(reason.message, reason.code, **extra),
            status=reason.http_status,
        )
