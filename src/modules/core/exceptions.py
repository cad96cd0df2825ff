"""Project-wide DRF exception handler.

Every error leaving the API has the shape
``{"success": false, "error": <message>, "code": <stable code>}``.
DRF exceptions keep their status code; anything else is logged with its
traceback and rendered as a generic 500 so no internals reach the client.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = structlog.get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


def error_body(message: str, code: str, **extra: Any) -> dict[str, Any]:
    """Build the standard error payload."""
    return {"success": False, "error": message, "code": code, **extra}


def api_exception_handler(exc: Exception, context: dict) -> Optional[Response]:
    response = exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.exception(
            "api.unhandled_exception",
            view=type(view).__name__ if view else None,
            error_type=type(exc).__name__,
        )
        return Response(
            error_body(INTERNAL_ERROR_MESSAGE, "internal_error"),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, ValidationError):
        response.data = error_body(
            _first_message(exc.detail), "invalid_request", details=exc.detail
        )
    elif isinstance(exc, APIException):
        codes = exc.get_codes()
        code = codes if isinstance(codes, str) else exc.default_code
        response.data = error_body(_first_message(exc.detail), code)
    return response


def _first_message(detail: Any) -> str:
    """Flatten DRF's nested error detail down to its first message."""
    if isinstance(detail, dict):
        if "detail" in detail:
            return _first_message(detail["detail"])
        for key, value in detail.items():
            message = _first_message(value)
            if key == "non_field_errors":
                return message
            return f"{key}: {message}"
        return "Invalid request."
    if isinstance(detail, list):
        return _first_message(detail[0]) if detail else "Invalid request."
    return str(detail)
