"""
API error types and the DRF exception handler.

Service code raises these instead of returning error responses; the handler
renders every failure as ``{"error": {"code", "message", "details"}}``.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError

from django_fsm import TransitionNotAllowed
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ApiError(APIException):
    """Base error carrying an HTTP status, a machine-readable code and optional details."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "INTERNAL_ERROR"
    default_detail = "An unexpected error occurred."

    def __init__(self, message=None, code=None, details=None):
        self.message = message or self.default_detail
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(detail=self.message, code=self.code)


class BadRequest(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "BAD_REQUEST"
    default_detail = "Bad request."


class Unauthorized(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "UNAUTHORIZED"
    default_detail = "Authentication required."


class Forbidden(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"
    default_detail = "You do not have permission to perform this action."


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"
    default_detail = "Resource not found."


class Conflict(ApiError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"
    default_detail = "The request conflicts with the current state of the resource."


class UnprocessableEntity(ApiError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_code = "UNPROCESSABLE_ENTITY"
    default_detail = "The request could not be processed."


class TooManyRequests(ApiError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_code = "TOO_MANY_REQUESTS"
    default_detail = "Too many requests."


class ServiceUnavailable(ApiError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_code = "SERVICE_UNAVAILABLE"
    default_detail = "Service temporarily unavailable."


class InsufficientStockError(UnprocessableEntity):
    """Raised when a warehouse cannot supply the requested quantity of a product."""

    default_code = "INSUFFICIENT_STOCK"

    def __init__(self, product, warehouse, requested, available):
        self.product = product
        self.warehouse = warehouse
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {product} in {warehouse}: "
            f"requested {requested}, available {available}",
            details={
                "product_id": getattr(product, "pk", None),
                "warehouse_id": getattr(warehouse, "pk", None),
                "requested": str(requested),
                "available": str(available),
            },
        )


class InvalidStateError(Conflict):
    """Raised when an operation is not allowed in the record's current state."""

    default_code = "INVALID_STATE"


def _error_body(code, message, details=None):
    return {"error": {"code": code, "message": message, "details": details or {}}}


def api_exception_handler(exc, context):
    """
    DRF exception handler producing a uniform error envelope.

    Translates django-fsm and Django validation errors into API errors before
    delegating to DRF's default handler.
    """
    if isinstance(exc, TransitionNotAllowed):
        exc = InvalidStateError(str(exc))
    elif isinstance(exc, DjangoValidationError):
        details = exc.message_dict if hasattr(exc, "error_dict") else {"non_field_errors": exc.messages}
        exc = BadRequest("Validation failed.", code="VALIDATION_ERROR", details=details)

    response = exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {exc}")
        return None

    if isinstance(exc, ApiError):
        response.data = _error_body(exc.code, exc.message, exc.details)
    elif isinstance(response.data, dict) and "detail" in response.data:
        code = getattr(response.data["detail"], "code", "error")
        response.data = _error_body(str(code).upper(), str(response.data["detail"]))
    else:
        response.data = _error_body("VALIDATION_ERROR", "Validation failed.", response.data)

    if response.status_code >= 500:
        logger.error(f"API error {response.status_code}: {exc}")
    return response
