"""Stock engine errors and the REST API exception handler."""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class StockError(Exception):
    """Base class for errors raised by the stock engine."""

    status_code = 500
    default_message = "Stock operation failed."

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class StockValidationError(StockError):
    """Malformed or missing input, rejected before touching stock."""

    status_code = 400
    default_message = "Invalid stock request."


class SuffixCapacityError(StockValidationError):
    default_message = "Too many live lots share this display name."


class InvalidTransitionError(StockValidationError):
    default_message = "Status change not allowed."


class StockNotFoundError(StockError):
    status_code = 404
    default_message = "Not found."


class InsufficientStockError(StockError):
    status_code = 409
    default_message = "Insufficient stock."

    def __init__(self, message=None, requested=None, available=None, details=None):
        self.requested = requested
        self.available = available
        details = dict(details or {})
        if requested is not None:
            details.setdefault("requested", str(requested))
        if available is not None:
            details.setdefault("available", str(available))
        super().__init__(message, details)


class ConcurrencyConflictError(StockError):
    """A guarded update found its precondition already broken by another writer."""

    status_code = 409
    default_message = "Stock changed concurrently; retry the whole request."
    retryable = True


class StockIntegrityError(StockError):
    status_code = 500
    default_message = "Stock records are inconsistent."


class UnitOfWorkTimeoutError(StockError):
    status_code = 503
    default_message = "Stock operation timed out and was rolled back."


def custom_exception_handler(exc, context):
    """Handle Django ValidationError and stock errors as REST responses.

    For other exceptions, follow DRF's default behavior.
    """
    if isinstance(exc, StockError):
        if isinstance(exc, StockIntegrityError):
            logger.error("Integrity failure: %s %s", exc.message, exc.details)
        data = {"detail": exc.message, "status_code": exc.status_code}
        if exc.details:
            data["details"] = exc.details
        if isinstance(exc, ConcurrencyConflictError):
            data["retryable"] = True
        return Response(data, status=exc.status_code)

    if isinstance(exc, DjangoValidationError):
        exc = DRFValidationError(detail=exc.messages)

    if isinstance(exc, Http404):
        return Response({"detail": "Not found.", "status_code": 404}, status=404)

    response = exception_handler(exc, context)

    # Anything DRF does not recognise becomes a 500 upstream.
    if response is not None:
        response.data["status_code"] = response.status_code

    return response
