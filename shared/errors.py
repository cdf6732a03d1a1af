"""
Shared error handling for the order ingestion service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class OrderServiceException(Exception):
    """Base exception for order service components."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class DecodeError(OrderServiceException):
    """Message body could not be decoded into an order."""

    status_code = 400

    def __init__(self, message: str = "Malformed order payload", details: Optional[Dict[str, Any]] = None):
        super().__init__("DECODE_ERROR", message, details)


class ValidationError(OrderServiceException):
    """Order is well-formed but violates a structural or business rule."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class PersistenceError(OrderServiceException):
    """Durable store unavailable or rejected the write."""

    def __init__(self, message: str = "Persistence error", details: Optional[Dict[str, Any]] = None):
        super().__init__("PERSISTENCE_ERROR", message, details)


class OrderNotFoundError(OrderServiceException):
    """Requested order does not exist in the store."""

    status_code = 404

    def __init__(self, order_uid: str, details: Optional[Dict[str, Any]] = None):
        self.order_uid = order_uid
        super().__init__("ORDER_NOT_FOUND", f"Order {order_uid} not found", details)


class DeadLetterDeliveryError(OrderServiceException):
    """Writing to the dead-letter channel failed."""

    def __init__(self, message: str = "Dead-letter delivery failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("DEAD_LETTER_DELIVERY_ERROR", message, details)


class CacheError(OrderServiceException):
    """Cache misuse (programming error), never raised for valid operations."""

    def __init__(self, message: str = "Cache error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_ERROR", message, details)
