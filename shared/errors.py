"""
Shared error handling for the Catalog Access Layer.
"""

from typing import Dict, Any, Optional

from opentelemetry import trace
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    success: bool = False
    error: str
    code: str
    details: Dict[str, Any] = {}
    trace_id: Optional[str] = None


class CatalogException(Exception):
    """Base exception for Catalog Access Layer services."""

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
            error=self.message,
            code=self.code,
            details=self.details,
            trace_id=trace_id
        )


class InvalidInputError(CatalogException):
    """Client-supplied data failed validation."""

    status_code = 400

    def __init__(self, message: str = "Invalid input", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_INPUT", message, details)


class NotFoundError(CatalogException):
    """No record matches the requested identity."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class StoreError(CatalogException):
    """A record store was unreachable or rejected the query."""

    status_code = 500

    def __init__(self, message: str = "Database error", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORE_ERROR", message, details)


class CacheUnavailableError(CatalogException):
    """The ephemeral cache cannot serve an administrative request.

    Only cache administration raises this; the read and write paths degrade
    to the uncached path instead.
    """

    status_code = 503

    def __init__(self, message: str = "Cache not available", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_UNAVAILABLE", message, details)
