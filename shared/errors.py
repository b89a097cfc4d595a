"""
Shared error handling for Userbase services.
"""

from typing import Dict, Any, Optional

from opentelemetry import trace
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class UserbaseException(Exception):
    """Base exception for Userbase services."""

    status_code: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
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
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class TemplateNotFoundError(UserbaseException):
    """A named SQL template (or the template resource itself) is missing."""

    def __init__(self, name: str, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.name = name
        super().__init__(
            "TEMPLATE_NOT_FOUND",
            message or f"query {name} not found",
            {"template": name, **(details or {})}
        )


class QueryBuildError(UserbaseException):
    """A template could not be rendered into a statement."""

    def __init__(self, message: str = "Query build failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("QUERY_BUILD_ERROR", message, details)


class StoreError(UserbaseException):
    """Relational store execution failure; the cause is chained."""

    def __init__(self, message: str = "Store error", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORE_ERROR", message, details)


class NotFoundError(UserbaseException):
    """No matching row, or zero rows affected."""

    status_code = 404

    def __init__(self, message: str = "Record not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class CacheError(UserbaseException):
    """Cache backend unreachable or payload undecodable."""

    def __init__(self, message: str = "Cache error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_ERROR", message, details)


class ValidationError(UserbaseException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)
