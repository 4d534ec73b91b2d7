"""
Error types raised by the apic request pipeline.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Serializable error payload."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class ApicError(Exception):
    """Base exception for request pipeline failures."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class RequestTimeoutError(ApicError, TimeoutError):
    """Deadline elapsed before the network call settled."""

    def __init__(self, timeout: Optional[float] = None, message: str = "Request timed out"):
        self.timeout = timeout
        super().__init__("TIMEOUT_ERROR", message, {"timeout": timeout})


class HttpError(ApicError):
    """The endpoint answered with a non-2xx status."""

    def __init__(self, status: int, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.status = status
        details = dict(details or {})
        details["status"] = status
        super().__init__("HTTP_ERROR", message or f"HTTP error: {status}", details)


class TransportError(ApicError):
    """The HTTP exchange could not be completed."""

    def __init__(self, message: str = "Transport error", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSPORT_ERROR", message, details)


class ResponseParseError(ApicError):
    """Response body is not valid JSON."""

    def __init__(self, message: str = "Response body is not valid JSON", details: Optional[Dict[str, Any]] = None):
        super().__init__("PARSE_ERROR", message, details)


class UnsupportedMethodError(ApicError):
    """HTTP method outside GET/POST/PUT/PATCH/DELETE."""

    def __init__(self, method: str):
        self.method = method
        super().__init__(
            "UNSUPPORTED_METHOD",
            f"Unsupported HTTP method: {method}",
            {"method": method}
        )


class MaxRetriesExceededError(ApicError):
    """Retry budget and refresh attempts are exhausted."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        details: Dict[str, Any] = {"attempts": attempts}
        if last_error is not None:
            details["last_error"] = str(last_error)
        super().__init__(
            "MAX_RETRIES_EXCEEDED",
            "Max retries exceeded. Operation failed.",
            details
        )
