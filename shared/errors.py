"""
Shared error handling for the request gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class GatewayError(Exception):
    """Base exception for gateway components."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class AuthenticationError(GatewayError):
    """Authentication-related errors."""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class ValidationError(GatewayError):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class RateLimitError(GatewayError):
    """Client-side rate limit policy rejected the request before dispatch."""

    def __init__(self, message: str = "Rate limit exceeded", details: Optional[Dict[str, Any]] = None):
        super().__init__("RATE_LIMIT_ERROR", message, details)


class GatewayTimeoutError(GatewayError):
    """Request exceeded its deadline."""

    def __init__(self, message: str = "Request timed out", details: Optional[Dict[str, Any]] = None):
        super().__init__("TIMEOUT_ERROR", message, details)


class RequestCancelledError(GatewayError):
    """Request was cancelled through its cancellation token.

    retry_count is the number of retries already spent when the cancel landed.
    """

    def __init__(self, message: str = "Request cancelled", details: Optional[Dict[str, Any]] = None,
                 retry_count: int = 0):
        super().__init__("REQUEST_CANCELLED", message, details)
        self.retry_count = retry_count
