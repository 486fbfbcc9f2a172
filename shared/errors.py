"""
Shared error handling for the Frontdoor routing service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import get_request_id


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class FrontdoorException(Exception):
    """Base exception for Frontdoor services."""

    status_code: int = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=get_request_id(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(FrontdoorException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(FrontdoorException):
    """Referenced resource does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class StorageError(FrontdoorException):
    """Backing medium could not be read or written."""

    status_code = 500

    def __init__(self, message: str = "Storage failure", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORAGE_FAILURE", message, details)


class UpstreamUnavailableError(FrontdoorException):
    """Generation service unreachable or failing."""

    status_code = 502

    def __init__(self, service: str, message: str = "Upstream service unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("UPSTREAM_UNAVAILABLE", f"{service}: {message}", details)


class UpstreamNotConfiguredError(FrontdoorException):
    """Generation service credentials are missing."""

    status_code = 500

    def __init__(self, message: str = "Server missing generation credentials", details: Optional[Dict[str, Any]] = None):
        super().__init__("UPSTREAM_NOT_CONFIGURED", message, details)
