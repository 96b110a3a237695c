"""
Shared error handling for the Storefront Gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error envelope returned to storefront clients."""

    success: bool = False
    error: str
    message: Optional[str] = None
    code: str
    details: Dict[str, Any] = {}


class GatewayError(Exception):
    """Base exception for Storefront Gateway errors."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, error: Optional[str] = None, *, expose_message: bool = True) -> ErrorResponse:
        """Convert to the storefront error envelope."""
        return ErrorResponse(
            error=error or self.message,
            message=self.message if expose_message else None,
            code=self.code,
            details=self.details if expose_message else {},
        )


class ConfigurationError(GatewayError):
    """Missing or invalid configuration (fatal at startup)."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class SigningError(GatewayError):
    """Upstream credential could not be produced."""

    def __init__(self, message: str = "Credential signing unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("SIGNING_UNAVAILABLE", message, details)


class UpstreamError(GatewayError):
    """Non-2xx response, transport failure or timeout from an upstream service."""

    status_code = 502

    def __init__(
        self,
        service: str,
        message: str = "Upstream request failed",
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = dict(details or {})
        if status_code is not None:
            merged.setdefault("status_code", status_code)
        super().__init__("UPSTREAM_ERROR", f"{service}: {message}", merged)
        self.service = service
        self.upstream_status = status_code

    @property
    def is_not_found(self) -> bool:
        return self.upstream_status == 404


class NotFoundError(GatewayError):
    """Requested resource does not exist upstream."""

    status_code = 404

    def __init__(self, resource: str, resource_id: str, details: Optional[Dict[str, Any]] = None):
        merged = {"resource": resource, "resource_id": str(resource_id)}
        if details:
            merged.update(details)
        super().__init__("NOT_FOUND", f"{resource} '{resource_id}' not found", merged)
        self.resource = resource


class CacheError(GatewayError):
    """Internal cache fault. Never surfaced to callers."""

    def __init__(self, message: str = "Cache fault", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_ERROR", message, details)


class ValidationError(GatewayError):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class AuthenticationError(GatewayError):
    """Inbound request signature could not be verified."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)
