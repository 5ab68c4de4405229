"""
Gateway error taxonomy.

Every failure the gateway surfaces is one of these, so callers can tell a
misconfiguration from a denial, an upstream outage, or bad input.
"""

from enum import Enum
from typing import Any, Dict, Optional


class DenialReason(Enum):
    """Which admission gate rejected a request."""
    RATE_LIMIT = "rate_limit"
    TOKEN_BUDGET = "token_budget"


class GatewayError(Exception):
    """Base class for all gateway errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(GatewayError):
    """Raised when required configuration (e.g. the provider credential) is missing."""


class AdmissionDenied(GatewayError):
    """Raised when a request is rejected by the rate limiter or the token budget."""

    def __init__(self, message: str, reason: DenialReason):
        super().__init__(message, {"reason": reason.value})
        self.reason = reason


class UpstreamFailure(GatewayError):
    """Raised when a provider call fails or returns a non-success status."""

    def __init__(
        self,
        message: str,
        operation: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.operation = operation
        self.status_code = status_code


class DomainError(GatewayError):
    """Raised when the requested work does not exist or has nothing to process."""
