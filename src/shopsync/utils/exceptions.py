"""
Custom exceptions for shopsync.

Every error carries a machine-checkable ``error_kind`` so interactive
endpoints can return structured failures and callers can decide whether
to log or surface them.
"""

import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Dict, Any


class ShopSyncError(Exception):
    """Base exception for all shopsync errors."""

    error_kind = "internal"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize exception with message and optional details.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Structured payload for API responses."""
        return {
            "error": self.__class__.__name__,
            "error_kind": self.error_kind,
            "message": self.message,
        }


class ConfigurationError(ShopSyncError):
    """Raised when configuration is invalid or missing."""

    error_kind = "configuration"


class RepositoryError(ShopSyncError):
    """Raised when the persistent store is unreachable or rejects a write."""

    error_kind = "repository"

    def __init__(self, message: str, operation: Optional[str] = None,
                 table: Optional[str] = None):
        """
        Initialize repository error.

        Args:
            message: Error message
            operation: Repository operation that failed
            table: Table involved in operation
        """
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table

        super().__init__(message, details=details)
        self.operation = operation
        self.table = table


class ValidationError(ShopSyncError):
    """Raised when an inbound field cannot be coerced to its column type."""

    error_kind = "validation"

    def __init__(self, message: str, field: Optional[str] = None,
                 value: Optional[Any] = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, details)
        self.field = field
        self.value = value


class MalformedSessionError(ShopSyncError):
    """Raised when an external auth session cannot be mapped to a shop."""

    error_kind = "malformed_session"


class SignatureError(ShopSyncError):
    """Raised when a webhook or OAuth callback signature does not verify."""

    error_kind = "signature"


class AuthError(ShopSyncError):
    """Raised when a bearer credential is missing, invalid or expired."""

    error_kind = "auth"


class ForbiddenError(ShopSyncError):
    """Raised when an authenticated owner targets another tenant."""

    error_kind = "forbidden"


class ProviderApiError(ShopSyncError):
    """Raised when the Shopify Admin API fails during a tenant sync."""

    error_kind = "provider_api"

    def __init__(self, message: str, status_code: Optional[int] = None,
                 endpoint: Optional[str] = None,
                 response_data: Optional[Any] = None):
        """
        Initialize provider API error.

        Args:
            message: Error message
            status_code: HTTP status code
            endpoint: API endpoint that failed
            response_data: API response data
        """
        details = {}
        if status_code:
            details["status_code"] = status_code
        if endpoint:
            details["endpoint"] = endpoint
        if response_data:
            details["response_data"] = response_data

        super().__init__(message, details)
        self.status_code = status_code
        self.endpoint = endpoint
        self.response_data = response_data


class RateLimitError(ProviderApiError):
    """Raised when the provider answers 429."""

    error_kind = "rate_limited"

    def __init__(self, message: str, retry_after: Optional[float] = None,
                 endpoint: Optional[str] = None):
        super().__init__(message, status_code=429, endpoint=endpoint)
        self.retry_after = retry_after
        if retry_after:
            self.details["retry_after"] = retry_after


class TenantNotFoundError(ShopSyncError):
    """Raised when an operation targets a domain with no installed tenant."""

    error_kind = "not_found"

    def __init__(self, domain: str):
        super().__init__(f"No installed tenant for {domain}", {"domain": domain})
        self.domain = domain


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Seconds to wait from a Retry-After header.

    The header is either delay-seconds or an HTTP-date. A date in the past
    gives 0. Anything unparseable gives None, so the caller falls back to
    its own backoff.
    """
    if not value:
        return None
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        seconds = None
    if seconds is not None:
        return max(seconds, 0.0) if math.isfinite(seconds) else None

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def handle_api_error(response, endpoint: Optional[str] = None) -> None:
    """
    Raise the matching provider error for a failed HTTP response.

    Args:
        response: httpx response object
        endpoint: API endpoint that was called

    Raises:
        RateLimitError: on 429
        ProviderApiError: on any other non-success status
    """
    status_code = response.status_code

    try:
        response_data = response.json()
    except ValueError:
        response_data = response.text[:200] if response.text else None

    if status_code == 429:
        raise RateLimitError(
            "Shopify API rate limit exceeded",
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
            endpoint=endpoint,
        )
    if status_code in (401, 403):
        raise ProviderApiError(
            "Shopify rejected the access token",
            status_code=status_code,
            endpoint=endpoint,
            response_data=response_data,
        )
    if status_code >= 500:
        raise ProviderApiError(
            f"Shopify server error: {status_code}",
            status_code=status_code,
            endpoint=endpoint,
            response_data=response_data,
        )
    raise ProviderApiError(
        f"Shopify API request failed: {status_code}",
        status_code=status_code,
        endpoint=endpoint,
        response_data=response_data,
    )
