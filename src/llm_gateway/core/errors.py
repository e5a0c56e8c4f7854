# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Error taxonomy for the gateway core.

Every failure that leaves an adapter or the provider manager is a
GatewayError subclass carrying a machine-readable kind, the provider it
came from (when known), the upstream HTTP status (when there was one) and
whether the failure is transient, i.e. eligible for automatic retry.
"""

from enum import Enum
from typing import Optional, Type


class ErrorKind(str, Enum):
    INVALID_REQUEST = "invalid_request"
    UNAUTHORIZED = "unauthorized"
    QUOTA_EXCEEDED = "quota_exceeded"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_ERROR = "upstream_error"
    TIMEOUT = "timeout"
    NO_KEY_AVAILABLE = "no_key_available"
    NO_PROVIDER_AVAILABLE = "no_provider_available"


class GatewayError(Exception):
    """Base class for all typed gateway failures."""

    kind: ErrorKind = ErrorKind.UPSTREAM_ERROR
    transient: bool = False

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        transient: Optional[bool] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code
        if transient is not None:
            self.transient = transient

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "provider": self.provider,
            "status_code": self.status_code,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, provider={self.provider!r}, "
            f"status_code={self.status_code!r})"
        )


class InvalidRequestError(GatewayError):
    """Bad input shape. Never retried."""

    kind = ErrorKind.INVALID_REQUEST


class UnauthorizedError(GatewayError):
    """Upstream rejected the key (401/403). The key is benched permanently."""

    kind = ErrorKind.UNAUTHORIZED


class QuotaExceededError(GatewayError):
    """Billing/quota failure (402). The model is disabled for that adapter."""

    kind = ErrorKind.QUOTA_EXCEEDED


class RateLimitedError(GatewayError):
    kind = ErrorKind.RATE_LIMITED
    transient = True


class UpstreamError(GatewayError):
    """5xx, transport failure or malformed upstream payload."""

    kind = ErrorKind.UPSTREAM_ERROR
    transient = True


class GatewayTimeoutError(UpstreamError):
    kind = ErrorKind.TIMEOUT


class NoKeyAvailableError(GatewayError):
    """
    Every key of an adapter is cooling down.

    Transient when at least one key will become eligible again, permanent
    when all keys were benched for auth failures.
    """

    kind = ErrorKind.NO_KEY_AVAILABLE


class NoProviderAvailableError(GatewayError):
    kind = ErrorKind.NO_PROVIDER_AVAILABLE


TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


def classify_http_status(status_code: int) -> Type[GatewayError]:
    """Map an upstream HTTP status to the gateway error class it represents."""
    if status_code in (401, 403):
        return UnauthorizedError
    if status_code == 402:
        return QuotaExceededError
    if status_code == 429:
        return RateLimitedError
    if status_code in (408, 504):
        return GatewayTimeoutError
    # InvalidRequestError is only raised for input rejected locally
    return UpstreamError


def is_rate_limit_error(error: BaseException) -> bool:
    """True for failures that should put a whole provider on cooldown."""
    if isinstance(error, RateLimitedError):
        return True
    if isinstance(error, NoKeyAvailableError) and error.transient:
        return True
    if getattr(error, "status_code", None) == 429:
        return True
    return "rate limit" in str(error).lower()


def is_transient_error(error: BaseException) -> bool:
    if isinstance(error, GatewayError):
        return error.transient
    return getattr(error, "status_code", None) in TRANSIENT_STATUS_CODES


def mask_credential(credential: Optional[str]) -> str:
    """Mask an API key for logs. Shows first 4 and last 4 chars."""
    if not credential or len(credential) <= 8:
        return "****"
    return f"{credential[:4]}****{credential[-4:]}"
