# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Centralized error mapping from gateway errors to FastAPI HTTPExceptions.

Every endpoint funnels failures through map_gateway_error() so clients see
one OpenAI-style error body regardless of which provider failed.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException

from llm_gateway import ErrorKind, GatewayError

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.QUOTA_EXCEEDED: 402,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.UPSTREAM_ERROR: 502,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.NO_PROVIDER_AVAILABLE: 503,
}


def status_for_error(e: GatewayError) -> int:
    if e.kind == ErrorKind.NO_KEY_AVAILABLE:
        # Cooling keys recover on their own, benched keys need an operator
        return 429 if e.transient else 503
    return STATUS_BY_KIND.get(e.kind, 500)


def create_error_body(e: GatewayError) -> Dict[str, Any]:
    """OpenAI-compatible error object for a gateway failure."""
    return {
        "error": {
            "message": e.message,
            "type": e.kind.value,
            "provider": e.provider,
            "code": status_for_error(e),
        }
    }


def map_gateway_error(e: Exception, context: Optional[str] = None) -> HTTPException:
    """
    Map an exception raised by the gateway core to an HTTPException.

    Args:
        e: The exception from the provider manager or health checker
        context: Optional context string for logging (e.g., endpoint name)

    Returns:
        HTTPException with appropriate status code and detail
    """
    ctx = f" ({context})" if context else ""

    if isinstance(e, GatewayError):
        status_code = status_for_error(e)
        if status_code >= 500:
            logger.warning(f"Request failed{ctx}: {e}")
        return HTTPException(status_code=status_code, detail=create_error_body(e))

    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=f"Invalid Request: {str(e)}")

    # Log unexpected errors
    logger.error(f"Unhandled exception{ctx}: {e}")
    return HTTPException(status_code=500, detail=str(e))
