# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
FastAPI dependencies for the gateway application.

This module centralizes all FastAPI dependency functions including:
- Core object retrieval from app state
- API key verification
"""

import os
from typing import Optional

from fastapi import Request, HTTPException, Depends
from fastapi.security import APIKeyHeader

from llm_gateway import HealthChecker, ProviderManager

# Security schemes
api_key_header = APIKeyHeader(name="Authorization", auto_error=False)


def get_gateway_api_key() -> Optional[str]:
    return os.getenv("GATEWAY_API_KEY") or None


def get_provider_manager(request: Request) -> ProviderManager:
    """Dependency to get the provider manager instance from the app state."""
    return request.app.state.provider_manager


def get_health_checker(request: Request) -> Optional[HealthChecker]:
    """Dependency to get the health checker instance from the app state."""
    return getattr(request.app.state, "health_checker", None)


async def verify_api_key(auth: str = Depends(api_key_header)):
    """
    Dependency to verify the gateway API key.

    If GATEWAY_API_KEY is not set, skips verification (open access mode).
    Accepts Bearer token in Authorization header.
    """
    gateway_api_key = get_gateway_api_key()
    if not gateway_api_key:
        return auth
    if not auth or auth != f"Bearer {gateway_api_key}":
        raise HTTPException(status_code=401, detail="Invalid or missing API Key")
    return auth
