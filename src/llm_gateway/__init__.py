# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/__init__.py

from .catalog import ModelCatalog
from .config import GatewaySettings, HealthSettings, ProviderSettings
from .core.errors import (
    ErrorKind,
    GatewayError,
    GatewayTimeoutError,
    InvalidRequestError,
    NoKeyAvailableError,
    NoProviderAvailableError,
    QuotaExceededError,
    RateLimitedError,
    UnauthorizedError,
    UpstreamError,
)
from .core.types import HealthRecord, HealthStatus, ModelDescriptor
from .health import HealthChecker
from .key_rotator import KeyRotator
from .manager import ProviderManager
from .providers import PROVIDER_PLUGINS, OpenAICompatibleAdapter, ProviderAdapter
from .stream import ChatStream

__version__ = "0.1.0"

__all__ = [
    "ChatStream",
    "ErrorKind",
    "GatewayError",
    "GatewaySettings",
    "GatewayTimeoutError",
    "HealthChecker",
    "HealthRecord",
    "HealthSettings",
    "HealthStatus",
    "InvalidRequestError",
    "KeyRotator",
    "ModelCatalog",
    "ModelDescriptor",
    "NoKeyAvailableError",
    "NoProviderAvailableError",
    "OpenAICompatibleAdapter",
    "PROVIDER_PLUGINS",
    "ProviderAdapter",
    "ProviderManager",
    "ProviderSettings",
    "QuotaExceededError",
    "RateLimitedError",
    "UnauthorizedError",
    "UpstreamError",
]
