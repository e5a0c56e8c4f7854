# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Shared type definitions for the gateway core.

This module contains the dataclasses exchanged between adapters, the
provider manager and the health checker.
"""

import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Optional


# =============================================================================
# MODEL CATALOG TYPES
# =============================================================================


@dataclass(frozen=True)
class ModelCapabilities:
    text: bool = True
    images: bool = False
    audio: bool = False
    video: bool = False


@dataclass(frozen=True)
class ModelPricing:
    prompt_cost_per_1k: float = 0.0
    completion_cost_per_1k: float = 0.0

    def __post_init__(self):
        if self.prompt_cost_per_1k < 0 or self.completion_cost_per_1k < 0:
            raise ValueError("pricing must be non-negative")


@dataclass(frozen=True)
class ModelDescriptor:
    """
    One model an adapter can serve.

    Instances are immutable; a catalog refresh replaces the whole set.
    """

    id: str  # provider-prefixed, e.g. "groq/llama-3.3-70b-versatile"
    display_name: str
    context_length: int
    owned_by: str
    capabilities: ModelCapabilities = field(default_factory=ModelCapabilities)
    pricing: ModelPricing = field(default_factory=ModelPricing)
    created: int = field(default_factory=lambda: int(time.time()))

    def __post_init__(self):
        if self.context_length <= 0:
            raise ValueError(f"context_length must be positive for {self.id}")

    def to_openai_dict(self) -> Dict[str, Any]:
        """Render as an OpenAI-compatible /v1/models card."""
        return {
            "id": self.id,
            "object": "model",
            "created": self.created,
            "owned_by": self.owned_by,
            "display_name": self.display_name,
            "context_length": self.context_length,
            "capabilities": asdict(self.capabilities),
            "pricing": asdict(self.pricing),
        }


# =============================================================================
# KEY / PROVIDER STATE
# =============================================================================


class KeyErrorKind(str, Enum):
    NONE = "none"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"


@dataclass
class ApiKeyState:
    """Mutable per-key state. Owned by exactly one KeyRotator."""

    secret: str
    last_error_at: Optional[float] = None
    error_kind: KeyErrorKind = KeyErrorKind.NONE


@dataclass
class ProviderAvailability:
    """Provider-level temporary disablement, owned by the ProviderManager."""

    provider_name: str
    disabled_until: Optional[float] = None
    last_error: Optional[str] = None


# =============================================================================
# HEALTH TYPES
# =============================================================================


class HealthStatus(str, Enum):
    OPERATIONAL = "operational"
    ERROR = "error"
    LIMITED = "limited"
    UNKNOWN = "unknown"


@dataclass
class HealthRecord:
    model_id: str
    status: HealthStatus
    last_checked_at: float
    latency_ms: Optional[int] = None
    last_error: Optional[str] = None
    attempts: int = 1

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data
