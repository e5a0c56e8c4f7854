# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/providers/provider_interface.py

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Union,
)

from ..catalog import ModelCatalog
from ..config import ProviderSettings
from ..core.constants import DEFAULT_CATALOG_TTL, DEFAULT_KEY_COOLDOWN
from ..core.types import ModelDescriptor
from ..key_rotator import KeyRotator
from ..stream import ChatStream

lib_logger = logging.getLogger("llm_gateway")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]
ChatResult = Union[Dict[str, Any], ChatStream]


class ProviderAdapter(ABC):
    """
    Uniform contract every upstream chat service is wrapped behind.

    Runtime state lives in explicit fields: the key rotator, the model
    catalog and the set of models disabled after quota failures. Model ids
    crossing this boundary are always provider-prefixed ("groq/<model>").
    """

    name: str = ""
    requires_api_key: bool = True
    supports_streaming: bool = True

    def __init__(
        self,
        settings: Optional[ProviderSettings] = None,
        *,
        key_cooldown: float = DEFAULT_KEY_COOLDOWN,
        catalog_ttl: float = DEFAULT_CATALOG_TTL,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
    ):
        if not self.name:
            raise TypeError(f"{type(self).__name__} must define a provider name")

        self.settings = settings or ProviderSettings(name=self.name)
        self.clock = clock
        self.sleep = sleep
        self.key_rotator = KeyRotator(
            self.settings.api_keys,
            cooldown=key_cooldown,
            clock=clock,
            provider=self.name,
        )
        self.catalog = ModelCatalog(
            self.name, self._fetch_catalog, ttl=catalog_ttl, clock=clock
        )
        self._disabled_lock = threading.Lock()
        self._disabled_models: FrozenSet[str] = frozenset(
            self.format_model_name(m) for m in self.settings.disabled_models
        )

    # =========================================================================
    # Configuration
    # =========================================================================

    @property
    def prefix(self) -> str:
        return f"{self.name}/"

    @property
    def enabled(self) -> bool:
        if not self.settings.enabled:
            return False
        return len(self.key_rotator) > 0 or not self.requires_api_key

    @property
    def min_request_interval(self) -> float:
        return self.settings.min_request_interval

    # =========================================================================
    # Model naming
    # =========================================================================

    def format_model_name(self, model_id: str) -> str:
        return model_id if model_id.startswith(self.prefix) else f"{self.prefix}{model_id}"

    def get_base_model_name(self, model: str) -> str:
        return model[len(self.prefix):] if model.startswith(self.prefix) else model

    # =========================================================================
    # Catalog
    # =========================================================================

    def disable_model(self, model: str, reason: str = "") -> None:
        full_name = self.format_model_name(model)
        with self._disabled_lock:
            self._disabled_models = self._disabled_models | {full_name}
        lib_logger.warning(
            f"{self.name}: model {full_name} disabled{f' ({reason})' if reason else ''}",
            extra={"provider": self.name, "model": full_name, "event": "model_disabled"},
        )

    def is_model_disabled(self, model: str) -> bool:
        return self.format_model_name(model) in self._disabled_models

    @property
    def disabled_models(self) -> FrozenSet[str]:
        return self._disabled_models

    async def _fetch_catalog(self) -> List[ModelDescriptor]:
        return list(await self.fetch_models())

    @abstractmethod
    async def fetch_models(self) -> Iterable[ModelDescriptor]:
        """Fetch the full upstream catalog. May raise; the cache absorbs failures."""

    async def get_models(self) -> List[ModelDescriptor]:
        """Current catalog minus disabled models. Never raises for fetch failures."""
        if not self.enabled:
            return []
        models = await self.catalog.get()
        disabled = self._disabled_models
        return [m for m in models if m.id not in disabled]

    async def can_handle(self, model_id: str) -> bool:
        if not model_id or not model_id.startswith(self.prefix):
            return False
        return any(m.id == model_id for m in await self.get_models())

    # =========================================================================
    # Chat
    # =========================================================================

    @abstractmethod
    async def chat(self, messages: List[Dict[str, Any]], **options: Any) -> ChatResult:
        """
        Send a chat request upstream.

        Options: model (required, prefixed or bare), stream, temperature,
        max_tokens, timeout, extra_headers and any passthrough parameters.
        Returns a normalized chat.completion dict, or a ChatStream when
        stream=True.
        """

    # =========================================================================
    # Lifecycle / status
    # =========================================================================

    async def aclose(self) -> None:
        return None

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "enabled": self.enabled,
            "requires_api_key": self.requires_api_key,
            "supports_streaming": self.supports_streaming,
            "min_request_interval": self.min_request_interval,
            "keys": self.key_rotator.snapshot(),
            "catalog_size": len(self.catalog.models),
            "catalog_error": self.catalog.last_error,
            "disabled_models": sorted(self._disabled_models),
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
