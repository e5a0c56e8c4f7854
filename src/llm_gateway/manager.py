# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/manager.py

import asyncio
import logging
import threading
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from .config import GatewaySettings
from .core.constants import DEFAULT_CONNECT_TIMEOUT
from .core.errors import (
    NoProviderAvailableError,
    is_rate_limit_error,
    is_transient_error,
)
from .core.types import ModelDescriptor, ProviderAvailability
from .provider_factory import build_adapters, get_available_providers
from .providers import ChatResult, ProviderAdapter
from .providers.provider_interface import Clock, Sleep
from .validation import validate_chat_request

lib_logger = logging.getLogger("llm_gateway")


class ProviderManager:
    """
    Routes chat requests across adapters in priority order.

    Each request walks the adapters that can serve the model, skipping
    providers on cooldown, and falls through to the next one on failure.
    A pass that fails only transiently is repeated after `retry_delay`, up to
    `retry_attempts` passes. Rate-limit failures bench the whole provider for
    `provider_cooldown` seconds.
    """

    def __init__(
        self,
        adapters: Sequence[ProviderAdapter],
        settings: Optional[GatewaySettings] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
    ):
        self.adapters: List[ProviderAdapter] = list(adapters)
        self.settings = settings or GatewaySettings()
        self.clock = clock
        self.sleep = sleep
        self._http_client = http_client

        self._lock = threading.Lock()
        self._availability: Dict[str, ProviderAvailability] = {
            adapter.name: ProviderAvailability(provider_name=adapter.name)
            for adapter in self.adapters
        }
        self._last_request: Dict[str, float] = {}

    @classmethod
    def from_settings(
        cls,
        settings: GatewaySettings,
        *,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
    ) -> "ProviderManager":
        """Build the enabled adapters around one shared HTTP client."""
        http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout, connect=DEFAULT_CONNECT_TIMEOUT),
            follow_redirects=True,
        )
        adapters = build_adapters(settings, http_client=http_client, clock=clock, sleep=sleep)
        if not adapters:
            lib_logger.warning(
                "No providers enabled. Requests will fail until a provider is configured."
            )
        return cls(adapters, settings, http_client=http_client, clock=clock, sleep=sleep)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, **kwargs) -> "ProviderManager":
        settings = GatewaySettings.from_env(get_available_providers(), env)
        return cls.from_settings(settings, **kwargs)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        for adapter in self.adapters:
            await adapter.aclose()
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    # =========================================================================
    # Provider availability
    # =========================================================================

    def get_adapter(self, name: str) -> Optional[ProviderAdapter]:
        for adapter in self.adapters:
            if adapter.name == name:
                return adapter
        return None

    def is_provider_available(self, name: str) -> bool:
        with self._lock:
            record = self._availability.get(name)
            if record is None or record.disabled_until is None:
                return True
            if record.disabled_until <= self.clock():
                record.disabled_until = None
                return True
            return False

    def disable_provider(self, name: str, error: BaseException) -> None:
        cooldown = self.settings.provider_cooldown
        with self._lock:
            record = self._availability.setdefault(
                name, ProviderAvailability(provider_name=name)
            )
            record.disabled_until = self.clock() + cooldown
            record.last_error = str(error)
        lib_logger.warning(
            f"Provider {name} rate limited, disabled for {cooldown:.0f}s: {error}",
            extra={"provider": name, "event": "provider_disabled"},
        )

    def _record_failure(self, name: str, error: BaseException) -> None:
        with self._lock:
            record = self._availability.setdefault(
                name, ProviderAvailability(provider_name=name)
            )
            record.last_error = str(error)

    def _record_success(self, name: str) -> None:
        with self._lock:
            record = self._availability.get(name)
            if record is not None:
                record.last_error = None

    def reset_provider(self, name: str, reset_keys: bool = False) -> bool:
        """
        Clear a provider's cooldown, and optionally every key's error state.

        Returns False for unknown providers.
        """
        with self._lock:
            record = self._availability.get(name)
            if record is None:
                return False
            record.disabled_until = None
            record.last_error = None
        if reset_keys:
            adapter = self.get_adapter(name)
            if adapter is not None:
                adapter.key_rotator.reset()
        lib_logger.info(f"Provider {name} reset")
        return True

    async def _wait_for_slot(self, adapter: ProviderAdapter) -> None:
        """Space consecutive requests to one provider by its min_request_interval."""
        interval = adapter.min_request_interval
        if interval <= 0:
            with self._lock:
                self._last_request[adapter.name] = self.clock()
            return

        with self._lock:
            now = self.clock()
            last = self._last_request.get(adapter.name)
            slot = now if last is None else max(now, last + interval)
            # Reserve the slot before sleeping so concurrent callers queue up
            self._last_request[adapter.name] = slot
        delay = slot - now
        if delay > 0:
            lib_logger.debug(
                f"{adapter.name}: spacing request by {delay:.2f}s",
                extra={"provider": adapter.name, "event": "request_spacing"},
            )
            await self.sleep(delay)

    # =========================================================================
    # Public API
    # =========================================================================

    async def list_available_models(self) -> List[ModelDescriptor]:
        """All models across adapters, in priority order, first id wins."""
        results = await asyncio.gather(
            *(adapter.get_models() for adapter in self.adapters),
            return_exceptions=True,
        )

        merged: List[ModelDescriptor] = []
        seen = set()
        for adapter, result in zip(self.adapters, results):
            if isinstance(result, BaseException):
                lib_logger.error(f"Failed to get models for {adapter.name}: {result}")
                continue
            for model in result:
                if model.id not in seen:
                    seen.add(model.id)
                    merged.append(model)
        return merged

    async def chat(
        self, model_id: str, messages: List[Dict[str, Any]], **options: Any
    ) -> ChatResult:
        """
        Complete a chat request on the first adapter that succeeds.

        Raises InvalidRequestError before any upstream call, NoProviderAvailableError
        when no enabled adapter serves `model_id`, and otherwise the last
        adapter error once the retry budget is spent.
        """
        options = {k: v for k, v in options.items() if k != "model"}
        validate_chat_request(messages, {**options, "model": model_id})
        stream = bool(options.get("stream"))

        last_error: Optional[BaseException] = None
        passes = max(1, self.settings.retry_attempts)

        for attempt in range(1, passes + 1):
            handled = False
            failures: List[BaseException] = []

            for adapter in self.adapters:
                if stream and not adapter.supports_streaming:
                    continue
                if not await adapter.can_handle(model_id):
                    continue
                handled = True
                if not self.is_provider_available(adapter.name):
                    lib_logger.debug(f"Skipping {adapter.name}: provider on cooldown")
                    continue

                await self._wait_for_slot(adapter)
                try:
                    result = await adapter.chat(messages, model=model_id, **options)
                except Exception as e:
                    error: BaseException = e
                else:
                    self._record_success(adapter.name)
                    if attempt > 1 or failures:
                        lib_logger.info(
                            f"{model_id} served by {adapter.name} after earlier failures",
                            extra={"provider": adapter.name, "model": model_id},
                        )
                    return result

                failures.append(error)
                last_error = error
                if is_rate_limit_error(error):
                    self.disable_provider(adapter.name, error)
                else:
                    self._record_failure(adapter.name, error)
                    lib_logger.warning(
                        f"{adapter.name} failed for {model_id}: {error}",
                        extra={"provider": adapter.name, "model": model_id, "event": "provider_failed"},
                    )

            if not handled:
                raise NoProviderAvailableError(f"No provider available for model {model_id}")

            if not failures:
                # Every capable provider is on cooldown
                if last_error is not None:
                    raise last_error
                raise NoProviderAvailableError(
                    f"All providers for {model_id} are cooling down after rate limits", transient=True
                )

            if not any(is_transient_error(e) for e in failures):
                raise last_error

            if attempt < passes:
                lib_logger.debug(
                    f"All providers failed for {model_id} (pass {attempt}/{passes}), "
                    f"retrying in {self.settings.retry_delay}s"
                )
                await self.sleep(self.settings.retry_delay)

        lib_logger.error(
            f"Giving up on {model_id} after {passes} passes: {last_error}",
            extra={"model": model_id, "event": "retries_exhausted"},
        )
        raise last_error

    # =========================================================================
    # Status
    # =========================================================================

    def get_provider_status(self) -> Dict[str, Any]:
        now = self.clock()
        status: Dict[str, Any] = {}
        for adapter in self.adapters:
            with self._lock:
                record = self._availability.get(adapter.name)
                disabled_until = record.disabled_until if record else None
                last_error = record.last_error if record else None
            cooling = disabled_until is not None and disabled_until > now
            status[adapter.name] = {
                **adapter.get_status(),
                "available": not cooling,
                "disabled_until": disabled_until if cooling else None,
                "last_error": last_error,
            }
        return status
