# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/provider_factory.py

import asyncio
import logging
import time
from typing import List, Optional, Type

import httpx

from .config import GatewaySettings
from .providers import PROVIDER_PLUGINS, ProviderAdapter
from .providers.provider_interface import Clock, Sleep

lib_logger = logging.getLogger("llm_gateway")


def get_provider_class(provider_name: str) -> Type[ProviderAdapter]:
    """
    Returns the adapter class for a given provider.
    """
    provider_class = PROVIDER_PLUGINS.get(provider_name.lower())
    if not provider_class:
        raise ValueError(f"Unknown provider: {provider_name}")
    return provider_class


def get_available_providers() -> List[str]:
    """
    Returns a list of available provider names, in registration order.
    """
    return list(PROVIDER_PLUGINS.keys())


def build_adapters(
    settings: GatewaySettings,
    http_client: Optional[httpx.AsyncClient] = None,
    clock: Clock = time.time,
    sleep: Sleep = asyncio.sleep,
) -> List[ProviderAdapter]:
    """
    Instantiate every enabled adapter in routing order.

    An adapter is kept when it is not switched off with ENABLE_<NAME>=false
    and, if it needs credentials, has at least one key. A provider whose
    construction fails is logged and left out.
    """
    adapters: List[ProviderAdapter] = []
    order = settings.provider_order or tuple(get_available_providers())

    for name in order:
        provider_settings = settings.provider(name)
        if not provider_settings.enabled:
            lib_logger.debug(f"Provider {name} disabled by config")
            continue

        try:
            adapter = get_provider_class(name)(
                provider_settings,
                http_client=http_client,
                request_timeout=settings.request_timeout,
                max_retries=settings.adapter_max_retries,
                backoff_base=settings.adapter_backoff_base,
                key_cooldown=settings.key_cooldown,
                catalog_ttl=settings.catalog_ttl,
                clock=clock,
                sleep=sleep,
            )
        except Exception as e:
            lib_logger.error(f"Failed to initialize provider {name}: {e}", exc_info=True)
            continue

        if not adapter.enabled:
            lib_logger.debug(f"Provider {name} missing configuration (no API keys)")
            continue

        adapters.append(adapter)
        lib_logger.info(
            f"Provider {name} enabled with {len(adapter.key_rotator)} key(s)"
            if adapter.requires_api_key
            else f"Provider {name} enabled (keyless)"
        )

    return adapters
