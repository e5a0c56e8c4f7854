# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/config.py
"""
Immutable gateway configuration, loaded once from environment variables.

Per provider NAME (upper-cased):
    ENABLE_NAME                 "false" disables the adapter (default: enabled)
    NAME_API_KEY                primary key
    NAME_BACKUP_KEY_<n>         backup keys, tried in numeric order
    NAME_API_KEY_<n>            numbered keys, tried in numeric order
    NAME_API_BASE               base URL override
    NAME_DISABLED_MODELS        comma-separated upstream model ids to hide
    NAME_MIN_REQUEST_INTERVAL   minimum seconds between requests (default 0)

Global knobs are listed on GatewaySettings.from_env().
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from .core.constants import (
    DEFAULT_BACKOFF_BASE,
    DEFAULT_CATALOG_TTL,
    DEFAULT_HEALTH_CHECK_DELAY,
    DEFAULT_HEALTH_CHECK_INTERVAL,
    DEFAULT_HEALTH_CHECK_MIN_WORDS,
    DEFAULT_HEALTH_CHECK_RETRIES,
    DEFAULT_HEALTH_CHECK_RETRY_DELAY,
    DEFAULT_HEALTH_CHECK_TIMEOUT,
    DEFAULT_KEY_COOLDOWN,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PROVIDER_COOLDOWN,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY,
)

lib_logger = logging.getLogger("llm_gateway")


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def _env_bool(env: Mapping[str, str], key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    return env.get(key, str(default).lower()).strip().lower() in ("true", "1", "yes")


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    """Get integer from environment variable, falling back on bad input."""
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        lib_logger.warning(f"Invalid integer for {key}: {raw!r}. Using {default}.")
        return default


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        lib_logger.warning(f"Invalid number for {key}: {raw!r}. Using {default}.")
        return default


def _env_list(env: Mapping[str, str], key: str) -> List[str]:
    return [item.strip() for item in env.get(key, "").split(",") if item.strip()]


def discover_api_keys(env: Mapping[str, str], provider: str) -> Tuple[str, ...]:
    """
    Collect the API keys configured for a provider, primary first.

    Duplicates are dropped so the same secret never occupies two slots.
    """
    prefix = provider.upper()
    numbered = re.compile(rf"^{prefix}_(?:API_KEY|BACKUP_KEY)_(\d+)$")

    keys: List[str] = []
    primary = env.get(f"{prefix}_API_KEY", "").strip()
    if primary:
        keys.append(primary)

    extra: List[Tuple[int, str, str]] = []
    for name, value in env.items():
        match = numbered.match(name)
        if match and value and value.strip():
            # BACKUP_KEY_n sorts ahead of API_KEY_n at the same index
            kind = "a" if "_BACKUP_KEY_" in name else "b"
            extra.append((int(match.group(1)), kind, value.strip()))

    for _, _, value in sorted(extra):
        if value not in keys:
            keys.append(value)

    return tuple(keys)


# =============================================================================
# SETTINGS
# =============================================================================


@dataclass(frozen=True)
class ProviderSettings:
    name: str
    enabled: bool = True
    api_keys: Tuple[str, ...] = ()
    base_url: Optional[str] = None
    disabled_models: FrozenSet[str] = frozenset()
    min_request_interval: float = 0.0

    @classmethod
    def from_env(cls, name: str, env: Mapping[str, str]) -> "ProviderSettings":
        prefix = name.upper()
        return cls(
            name=name,
            enabled=_env_bool(env, f"ENABLE_{prefix}", True),
            api_keys=discover_api_keys(env, name),
            base_url=env.get(f"{prefix}_API_BASE") or None,
            disabled_models=frozenset(_env_list(env, f"{prefix}_DISABLED_MODELS")),
            min_request_interval=max(
                0.0, _env_float(env, f"{prefix}_MIN_REQUEST_INTERVAL", 0.0)
            ),
        )


@dataclass(frozen=True)
class HealthSettings:
    enabled: bool = True
    interval: float = DEFAULT_HEALTH_CHECK_INTERVAL
    model_delay: float = DEFAULT_HEALTH_CHECK_DELAY
    max_retries: int = DEFAULT_HEALTH_CHECK_RETRIES
    retry_delay: float = DEFAULT_HEALTH_CHECK_RETRY_DELAY
    min_words: int = DEFAULT_HEALTH_CHECK_MIN_WORDS
    probe_timeout: float = DEFAULT_HEALTH_CHECK_TIMEOUT

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "HealthSettings":
        return cls(
            enabled=_env_bool(env, "ENABLE_HEALTH_CHECKS", True),
            interval=_env_float(env, "HEALTH_CHECK_INTERVAL", DEFAULT_HEALTH_CHECK_INTERVAL),
            model_delay=_env_float(env, "HEALTH_CHECK_DELAY", DEFAULT_HEALTH_CHECK_DELAY),
            max_retries=max(1, _env_int(env, "HEALTH_CHECK_RETRIES", DEFAULT_HEALTH_CHECK_RETRIES)),
            retry_delay=_env_float(
                env, "HEALTH_CHECK_RETRY_DELAY", DEFAULT_HEALTH_CHECK_RETRY_DELAY
            ),
            min_words=max(1, _env_int(env, "HEALTH_CHECK_MIN_WORDS", DEFAULT_HEALTH_CHECK_MIN_WORDS)),
            probe_timeout=_env_float(env, "HEALTH_CHECK_TIMEOUT", DEFAULT_HEALTH_CHECK_TIMEOUT),
        )


@dataclass(frozen=True)
class GatewaySettings:
    key_cooldown: float = DEFAULT_KEY_COOLDOWN
    provider_cooldown: float = DEFAULT_PROVIDER_COOLDOWN
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay: float = DEFAULT_RETRY_DELAY
    adapter_max_retries: int = DEFAULT_MAX_RETRIES
    adapter_backoff_base: float = DEFAULT_BACKOFF_BASE
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    catalog_ttl: float = DEFAULT_CATALOG_TTL
    provider_order: Tuple[str, ...] = ()
    providers: Dict[str, ProviderSettings] = field(default_factory=dict)
    health: HealthSettings = field(default_factory=HealthSettings)

    @classmethod
    def from_env(
        cls,
        provider_names: Iterable[str],
        env: Optional[Mapping[str, str]] = None,
    ) -> "GatewaySettings":
        """
        Build settings from the environment.

        Global variables:
            KEY_COOLDOWN, PROVIDER_COOLDOWN, RETRY_ATTEMPTS, RETRY_DELAY,
            ADAPTER_MAX_RETRIES, ADAPTER_BACKOFF_BASE, REQUEST_TIMEOUT,
            MODEL_LIST_CACHE_TTL, PROVIDER_ORDER (comma-separated names).
        """
        env = os.environ if env is None else env
        names = list(provider_names)

        order = [name.lower() for name in _env_list(env, "PROVIDER_ORDER")]
        unknown = [name for name in order if name not in names]
        if unknown:
            lib_logger.warning(f"Ignoring unknown providers in PROVIDER_ORDER: {unknown}")
        order = [name for name in order if name in names]
        # Providers not named in PROVIDER_ORDER keep their registry position
        order += [name for name in names if name not in order]

        return cls(
            key_cooldown=_env_float(env, "KEY_COOLDOWN", DEFAULT_KEY_COOLDOWN),
            provider_cooldown=_env_float(env, "PROVIDER_COOLDOWN", DEFAULT_PROVIDER_COOLDOWN),
            retry_attempts=max(1, _env_int(env, "RETRY_ATTEMPTS", DEFAULT_RETRY_ATTEMPTS)),
            retry_delay=_env_float(env, "RETRY_DELAY", DEFAULT_RETRY_DELAY),
            adapter_max_retries=max(1, _env_int(env, "ADAPTER_MAX_RETRIES", DEFAULT_MAX_RETRIES)),
            adapter_backoff_base=_env_float(env, "ADAPTER_BACKOFF_BASE", DEFAULT_BACKOFF_BASE),
            request_timeout=_env_float(env, "REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            catalog_ttl=_env_float(env, "MODEL_LIST_CACHE_TTL", DEFAULT_CATALOG_TTL),
            provider_order=tuple(order),
            providers={name: ProviderSettings.from_env(name, env) for name in names},
            health=HealthSettings.from_env(env),
        )

    def provider(self, name: str) -> ProviderSettings:
        return self.providers.get(name) or ProviderSettings(name=name)
