# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/catalog.py

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterable, Optional, Tuple

from .core.constants import DEFAULT_CATALOG_TTL
from .core.types import ModelDescriptor

lib_logger = logging.getLogger("llm_gateway")

CatalogFetcher = Callable[[], Awaitable[Iterable[ModelDescriptor]]]


class ModelCatalog:
    """
    TTL-bounded snapshot of the models one adapter can serve.

    A refresh builds a new tuple and swaps the reference, so readers always
    see either the previous or the next catalog in full. Refreshes are
    single-flight: concurrent callers wait on the same lock and find the
    catalog fresh once the first one finishes.

    A failed fetch keeps the last-known-good snapshot and still counts as a
    refresh attempt, so a broken upstream is asked at most once per TTL.
    """

    def __init__(
        self,
        provider: str,
        fetcher: CatalogFetcher,
        ttl: float = DEFAULT_CATALOG_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.provider = provider
        self._fetcher = fetcher
        self.ttl = ttl
        self.clock = clock
        self._models: Tuple[ModelDescriptor, ...] = ()
        self._refreshed_at: Optional[float] = None
        self._last_error: Optional[str] = None
        self._lock = asyncio.Lock()

    @property
    def models(self) -> Tuple[ModelDescriptor, ...]:
        return self._models

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def is_stale(self) -> bool:
        if self._refreshed_at is None:
            return True
        return self.clock() - self._refreshed_at >= self.ttl

    def invalidate(self) -> None:
        self._refreshed_at = None

    async def get(self) -> Tuple[ModelDescriptor, ...]:
        """Return the catalog, refreshing it first when stale. Never raises."""
        if not self.is_stale():
            return self._models

        async with self._lock:
            if not self.is_stale():
                return self._models
            try:
                fetched = await self._fetcher()
                deduped = {}
                for model in fetched:
                    deduped.setdefault(model.id, model)
                self._models = tuple(deduped.values())
                self._last_error = None
                lib_logger.debug(
                    f"Refreshed {self.provider} catalog: {len(self._models)} models"
                )
            except Exception as e:
                self._last_error = str(e) or type(e).__name__
                lib_logger.warning(
                    f"Failed to refresh {self.provider} model catalog, "
                    f"keeping {len(self._models)} cached models: {self._last_error}",
                    extra={"provider": self.provider, "event": "catalog_refresh_failed"},
                )
            self._refreshed_at = self.clock()
            return self._models
