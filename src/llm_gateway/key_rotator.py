# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/key_rotator.py

import logging
import math
import threading
import time
from typing import Callable, Dict, Iterable, List, Optional

from .core.constants import DEFAULT_KEY_COOLDOWN
from .core.errors import mask_credential
from .core.types import ApiKeyState, KeyErrorKind

lib_logger = logging.getLogger("llm_gateway")


class KeyRotator:
    """
    Cooldown-aware selection over an ordered pool of API keys.

    The rotation pointer stays on the last key handed out, so a healthy key
    keeps serving until it fails; a failed key hands over to the next eligible
    one. Rate-limited keys come back after `cooldown` seconds, auth-failed keys
    only through reset().

    State is shared by every in-flight request of the owning adapter, so all
    reads and writes go through a lock. None of the methods block on I/O.
    """

    def __init__(
        self,
        secrets: Iterable[str],
        cooldown: float = DEFAULT_KEY_COOLDOWN,
        clock: Callable[[], float] = time.time,
        provider: str = "",
    ):
        self._keys: List[ApiKeyState] = [ApiKeyState(secret=s) for s in secrets]
        self._pointer = 0
        self._lock = threading.Lock()
        self.cooldown = cooldown
        self.clock = clock
        self.provider = provider

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def keys(self) -> List[ApiKeyState]:
        return list(self._keys)

    def _cooldown_remaining(self, state: ApiKeyState, now: float) -> float:
        if state.error_kind == KeyErrorKind.AUTH:
            return math.inf
        if state.error_kind == KeyErrorKind.RATE_LIMIT and state.last_error_at is not None:
            return max(0.0, state.last_error_at + self.cooldown - now)
        return 0.0

    def get_active_key(self) -> Optional[ApiKeyState]:
        """Return the first eligible key starting at the pointer, or None."""
        with self._lock:
            now = self.clock()
            count = len(self._keys)
            for offset in range(count):
                index = (self._pointer + offset) % count
                state = self._keys[index]
                if self._cooldown_remaining(state, now) > 0:
                    continue
                self._pointer = index
                return state
            return None

    def mark_auth_failure(self, state: ApiKeyState) -> None:
        with self._lock:
            state.error_kind = KeyErrorKind.AUTH
            state.last_error_at = self.clock()
        lib_logger.warning(
            f"{self.provider}: key {mask_credential(state.secret)} rejected by upstream, "
            "benched until reset",
            extra={"provider": self.provider, "event": "key_auth_failure"},
        )

    def mark_rate_limited(self, state: ApiKeyState) -> None:
        with self._lock:
            # An auth-benched key never downgrades to a timed cooldown
            if state.error_kind != KeyErrorKind.AUTH:
                state.error_kind = KeyErrorKind.RATE_LIMIT
                state.last_error_at = self.clock()
        lib_logger.warning(
            f"{self.provider}: key {mask_credential(state.secret)} rate limited, "
            f"cooling down for {self.cooldown:.0f}s",
            extra={"provider": self.provider, "event": "key_rate_limited"},
        )

    def mark_success(self, state: ApiKeyState) -> None:
        with self._lock:
            if state.error_kind == KeyErrorKind.RATE_LIMIT:
                state.error_kind = KeyErrorKind.NONE
                state.last_error_at = None

    def reset(self, secret: Optional[str] = None) -> None:
        """Clear error state for one key, or for every key when secret is None."""
        with self._lock:
            for state in self._keys:
                if secret is None or state.secret == secret:
                    state.error_kind = KeyErrorKind.NONE
                    state.last_error_at = None

    def next_available_in(self) -> Optional[float]:
        """
        Seconds until some key becomes eligible again.

        0.0 when a key is eligible now, None when every key is benched for
        auth failures (or the pool is empty).
        """
        with self._lock:
            now = self.clock()
            remaining = [self._cooldown_remaining(s, now) for s in self._keys]
        finite = [r for r in remaining if r != math.inf]
        return min(finite) if finite else None

    def snapshot(self) -> List[Dict[str, object]]:
        """Masked view of key state for status endpoints."""
        with self._lock:
            now = self.clock()
            return [
                {
                    "key": mask_credential(state.secret),
                    "error_kind": state.error_kind.value,
                    "last_error_at": state.last_error_at,
                    "active": index == self._pointer,
                    "cooldown_remaining": (
                        None
                        if state.error_kind == KeyErrorKind.AUTH
                        else round(self._cooldown_remaining(state, now), 3)
                    ),
                }
                for index, state in enumerate(self._keys)
            ]
