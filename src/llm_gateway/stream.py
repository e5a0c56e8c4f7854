# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/stream.py

import logging
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, Optional

lib_logger = logging.getLogger("llm_gateway")

ChunkDict = Dict[str, Any]


class ChatStream:
    """
    Lazy, finite, single-use stream of chat.completion.chunk dicts.

    Wraps the adapter's chunk generator together with a close hook that
    releases the upstream connection. The hook runs exactly once: when the
    stream is exhausted, when iteration raises, or when the consumer calls
    aclose() / leaves the `async with` block, including the case where
    iteration never started.
    """

    def __init__(
        self,
        chunks: AsyncGenerator[ChunkDict, None],
        *,
        model: str,
        provider: str,
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self._chunks = chunks
        self._on_close = on_close
        self._closed = False
        self.model = model
        self.provider = provider

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "ChatStream":
        return self

    async def __anext__(self) -> ChunkDict:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            await self.aclose()
            raise
        except BaseException:
            await self.aclose()
            raise

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._chunks.aclose()
        finally:
            if self._on_close is not None:
                try:
                    await self._on_close()
                except Exception as e:
                    lib_logger.debug(f"{self.provider}: error closing upstream stream: {e}")

    async def __aenter__(self) -> "ChatStream":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<ChatStream {self.model} via {self.provider} ({state})>"
