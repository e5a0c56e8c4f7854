# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/utils/sse.py

import json
import logging
from typing import Any, AsyncGenerator, AsyncIterable, Dict, List, Optional, Union

lib_logger = logging.getLogger("llm_gateway")

DONE_SENTINEL = "[DONE]"


def _decode_event(event_lines: List[str]) -> Optional[str]:
    data_lines = [entry[5:].lstrip() for entry in event_lines if entry.startswith("data:")]
    if not data_lines:
        return None
    return "\n".join(data_lines).strip()


async def iter_sse_events(
    lines: AsyncIterable[str],
) -> AsyncGenerator[Any, None]:
    """
    Parse an SSE line stream into decoded JSON payloads.

    Stops at the [DONE] sentinel. Non-JSON payloads are skipped; payloads
    that decode to something other than an object are yielded as-is so the
    caller can decide what counts as malformed.
    """
    event_lines: List[str] = []

    async for line in lines:
        if line is None:
            continue

        if line == "":
            payload = _decode_event(event_lines)
            event_lines = []
            if not payload:
                continue
            if payload == DONE_SENTINEL:
                return
            try:
                yield json.loads(payload)
            except json.JSONDecodeError:
                lib_logger.debug(f"SSE non-JSON payload ignored: {payload[:200]}")
            continue

        if line.startswith(":"):
            # comment / keep-alive
            continue

        event_lines.append(line)

    # Flush trailing event if stream closes without blank line
    payload = _decode_event(event_lines)
    if payload and payload != DONE_SENTINEL:
        try:
            yield json.loads(payload)
        except json.JSONDecodeError:
            lib_logger.debug(f"SSE non-JSON payload ignored: {payload[:200]}")


def format_sse(data: Union[str, Dict[str, Any]]) -> str:
    """Encode one SSE event. Strings (the [DONE] sentinel) are sent verbatim."""
    if isinstance(data, str):
        return f"data: {data}\n\n"
    return f"data: {json.dumps(data)}\n\n"
