# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Pure conversion of upstream chat payloads into the gateway's OpenAI shape.

Nothing in here touches the network, so every function can be tested
against recorded upstream fixtures. Missing upstream fields are filled with
safe defaults rather than raising: callers rely on the output shape.
"""

import time
import uuid
from typing import Any, Dict, Optional

from .utils.text import content_to_text


def _new_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4().hex[:24]}"


def _coerce_int(value: Any) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


def _coerce_created(value: Any) -> int:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        return int(value)
    return int(time.time())


def normalize_usage(usage: Any) -> Dict[str, int]:
    if not isinstance(usage, dict):
        usage = {}
    prompt_tokens = _coerce_int(usage.get("prompt_tokens", usage.get("input_tokens")))
    completion_tokens = _coerce_int(
        usage.get("completion_tokens", usage.get("output_tokens"))
    )
    total_tokens = _coerce_int(usage.get("total_tokens")) or prompt_tokens + completion_tokens
    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": total_tokens,
    }


def _normalize_choice(choice: Any, index: int) -> Dict[str, Any]:
    if not isinstance(choice, dict):
        choice = {}
    message = choice.get("message")
    if not isinstance(message, dict):
        message = {}

    content = message.get("content")
    if content is None and isinstance(choice.get("text"), str):
        # legacy completions shape
        content = choice["text"]

    normalized_message: Dict[str, Any] = {
        "role": message.get("role") or "assistant",
        "content": content_to_text(content),
    }
    if message.get("tool_calls"):
        normalized_message["tool_calls"] = message["tool_calls"]

    return {
        "index": choice.get("index", index) if isinstance(choice.get("index"), int) else index,
        "message": normalized_message,
        "finish_reason": choice.get("finish_reason") or "stop",
    }


def normalize_response(raw: Any, model_id: str) -> Dict[str, Any]:
    """
    Convert an upstream chat.completion body into the gateway response.

    `model_id` is the provider-prefixed id the caller asked for; it is what
    the response reports, whatever name the upstream echoes back.
    """
    if not isinstance(raw, dict):
        raw = {}

    choices = raw.get("choices")
    if not isinstance(choices, list) or not choices:
        choices = [{}]

    return {
        "id": raw.get("id") if isinstance(raw.get("id"), str) and raw.get("id") else _new_completion_id(),
        "object": "chat.completion",
        "created": _coerce_created(raw.get("created")),
        "model": model_id,
        "choices": [_normalize_choice(choice, i) for i, choice in enumerate(choices)],
        "usage": normalize_usage(raw.get("usage")),
    }


def normalize_chunk(raw: Any, model_id: str, fallback_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Convert one upstream stream event into a chat.completion.chunk.

    Returns None for events that carry no usable choice/delta; the stream
    skips those instead of failing.
    """
    if not isinstance(raw, dict):
        return None

    choices = raw.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None

    choice = choices[0]
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return None

    normalized_delta: Dict[str, Any] = {}
    if delta.get("role"):
        normalized_delta["role"] = delta["role"]
    content = delta.get("content")
    if content is not None:
        normalized_delta["content"] = content_to_text(content)
    if delta.get("tool_calls"):
        normalized_delta["tool_calls"] = delta["tool_calls"]

    chunk: Dict[str, Any] = {
        "id": raw.get("id") if isinstance(raw.get("id"), str) and raw.get("id") else (fallback_id or _new_completion_id()),
        "object": "chat.completion.chunk",
        "created": _coerce_created(raw.get("created")),
        "model": model_id,
        "choices": [
            {
                "index": choice.get("index", 0) if isinstance(choice.get("index"), int) else 0,
                "delta": normalized_delta,
                "finish_reason": choice.get("finish_reason"),
            }
        ],
    }

    if isinstance(raw.get("usage"), dict):
        chunk["usage"] = normalize_usage(raw["usage"])

    return chunk
