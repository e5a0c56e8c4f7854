# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/utils/text.py

import json
from typing import Any, List


def content_to_text(content: Any) -> str:
    """Flatten chat message content (string or part list) into plain text."""
    if content is None:
        return ""

    if isinstance(content, str):
        return content

    if isinstance(content, list):
        parts: List[str] = []
        for item in content:
            if isinstance(item, dict):
                if item.get("type") in {"text", "output_text"} and isinstance(
                    item.get("text"), str
                ):
                    parts.append(item["text"])
                elif item.get("type") == "refusal" and isinstance(item.get("refusal"), str):
                    parts.append(item["refusal"])
            elif isinstance(item, str):
                parts.append(item)
        return "\n".join(parts)

    if isinstance(content, dict):
        if isinstance(content.get("text"), str):
            return content["text"]
        return json.dumps(content)

    return str(content)


def extract_response_text(response: Any) -> str:
    """
    Pull the assistant text out of whatever a chat call returned.

    Handles full responses (choices[0].message.content), single chunks
    (choices[0].delta.content) and bare strings. Anything else yields "".
    """
    if isinstance(response, str):
        return response

    if not isinstance(response, dict):
        return ""

    choices = response.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""

    choice = choices[0]
    for key in ("message", "delta"):
        body = choice.get(key)
        if isinstance(body, dict) and body.get("content"):
            return content_to_text(body["content"])

    if isinstance(choice.get("text"), str):
        return choice["text"]
    return ""


def count_words(text: str) -> int:
    return len(text.split()) if text else 0
