# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/validation.py

from typing import Any, Dict, List, Mapping

from .core.constants import VALID_ROLES
from .core.errors import InvalidRequestError


def validate_message(message: Any, index: int = 0) -> None:
    if not isinstance(message, Mapping):
        raise InvalidRequestError(f"messages[{index}] must be an object")

    role = message.get("role")
    if role not in VALID_ROLES:
        raise InvalidRequestError(f"messages[{index}] has invalid role: {role!r}")

    content = message.get("content")
    if isinstance(content, str):
        return
    if not isinstance(content, list):
        raise InvalidRequestError(f"messages[{index}] content must be a string or a list of parts")

    for part in content:
        if not isinstance(part, Mapping):
            raise InvalidRequestError(f"messages[{index}] content parts must be objects")
        part_type = part.get("type")
        if part_type == "text":
            if not isinstance(part.get("text"), str):
                raise InvalidRequestError(f"messages[{index}] has invalid text content")
        elif part_type == "image_url":
            image_url = part.get("image_url")
            url = image_url.get("url") if isinstance(image_url, Mapping) else image_url
            if not isinstance(url, str) or not url:
                raise InvalidRequestError(f"messages[{index}] has an image part without a URL")
        elif part_type is None:
            raise InvalidRequestError(f"messages[{index}] content part is missing a type")


def validate_messages(messages: Any) -> List[Dict[str, Any]]:
    if not isinstance(messages, list) or not messages:
        raise InvalidRequestError("messages must be a non-empty array")
    for index, message in enumerate(messages):
        validate_message(message, index)
    return messages


def validate_options(options: Mapping[str, Any]) -> None:
    temperature = options.get("temperature")
    if temperature is not None:
        if isinstance(temperature, bool) or not isinstance(temperature, (int, float)):
            raise InvalidRequestError("temperature must be a number")
        if not 0 <= temperature <= 2:
            raise InvalidRequestError("temperature must be between 0 and 2")

    max_tokens = options.get("max_tokens")
    if max_tokens is not None:
        if isinstance(max_tokens, bool) or not isinstance(max_tokens, int) or max_tokens < 1:
            raise InvalidRequestError("max_tokens must be a positive integer")


def validate_chat_request(messages: Any, options: Mapping[str, Any]) -> None:
    """Validate a chat call before anything is sent upstream."""
    validate_messages(messages)
    model = options.get("model")
    if not isinstance(model, str) or not model.strip():
        raise InvalidRequestError("model is required")
    validate_options(options)
