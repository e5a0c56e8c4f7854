# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/utils/__init__.py

from .sse import DONE_SENTINEL, format_sse, iter_sse_events
from .text import count_words, extract_response_text

__all__ = [
    "DONE_SENTINEL",
    "format_sse",
    "iter_sse_events",
    "count_words",
    "extract_response_text",
]
