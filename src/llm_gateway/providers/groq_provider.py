# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/providers/groq_provider.py

from typing import Any, Dict, Optional

from .openai_compatible import OpenAICompatibleAdapter
from ..core.types import ModelDescriptor

# Substrings of model ids that are not chat models
NON_CHAT_MARKERS = ("whisper", "tts", "guard", "playai", "distil")


class GroqProvider(OpenAICompatibleAdapter):
    name = "groq"
    default_base_url = "https://api.groq.com/openai/v1"
    unsupported_params = frozenset({"logprobs", "top_logprobs", "logit_bias", "n"})

    def parse_model_entry(self, entry: Dict[str, Any]) -> Optional[ModelDescriptor]:
        model_id = entry.get("id")
        if not isinstance(model_id, str) or entry.get("active") is False:
            return None
        if any(marker in model_id.lower() for marker in NON_CHAT_MARKERS):
            return None
        return self.build_descriptor(
            model_id,
            context_length=entry.get("context_window"),
            owned_by=entry.get("owned_by"),
            images="vision" in model_id.lower() or "llama-4" in model_id.lower(),
            created=entry.get("created"),
        )
