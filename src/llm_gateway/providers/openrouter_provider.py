# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/providers/openrouter_provider.py

from typing import Any, Dict, Optional

from .openai_compatible import OpenAICompatibleAdapter
from ..core.types import ModelDescriptor

# Listed upstream but broken or permanently gone
IGNORED_MODELS = frozenset(
    {
        "quasar-alpha",
        "google/gemini-2.5-pro-preview-03-25",
        "all-hands/openhands-lm-32b-v0.1",
        "deepseek/deepseek-v3-base:free",
        "deepseek-ai/deepseek-coder-33b-instruct:free",
    }
)


def _price(value: Any) -> Optional[float]:
    # OpenRouter reports per-token prices as decimal strings
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def is_free_model(entry: Dict[str, Any]) -> bool:
    model_id = str(entry.get("id", ""))
    if model_id.endswith(":free"):
        return True
    pricing = entry.get("pricing")
    if not isinstance(pricing, dict):
        return False
    return _price(pricing.get("prompt")) == 0 and _price(pricing.get("completion")) == 0


class OpenRouterProvider(OpenAICompatibleAdapter):
    name = "openrouter"
    default_base_url = "https://openrouter.ai/api/v1"
    default_headers = {
        "HTTP-Referer": "https://github.com/llm-gateway/llm-gateway",
        "X-Title": "LLM Gateway",
    }

    def parse_model_entry(self, entry: Dict[str, Any]) -> Optional[ModelDescriptor]:
        model_id = entry.get("id")
        if not isinstance(model_id, str) or model_id in IGNORED_MODELS:
            return None
        if not is_free_model(entry):
            return None

        architecture = entry.get("architecture") or {}
        modalities = architecture.get("input_modalities") or []
        return self.build_descriptor(
            model_id,
            context_length=entry.get("context_length"),
            display_name=entry.get("name"),
            owned_by=model_id.split("/")[0] if "/" in model_id else None,
            images="image" in modalities,
            audio="audio" in modalities,
            created=entry.get("created"),
        )
