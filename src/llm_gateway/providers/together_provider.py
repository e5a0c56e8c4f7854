# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/providers/together_provider.py

from typing import Any, Dict, Optional

from .openai_compatible import OpenAICompatibleAdapter
from ..core.types import ModelDescriptor

UNRELIABLE_MODELS = frozenset({"togethercomputer/MoA-1", "togethercomputer/MoA-1-Turbo"})


class TogetherProvider(OpenAICompatibleAdapter):
    """Together AI. Only zero-priced chat models are exposed."""

    name = "together"
    default_base_url = "https://api.together.xyz/v1"

    def parse_model_entry(self, entry: Dict[str, Any]) -> Optional[ModelDescriptor]:
        model_id = entry.get("id")
        if not isinstance(model_id, str) or model_id in UNRELIABLE_MODELS:
            return None
        if entry.get("type") != "chat":
            return None

        pricing = entry.get("pricing")
        if not isinstance(pricing, dict):
            return None
        if any(pricing.get(k, 0) != 0 for k in ("input", "output", "hourly")):
            return None

        config = entry.get("config") or {}
        return self.build_descriptor(
            model_id,
            context_length=entry.get("context_length") or config.get("context_length"),
            display_name=entry.get("display_name"),
            owned_by=entry.get("link") or entry.get("organization") or "https://api.together.xyz",
            images="vision" in model_id.lower(),
            created=entry.get("created"),
        )
