# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/providers/mistral_provider.py

from typing import Any, Dict, Optional

from .openai_compatible import OpenAICompatibleAdapter
from ..core.types import ModelDescriptor


class MistralProvider(OpenAICompatibleAdapter):
    name = "mistral"
    default_base_url = "https://api.mistral.ai/v1"
    unsupported_params = frozenset({"logit_bias", "logprobs", "top_logprobs", "user"})

    def parse_model_entry(self, entry: Dict[str, Any]) -> Optional[ModelDescriptor]:
        model_id = entry.get("id")
        if not isinstance(model_id, str):
            return None
        capabilities = entry.get("capabilities") or {}
        if not capabilities.get("completion_chat"):
            return None
        # Deprecated models stay listed until their retirement date
        if entry.get("deprecation"):
            return None
        return self.build_descriptor(
            model_id,
            context_length=entry.get("max_context_length"),
            display_name=entry.get("name"),
            owned_by="https://mistral.ai",
            images=bool(capabilities.get("vision")),
            created=entry.get("created"),
        )
