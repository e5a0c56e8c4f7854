# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/providers/cerebras_provider.py

from typing import Any, Dict, Optional

from .openai_compatible import OpenAICompatibleAdapter
from ..core.types import ModelDescriptor


class CerebrasProvider(OpenAICompatibleAdapter):
    name = "cerebras"
    default_base_url = "https://api.cerebras.ai/v1"
    unsupported_params = frozenset({"frequency_penalty", "presence_penalty", "logit_bias"})

    def parse_model_entry(self, entry: Dict[str, Any]) -> Optional[ModelDescriptor]:
        model_id = entry.get("id")
        if not isinstance(model_id, str) or not model_id:
            return None
        return self.build_descriptor(
            model_id,
            context_length=entry.get("context_length") or 8192,
            owned_by="https://cerebras.ai",
            created=entry.get("created"),
        )
