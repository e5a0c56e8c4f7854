# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/providers/hackclub_provider.py

import logging
from typing import List

import httpx

from .openai_compatible import OpenAICompatibleAdapter
from ..core.types import ModelDescriptor

lib_logger = logging.getLogger("llm_gateway")

# Served when the /model endpoint is unreachable
DEFAULT_MODEL = "meta-llama/llama-4-maverick-17b-128e-instruct"
CONTEXT_LENGTH = 10_000_000


class HackClubProvider(OpenAICompatibleAdapter):
    """
    Keyless upstream that serves exactly one model at a time.

    GET {base}/model answers with the current model id as plain text.
    """

    name = "hackclub"
    requires_api_key = False
    default_base_url = "https://ai.hackclub.com"

    def _describe(self, model_id: str) -> ModelDescriptor:
        return self.build_descriptor(
            model_id,
            context_length=CONTEXT_LENGTH,
            owned_by="https://hackclub.com",
        )

    async def fetch_models(self) -> List[ModelDescriptor]:
        try:
            response = await self.http_client.get(
                f"{self.base_url}/model",
                headers={"Accept": "text/plain"},
                timeout=min(self.request_timeout, 20.0),
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            lib_logger.warning(
                f"hackclub: could not fetch current model ({e}), using {DEFAULT_MODEL}",
                extra={"provider": self.name, "event": "catalog_fallback"},
            )
            return [self._describe(DEFAULT_MODEL)]

        model_id = response.text.strip()
        return [self._describe(model_id or DEFAULT_MODEL)]
