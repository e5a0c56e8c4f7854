# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/providers/__init__.py

from typing import Dict, Type

from .provider_interface import ChatResult, ProviderAdapter
from .openai_compatible import OpenAICompatibleAdapter
from .hackclub_provider import HackClubProvider
from .groq_provider import GroqProvider
from .cerebras_provider import CerebrasProvider
from .openrouter_provider import OpenRouterProvider
from .together_provider import TogetherProvider
from .mistral_provider import MistralProvider

# Registration order is the default routing priority: keyless first
PROVIDER_PLUGINS: Dict[str, Type[ProviderAdapter]] = {
    cls.name: cls
    for cls in (
        HackClubProvider,
        GroqProvider,
        CerebrasProvider,
        OpenRouterProvider,
        TogetherProvider,
        MistralProvider,
    )
}

__all__ = [
    "ChatResult",
    "ProviderAdapter",
    "OpenAICompatibleAdapter",
    "HackClubProvider",
    "GroqProvider",
    "CerebrasProvider",
    "OpenRouterProvider",
    "TogetherProvider",
    "MistralProvider",
    "PROVIDER_PLUGINS",
]
