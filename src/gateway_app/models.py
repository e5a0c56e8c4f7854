# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Pydantic models for the gateway application.

This module contains the request/response models used by the API endpoints.
"""

import time
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ChatCompletionRequest(BaseModel):
    """Request model for the chat completions endpoint.

    Unknown OpenAI parameters (top_p, stop, tools, ...) are kept and
    forwarded upstream untouched.
    """
    model: str
    messages: List[Dict[str, Any]]
    stream: bool = False
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    model_config = ConfigDict(extra="allow")

    def options(self) -> Dict[str, Any]:
        """Everything except model and messages, with unset fields dropped."""
        return self.model_dump(exclude={"model", "messages"}, exclude_none=True)


class ModelCard(BaseModel):
    """Model card with context length, capabilities and pricing."""
    id: str
    object: str = "model"
    created: int = Field(default_factory=lambda: int(time.time()))
    owned_by: str = "unknown"
    display_name: Optional[str] = None
    context_length: Optional[int] = None
    capabilities: Dict[str, bool] = Field(default_factory=dict)
    pricing: Dict[str, float] = Field(default_factory=dict)


class ModelList(BaseModel):
    """List of models response."""
    object: str = "list"
    data: List[ModelCard]


class HealthRecordModel(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    status: str
    last_checked_at: float
    latency_ms: Optional[int] = None
    last_error: Optional[str] = None
    attempts: int = 1


class HealthReport(BaseModel):
    """Health status of every probed model."""
    checking: bool = False
    last_cycle_at: Optional[float] = None
    models: Dict[str, HealthRecordModel] = Field(default_factory=dict)
