# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
OpenAI-compatible API routes.

This module contains the OpenAI-compatible endpoints:
- Chat completions (/v1/chat/completions)
- Models list (/v1/models)
"""

import json
import logging

from fastapi import APIRouter, Request, HTTPException, Depends
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from llm_gateway import ChatStream, ProviderManager

from gateway_app.dependencies import get_provider_manager, verify_api_key
from gateway_app.error_mapping import map_gateway_error
from gateway_app.models import ChatCompletionRequest, ModelCard, ModelList
from gateway_app.streaming import streaming_response_wrapper

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/v1/chat/completions")
async def chat_completions(
    request: Request,
    manager: ProviderManager = Depends(get_provider_manager),
    _=Depends(verify_api_key),
):
    """
    OpenAI-compatible chat completions endpoint.
    Handles both streaming and non-streaming responses.
    """
    try:
        # Read and parse the request body
        try:
            request_data = await request.json()
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="Invalid JSON in request body.")

        try:
            body = ChatCompletionRequest.model_validate(request_data)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=f"Invalid Request: {e.errors()}")

        logger.info(f"Chat request for {body.model} (stream={body.stream})")
        result = await manager.chat(body.model, body.messages, **body.options())

        if isinstance(result, ChatStream):
            return StreamingResponse(
                streaming_response_wrapper(request, result),
                media_type="text/event-stream",
            )
        return result

    except HTTPException:
        raise
    except Exception as e:
        raise map_gateway_error(e, "chat_completions")


@router.get("/v1/models", response_model=ModelList)
async def list_models(
    manager: ProviderManager = Depends(get_provider_manager),
    _=Depends(verify_api_key),
):
    """Returns every model the enabled providers can serve, in routing order."""
    models = await manager.list_available_models()
    return ModelList(data=[ModelCard(**m.to_openai_dict()) for m in models])


@router.get("/v1/models/{model_id:path}", response_model=ModelCard)
async def get_model(
    model_id: str,
    manager: ProviderManager = Depends(get_provider_manager),
    _=Depends(verify_api_key),
):
    """Returns detailed information about a specific model."""
    for model in await manager.list_available_models():
        if model.id == model_id:
            return ModelCard(**model.to_openai_dict())
    raise HTTPException(status_code=404, detail=f"Model not found: {model_id}")


@router.get("/")
def read_root():
    """Root endpoint returning gateway status."""
    return {"Status": "LLM Gateway is running"}
