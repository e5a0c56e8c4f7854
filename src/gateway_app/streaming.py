# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Streaming response handling for the gateway application.

This module turns a ChatStream into the SSE byte stream sent to clients.
"""

import logging
from typing import AsyncGenerator

from fastapi import Request

from llm_gateway import ChatStream, GatewayError
from llm_gateway.utils import DONE_SENTINEL, format_sse

from gateway_app.error_mapping import create_error_body

logger = logging.getLogger(__name__)


async def streaming_response_wrapper(
    request: Request,
    stream: ChatStream,
) -> AsyncGenerator[str, None]:
    """
    Relay chunks as SSE events and make sure failures reach the client.

    A failure mid-stream is sent as a final error event followed by
    [DONE]. The upstream connection is released however the loop ends.
    """
    try:
        async for chunk in stream:
            if await request.is_disconnected():
                logger.warning("Client disconnected, stopping stream.")
                break
            yield format_sse(chunk)
        else:
            yield format_sse(DONE_SENTINEL)
    except GatewayError as e:
        logger.error(f"Stream from {stream.provider} failed: {e}")
        yield format_sse(create_error_body(e))
        yield format_sse(DONE_SENTINEL)
    except Exception as e:
        logger.error(f"An error occurred during the response stream: {e}")
        error_payload = {
            "error": {
                "message": f"An unexpected error occurred during the stream: {str(e)}",
                "type": "gateway_internal_error",
                "code": 500,
            }
        }
        yield format_sse(error_payload)
        yield format_sse(DONE_SENTINEL)
    finally:
        await stream.aclose()
