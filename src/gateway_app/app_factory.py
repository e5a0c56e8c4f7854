# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""Builds the gateway's FastAPI application."""

import os
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from llm_gateway import HealthChecker, ProviderManager, __version__

from gateway_app.routes import admin, openai
from gateway_app.startup import lifespan


def cors_origins() -> List[str]:
    """GATEWAY_CORS_ORIGINS as a list; unset means any origin."""
    raw = os.getenv("GATEWAY_CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app(
    manager: Optional[ProviderManager] = None,
    health_checker: Optional[HealthChecker] = None,
) -> FastAPI:
    """
    Create the gateway app.

    Args:
        manager: Provider manager to serve; built from the environment when omitted
        health_checker: Health checker to expose; background checks only run
            for the one built at startup
    """
    app = FastAPI(
        title="LLM Gateway",
        description="OpenAI-compatible gateway with provider fallback and key rotation",
        version=__version__,
        lifespan=lambda app: lifespan(app, manager, health_checker),
    )
    # The gateway authenticates with bearer keys, never cookies
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )
    app.include_router(openai.router)
    app.include_router(admin.router)
    return app
