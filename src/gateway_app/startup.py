# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Application startup and shutdown logic.

This module contains the lifespan context manager that owns the provider
manager and the background health checker.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from llm_gateway import HealthChecker, ProviderManager
from llm_gateway.core.errors import mask_credential

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(
    app: FastAPI,
    manager: Optional[ProviderManager] = None,
    health_checker: Optional[HealthChecker] = None,
):
    """
    Manage the ProviderManager's lifecycle with the app's lifespan.

    Objects passed in are used as-is and left open on shutdown; anything
    built here from the environment is closed here too.
    """
    owns_manager = manager is None
    if manager is None:
        manager = ProviderManager.from_env()

    owns_checker = health_checker is None
    if health_checker is None:
        health_checker = HealthChecker(manager, manager.settings.health)

    app.state.provider_manager = manager
    app.state.health_checker = health_checker

    # Warn if nothing can serve requests
    if not manager.adapters:
        logging.warning("=" * 70)
        logging.warning("⚠️  NO PROVIDERS ENABLED")
        logging.warning("The gateway is running but cannot serve any chat requests.")
        logging.warning("Set <PROVIDER>_API_KEY variables in .env and restart.")
        logging.warning("=" * 70)
    else:
        for adapter in manager.adapters:
            keys = ", ".join(mask_credential(k.secret) for k in adapter.key_rotator.keys)
            logging.info(f"Provider {adapter.name}: {keys or 'no key required'}")

    if owns_checker and health_checker.settings.enabled and manager.adapters:
        health_checker.start_health_checks()
        logging.info("ProviderManager and HealthChecker initialized.")
    else:
        logging.info("ProviderManager initialized (background health checks disabled).")

    if not os.getenv("GATEWAY_API_KEY"):
        logging.warning("GATEWAY_API_KEY is not set: the gateway accepts unauthenticated requests.")

    yield

    # Shutdown
    await health_checker.stop_health_checks()
    if owns_manager:
        await manager.aclose()
    logging.info("ProviderManager closed.")
