# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Admin and monitoring API routes.

This module contains administrative endpoints including:
- Provider status (/v1/providers)
- Provider cooldown reset (/v1/providers/{name}/reset)
- Model health (/v1/health)
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends

from llm_gateway import HealthChecker, ProviderManager

from gateway_app.dependencies import (
    get_health_checker,
    get_provider_manager,
    verify_api_key,
)
from gateway_app.error_mapping import map_gateway_error
from gateway_app.models import HealthRecordModel, HealthReport

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/v1/providers")
async def list_providers(
    manager: ProviderManager = Depends(get_provider_manager),
    _=Depends(verify_api_key),
):
    """Returns availability, key state and catalog size for every enabled provider."""
    return manager.get_provider_status()


@router.post("/v1/providers/{name}/reset")
async def reset_provider(
    name: str,
    reset_keys: bool = False,
    manager: ProviderManager = Depends(get_provider_manager),
    _=Depends(verify_api_key),
):
    """Clear a provider's cooldown (and with ?reset_keys=true, its benched keys)."""
    if not manager.reset_provider(name, reset_keys=reset_keys):
        raise HTTPException(status_code=404, detail=f"Unknown provider: {name}")
    return manager.get_provider_status()[name]


@router.get("/v1/health", response_model=HealthReport)
async def health_status(
    health_checker: Optional[HealthChecker] = Depends(get_health_checker),
    _=Depends(verify_api_key),
):
    """Returns the latest health record of every probed model."""
    if health_checker is None:
        return HealthReport()
    return HealthReport(
        checking=health_checker.is_checking,
        last_cycle_at=health_checker.last_cycle_at,
        models={
            record.model_id: HealthRecordModel(**record.to_dict())
            for record in health_checker.get_status()
        },
    )


@router.post("/v1/health/{model_id:path}", response_model=HealthRecordModel)
async def probe_model(
    model_id: str,
    health_checker: Optional[HealthChecker] = Depends(get_health_checker),
    _=Depends(verify_api_key),
):
    """Probe one model now and return its fresh health record."""
    if health_checker is None:
        raise HTTPException(status_code=503, detail="Health checker not initialized")
    try:
        record = await health_checker.test_model(model_id)
    except Exception as e:
        raise map_gateway_error(e, "probe_model")
    return HealthRecordModel(**record.to_dict())
