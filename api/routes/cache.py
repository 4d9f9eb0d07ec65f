"""
Entity cache endpoints.

GET  /api/v1/cache/status   → cache state, age, counts and per-sheet load reports
POST /api/v1/cache/refresh  → force a reload from the row source
POST /api/v1/cache/clear    → drop the snapshot; the next request reloads
"""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_data_manager
from api.models import CacheStatusOut
from pipeline.data_manager import EntityDataManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/status", response_model=CacheStatusOut, summary="Entity cache status")
def cache_status(manager: EntityDataManager = Depends(get_data_manager)) -> dict:
    return manager.status()


@router.post("/refresh", response_model=CacheStatusOut, summary="Reload entity data")
def cache_refresh(manager: EntityDataManager = Depends(get_data_manager)) -> dict:
    """Reload every sheet now.

    A failed reload keeps the previous snapshot and answers 503.
    """
    manager.refresh()
    return manager.status()


@router.post("/clear", response_model=CacheStatusOut, summary="Drop cached entity data")
def cache_clear(manager: EntityDataManager = Depends(get_data_manager)) -> dict:
    manager.clear()
    return manager.status()
