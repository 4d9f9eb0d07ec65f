"""
Shared service instances for the API.

Provides ``get_data_manager()`` and ``get_report_service()`` dependencies
backed by process-wide singletons built from ``AppConfig`` on first use.
Tests swap them out with ``configure()`` (or FastAPI's
``dependency_overrides``).

Usage in a route::

    from api.dependencies import get_data_manager
    from fastapi import Depends

    @router.get("/example")
    def example(manager=Depends(get_data_manager)):
        ...
"""

import logging
import threading
from typing import Optional

from pipeline.data_manager import EntityDataManager
from pipeline.reports import ReportService
from pipeline.sources import RowSource, build_row_source
from utils.config import AppConfig

logger = logging.getLogger(__name__)

_manager: Optional[EntityDataManager] = None
_reports: Optional[ReportService] = None
_lock = threading.Lock()


def configure(source: Optional[RowSource] = None,
              config: Optional[AppConfig] = None,
              manager: Optional[EntityDataManager] = None) -> EntityDataManager:
    """(Re)build the singletons from a source, a config or a ready manager."""
    global _manager, _reports
    cfg = config or AppConfig.from_env()
    if manager is None:
        manager = EntityDataManager(source or build_row_source(cfg),
                                    ttl_seconds=cfg.cache_ttl_seconds)
    with _lock:
        _manager = manager
        _reports = ReportService(manager)
    logger.info("Entity data manager configured (ttl=%ss)", manager.ttl_seconds)
    return manager


def reset() -> None:
    """Forget the singletons; the next request rebuilds them from the environment."""
    global _manager, _reports
    with _lock:
        _manager = None
        _reports = None


def get_data_manager() -> EntityDataManager:
    """FastAPI dependency: the process-wide entity data manager."""
    if _manager is None:
        configure()
    return _manager


def get_report_service() -> ReportService:
    """FastAPI dependency: report views bound to the data manager."""
    if _reports is None:
        configure()
    return _reports
