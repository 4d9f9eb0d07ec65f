"""
Pipeline package -- entity loading, caching and reporting.

Re-exports key entry points so callers can do::

    from pipeline import EntityDataManager, build_row_source, ReportService
"""

from pipeline.sources import (
    CsvExportRowSource,
    InMemoryRowSource,
    RetryingRowSource,
    SourceUnavailableError,
    WorkbookRowSource,
    build_row_source,
)
from pipeline.entities import Entity, EntityType, make_entity, parse_sheet
from pipeline.data_manager import CacheState, EntityDataManager, EntitySnapshot
from pipeline.reports import ReportService

__all__ = [
    "CsvExportRowSource",
    "InMemoryRowSource",
    "RetryingRowSource",
    "SourceUnavailableError",
    "WorkbookRowSource",
    "build_row_source",
    "Entity",
    "EntityType",
    "make_entity",
    "parse_sheet",
    "CacheState",
    "EntityDataManager",
    "EntitySnapshot",
    "ReportService",
]
