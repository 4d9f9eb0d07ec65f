"""
Entity data manager — single source of truth for loaded entities.

Loads the Agency, OEM and Vendor sheets once, turns them into frozen
Entities and serves that snapshot until it is older than the TTL
(``CACHE_TTL_SECONDS``, two minutes by default).

Cache states::

    EMPTY ──load──▶ LOADING ──ok──▶ FRESH ──ttl──▶ STALE ──load──▶ LOADING
                       │                                              │
                       └──fail──▶ (previous state, error raised) ◀────┘

Only one load runs at a time.  Callers that arrive during a load get the
previous snapshot; if there is none yet they wait for the in-flight load
instead of starting another.  A failed load keeps the previous snapshot
and raises ``SourceUnavailableError`` to the caller that triggered it.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from pipeline.entities import Entity, EntityType, parse_sheet
from pipeline.logging import SKIP_MISSING_SHEET, LoadReport, log_load_report
from pipeline.sources import RowSource, SourceUnavailableError
from utils.config import CACHE_TTL_SECONDS, ENTITY_LAYOUTS, EntityLayout

logger = logging.getLogger(__name__)


class CacheState(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"
    FRESH = "fresh"
    STALE = "stale"


@dataclass(frozen=True)
class EntitySnapshot:
    """All three entity lists from one load, plus its accounting."""

    agencies: tuple[Entity, ...]
    oems: tuple[Entity, ...]
    vendors: tuple[Entity, ...]
    loaded_at: float
    loaded_at_utc: str
    sequence: int = 0
    load_reports: Mapping[str, LoadReport] = field(default_factory=dict)

    def entities(self, entity_type: Optional[EntityType] = None) -> tuple[Entity, ...]:
        if entity_type is EntityType.AGENCY:
            return self.agencies
        if entity_type is EntityType.OEM:
            return self.oems
        if entity_type is EntityType.VENDOR:
            return self.vendors
        return self.agencies + self.oems + self.vendors

    def find(self, entity_id: str) -> Optional[Entity]:
        for entity in self.entities():
            if entity.id == entity_id:
                return entity
        return None

    def counts(self) -> dict[str, int]:
        return {
            "agencies": len(self.agencies),
            "oems": len(self.oems),
            "vendors": len(self.vendors),
        }


class EntityDataManager:
    """TTL-cached, single-flight loader for entity snapshots.

    Args:
        source: Row source the sheets are read from.
        layouts: Sheet layout per entity type (default ``ENTITY_LAYOUTS``).
        ttl_seconds: Snapshot lifetime.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(self, source: RowSource,
                 layouts: Optional[Mapping[str, EntityLayout]] = None,
                 ttl_seconds: float = CACHE_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self._source = source
        self._layouts = dict(layouts or ENTITY_LAYOUTS)
        self.ttl_seconds = ttl_seconds
        self._clock = clock

        self._lock = threading.Lock()
        self._load_finished = threading.Condition(self._lock)
        self._snapshot: Optional[EntitySnapshot] = None
        self._loading = False
        self._generation = 0
        self._last_error: Optional[BaseException] = None
        self._load_count = 0

    # ── state ─────────────────────────────────────────────────────────────

    def _is_stale(self, snapshot: EntitySnapshot) -> bool:
        return (self._clock() - snapshot.loaded_at) > self.ttl_seconds

    def needs_refresh(self) -> bool:
        """True when the cache is empty or older than the TTL."""
        with self._lock:
            return self._snapshot is None or self._is_stale(self._snapshot)

    @property
    def state(self) -> CacheState:
        with self._lock:
            if self._loading:
                return CacheState.LOADING
            if self._snapshot is None:
                return CacheState.EMPTY
            return CacheState.STALE if self._is_stale(self._snapshot) else CacheState.FRESH

    @property
    def load_count(self) -> int:
        """Number of loads started since construction."""
        return self._load_count

    # ── access ────────────────────────────────────────────────────────────

    def snapshot(self, force_refresh: bool = False) -> EntitySnapshot:
        """Return the current snapshot, loading it first when needed.

        Raises:
            SourceUnavailableError: if the triggered load fails, or if the
                first-ever load failed while this caller was waiting on it.
        """
        with self._lock:
            current = self._snapshot
            if current is not None and not force_refresh and not self._is_stale(current):
                return current
            if self._loading:
                if current is not None:
                    logger.debug("Load already in progress; serving previous snapshot")
                    return current
                while self._loading:
                    self._load_finished.wait()
                if self._snapshot is None:
                    if self._last_error is None:
                        raise SourceUnavailableError(
                            "Entity cache was cleared while the first load was in progress"
                        )
                    raise SourceUnavailableError(
                        f"Entity data could not be loaded: {self._last_error}"
                    )
                return self._snapshot
            self._loading = True
            self._load_count += 1
            sequence = self._load_count
            generation = self._generation

        try:
            fresh = self._load(sequence)
        except Exception as exc:
            with self._lock:
                self._loading = False
                self._last_error = exc
                self._load_finished.notify_all()
            logger.error("Entity load failed; keeping previous snapshot: %s", exc)
            if isinstance(exc, SourceUnavailableError):
                raise
            raise SourceUnavailableError(str(exc)) from exc

        with self._lock:
            self._loading = False
            self._last_error = None
            if generation == self._generation:
                self._snapshot = fresh
            self._load_finished.notify_all()
        return fresh

    def get_entities(self, entity_type: EntityType | str | None = None,
                     force_refresh: bool = False) -> tuple[Entity, ...]:
        """Entities of one type (or all types) from the current snapshot.

        Within the TTL repeated calls return the very same Entity objects.

        Raises:
            ValueError: for an unknown entity type string.
        """
        wanted = EntityType.parse(entity_type)
        return self.snapshot(force_refresh=force_refresh).entities(wanted)

    def get_entity(self, entity_id: str) -> Optional[Entity]:
        return self.snapshot().find(entity_id)

    def refresh(self) -> EntitySnapshot:
        """Force a reload regardless of age."""
        logger.info("Entity cache refresh requested")
        return self.snapshot(force_refresh=True)

    def clear(self) -> None:
        """Drop the snapshot; the next access loads from the source."""
        with self._lock:
            self._snapshot = None
            self._last_error = None
            self._generation += 1
        logger.info("Entity cache cleared")

    def status(self) -> dict[str, Any]:
        with self._lock:
            snap = self._snapshot
            loading = self._loading
            last_error = self._last_error
        if loading:
            state = CacheState.LOADING
        elif snap is None:
            state = CacheState.EMPTY
        else:
            state = CacheState.STALE if self._is_stale(snap) else CacheState.FRESH
        age = round(self._clock() - snap.loaded_at, 3) if snap else None
        return {
            "state": state.value,
            "has_data": snap is not None,
            "loaded_at": snap.loaded_at_utc if snap else None,
            "age_seconds": age,
            "ttl_seconds": self.ttl_seconds,
            "is_stale": snap is None or self._is_stale(snap),
            "entity_counts": snap.counts() if snap else {"agencies": 0, "oems": 0, "vendors": 0},
            "load_reports": {k: r.to_dict() for k, r in snap.load_reports.items()} if snap else {},
            "last_error": str(last_error) if last_error else None,
        }

    # ── loading ───────────────────────────────────────────────────────────

    def _load_sheet(self, entity_type: EntityType) -> tuple[list[Entity], LoadReport]:
        layout = self._layouts[entity_type.value]
        report = LoadReport(sheet_name=layout.sheet_name, entity_type=entity_type.value).start()
        try:
            rows = self._source.read_all_rows(layout.sheet_name)
        except Exception as exc:
            report.add_error(str(exc))
            report.finish("failed")
            log_load_report(report)
            raise
        if not rows:
            report.add_skip(SKIP_MISSING_SHEET, "sheet missing or empty", item=layout.sheet_name)
        entities = parse_sheet(rows, layout, report)
        report.metrics["rows_read"] = max(len(rows) - 1, 0)
        report.finish()
        log_load_report(report)
        return entities, report

    def _load(self, sequence: int = 0) -> EntitySnapshot:
        logger.info("Loading entity sheets")
        t0 = time.monotonic()
        loaded: dict[EntityType, list[Entity]] = {}
        reports: dict[str, LoadReport] = {}
        for entity_type in EntityType:
            entities, report = self._load_sheet(entity_type)
            loaded[entity_type] = entities
            reports[entity_type.value] = report

        snapshot = EntitySnapshot(
            agencies=tuple(loaded[EntityType.AGENCY]),
            oems=tuple(loaded[EntityType.OEM]),
            vendors=tuple(loaded[EntityType.VENDOR]),
            loaded_at=self._clock(),
            loaded_at_utc=datetime.now(timezone.utc).isoformat(),
            sequence=sequence,
            load_reports=MappingProxyType(reports),
        )
        counts = snapshot.counts()
        logger.info("Loaded %d agencies, %d OEMs, %d vendors in %.2fs",
                    counts["agencies"], counts["oems"], counts["vendors"],
                    time.monotonic() - t0)
        return snapshot
