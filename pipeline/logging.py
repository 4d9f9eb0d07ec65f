"""
Load Logging — structured skip/error accounting for entity sheet loads.

Provides:
  - LoadReport: what one sheet load did, what it skipped, and why.
  - SkipRecord: single skip event with a category and detail string.
  - log_load_report: mirror a finished report to the module logger.

Usage inside the data manager::

    report = LoadReport(sheet_name="Agency", entity_type="agency")
    report.start()
    ...
    report.add_skip(SKIP_BLANK_ROW, "row has no entity name", item="Agency!7")
    ...
    report.finish()
    log_load_report(report)

Skip categories (for SkipRecord.category):
    blank_row        : row has no entity name
    parse_error      : a JSON cell could not be decoded (row still loaded)
    header_mismatch  : header text at a registry position disagrees with the
                       registry; the column was identified structurally
    missing_sheet    : the sheet does not exist in the source
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

SKIP_BLANK_ROW = "blank_row"
SKIP_PARSE_ERROR = "parse_error"
SKIP_HEADER_MISMATCH = "header_mismatch"
SKIP_MISSING_SHEET = "missing_sheet"


# ── Data structures ───────────────────────────────────────────────────────────


@dataclass
class SkipRecord:
    """One thing that was skipped, with a machine-readable category."""

    category: str          # e.g. "blank_row", "parse_error"
    detail: str            # human-readable explanation
    item: str = ""         # optional: sheet cell or row reference

    def to_dict(self) -> dict[str, str]:
        d: dict[str, str] = {"category": self.category, "detail": self.detail}
        if self.item:
            d["item"] = self.item
        return d


@dataclass
class LoadReport:
    """Structured summary of one entity sheet load."""

    sheet_name: str
    entity_type: str = ""
    status: str = "not_started"               # started | completed | failed
    elapsed_seconds: float = 0.0
    items_processed: int = 0
    items_skipped: int = 0
    items_errored: int = 0
    skips: list[SkipRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    _started_at: float = field(default=0.0, repr=False)

    # ── lifecycle ─────────────────────────────────────────────────────────

    def start(self) -> "LoadReport":
        self.status = "started"
        self._started_at = time.monotonic()
        return self

    def finish(self, status: str = "completed") -> "LoadReport":
        if self._started_at:
            self.elapsed_seconds = time.monotonic() - self._started_at
        self.status = status
        return self

    # ── helpers ───────────────────────────────────────────────────────────

    def add_skip(self, category: str, detail: str, item: str = "") -> None:
        """Record a skip.  Only whole-row skips count toward items_skipped."""
        self.skips.append(SkipRecord(category=category, detail=detail, item=item))
        if category == SKIP_BLANK_ROW:
            self.items_skipped += 1

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.items_errored += 1

    def skip_counts_by_category(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for s in self.skips:
            counts[s.category] = counts.get(s.category, 0) + 1
        return counts

    def console_summary(self) -> str:
        """One-line summary suitable for a log message."""
        parts: list[str] = []
        if self.items_processed:
            parts.append(f"{self.items_processed:,} loaded")
        if self.skips:
            cats = self.skip_counts_by_category()
            skip_parts = [f"{v} {k.replace('_', ' ')}" for k, v in sorted(cats.items())]
            parts.append(f"{len(self.skips):,} skipped ({', '.join(skip_parts)})")
        if self.items_errored:
            parts.append(f"{self.items_errored:,} errors")
        for key, val in self.metrics.items():
            if isinstance(val, (int, float)):
                parts.append(f"{key}: {val:,}" if isinstance(val, int) else f"{key}: {val:.1f}")
        return " | ".join(parts) if parts else "no activity"

    def to_dict(self) -> dict[str, Any]:
        d = {
            "sheet_name": self.sheet_name,
            "entity_type": self.entity_type,
            "status": self.status,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "items_processed": self.items_processed,
            "items_skipped": self.items_skipped,
            "items_errored": self.items_errored,
            "skip_counts": self.skip_counts_by_category(),
            "metrics": self.metrics,
        }
        if self.skips:
            d["skips"] = [s.to_dict() for s in self.skips]
        if self.errors:
            d["errors"] = self.errors
        return d


def log_load_report(report: LoadReport) -> None:
    """Log a finished report; skips and errors raise the level to WARNING."""
    level = logging.WARNING if (report.items_errored or report.skips) else logging.INFO
    logger.log(level, "[%s] %s (%.2fs)", report.sheet_name,
               report.console_summary(), report.elapsed_seconds)
