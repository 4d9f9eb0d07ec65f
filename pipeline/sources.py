"""
Row sources — where entity sheet rows come from.

A row source returns every row of a named sheet as a list of cell lists,
header row first.  The data manager only ever calls ``read_all_rows``; the
implementations here cover the deployments we support:

  - WorkbookRowSource:   an XLSX export of the spreadsheet, read with openpyxl
  - CsvExportRowSource:  the spreadsheet's published-CSV endpoint, over HTTP
  - InMemoryRowSource:   fixed rows, for tests and fixtures
  - RetryingRowSource:   bounded retry with exponential backoff around any of
                         the above

A sheet that does not exist yields ``[]`` and an error log.  A source that
cannot be read at all raises ``SourceUnavailableError``.
"""

from __future__ import annotations

import csv
import io
import logging
import time
import zipfile
from pathlib import Path
from typing import Any, Callable, Optional, Protocol
from urllib.parse import quote

import openpyxl
import requests
from openpyxl.utils.exceptions import InvalidFileException

from utils.config import AppConfig
from utils.http import RetryStrategy, SessionManager, fetch_text

logger = logging.getLogger(__name__)

Row = list[Any]


class SourceUnavailableError(Exception):
    """The row source could not be read (file missing, network failure, ...)."""


class RowSource(Protocol):
    def read_all_rows(self, sheet_name: str) -> list[Row]:
        ...


# ── Implementations ───────────────────────────────────────────────────────────


class InMemoryRowSource:
    """Serves rows from a ``{sheet_name: rows}`` mapping."""

    def __init__(self, sheets: dict[str, list[Row]]) -> None:
        self.sheets = sheets
        self.read_count = 0

    def read_all_rows(self, sheet_name: str) -> list[Row]:
        self.read_count += 1
        rows = self.sheets.get(sheet_name)
        if rows is None:
            logger.error("Sheet not found: %s", sheet_name)
            return []
        return [list(r) for r in rows]


class WorkbookRowSource:
    """Reads sheets from an XLSX workbook (values only, no formulas)."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def read_all_rows(self, sheet_name: str) -> list[Row]:
        if not self.path.exists():
            raise SourceUnavailableError(f"Workbook not found: {self.path}")
        try:
            wb = openpyxl.load_workbook(str(self.path), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, OSError) as exc:
            raise SourceUnavailableError(f"Cannot open workbook {self.path}: {exc}") from exc

        try:
            if sheet_name not in wb.sheetnames:
                logger.error("Sheet not found: %s (workbook %s)", sheet_name, self.path.name)
                return []
            ws = wb[sheet_name]
            return [list(row) for row in ws.iter_rows(values_only=True)]
        finally:
            wb.close()


class CsvExportRowSource:
    """Reads sheets from a published-CSV URL template.

    ``url_template`` must contain ``{sheet}``, e.g.
    ``https://docs.google.com/spreadsheets/d/<id>/gviz/tq?tqx=out:csv&sheet={sheet}``.
    """

    def __init__(self, url_template: str,
                 session_manager: Optional[SessionManager] = None,
                 timeout: float = 30) -> None:
        if "{sheet}" not in url_template:
            raise ValueError("url_template must contain '{sheet}'")
        self.url_template = url_template
        self.session_manager = session_manager or SessionManager(
            RetryStrategy(max_retries=2, backoff_factor=0.5)
        )
        self.timeout = timeout

    def url_for(self, sheet_name: str) -> str:
        return self.url_template.format(sheet=quote(sheet_name))

    def read_all_rows(self, sheet_name: str) -> list[Row]:
        url = self.url_for(sheet_name)
        try:
            text = fetch_text(url, session=self.session_manager.session, timeout=self.timeout)
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            if status == 404:
                logger.error("Sheet not found: %s (%s)", sheet_name, url)
                return []
            raise SourceUnavailableError(f"HTTP {status} reading sheet {sheet_name}") from exc
        except requests.RequestException as exc:
            raise SourceUnavailableError(f"Cannot read sheet {sheet_name}: {exc}") from exc

        # CSV cells are all text; empty strings stand in for empty cells.
        return [[cell if cell != "" else None for cell in row]
                for row in csv.reader(io.StringIO(text))]


class RetryingRowSource:
    """Retries ``SourceUnavailableError`` with exponential backoff.

    Delays are ``backoff_seconds * 2**(attempt - 1)`` between attempts; the
    last failure propagates.
    """

    def __init__(self, inner: RowSource, max_attempts: int = 3,
                 backoff_seconds: float = 1.0,
                 sleep: Callable[[float], None] = time.sleep) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.inner = inner
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    def read_all_rows(self, sheet_name: str) -> list[Row]:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self.inner.read_all_rows(sheet_name)
            except SourceUnavailableError as exc:
                if attempt == self.max_attempts:
                    logger.error("Giving up on sheet %s after %d attempts: %s",
                                 sheet_name, attempt, exc)
                    raise
                delay = self.backoff_seconds * 2 ** (attempt - 1)
                logger.warning("Reading sheet %s failed (attempt %d/%d): %s; retrying in %.1fs",
                               sheet_name, attempt, self.max_attempts, exc, delay)
                self._sleep(delay)
        raise AssertionError("unreachable")


def build_row_source(config: AppConfig) -> RowSource:
    """Row source for the configured deployment, wrapped in retries."""
    if config.sheet_csv_url:
        inner: RowSource = CsvExportRowSource(config.sheet_csv_url, timeout=config.source_timeout)
        logger.info("Using published CSV source: %s", config.sheet_csv_url)
    else:
        inner = WorkbookRowSource(config.workbook_path)
        logger.info("Using workbook source: %s", config.workbook_path)
    return RetryingRowSource(inner, max_attempts=config.source_retries,
                             backoff_seconds=config.source_backoff)
