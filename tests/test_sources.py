"""Tests for pipeline/sources.py — workbook, CSV and retrying row sources."""

from unittest.mock import MagicMock

import pytest
import requests

import pipeline.sources as sources
from pipeline.sources import (
    CsvExportRowSource,
    InMemoryRowSource,
    RetryingRowSource,
    SourceUnavailableError,
    WorkbookRowSource,
    build_row_source,
)
from utils.config import AppConfig


class TestInMemoryRowSource:
    def test_rows_are_copies(self, sheets):
        source = InMemoryRowSource(sheets)
        rows = source.read_all_rows("OEM")
        rows[1][1] = "changed"
        assert source.read_all_rows("OEM")[1][1] == "Acme Corp"
        assert source.read_count == 2

    def test_missing_sheet_is_empty(self, sheets):
        assert InMemoryRowSource(sheets).read_all_rows("Reseller") == []


class TestWorkbookRowSource:
    def test_reads_sheet(self, workbook_path):
        rows = WorkbookRowSource(workbook_path).read_all_rows("Vendor")
        assert len(rows) == 2
        assert rows[0][0] == "UEI"
        assert rows[1][1] == "Carahsoft"
        assert len(rows[1]) == 31

    def test_missing_sheet_is_empty(self, workbook_path):
        assert WorkbookRowSource(workbook_path).read_all_rows("Reseller") == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceUnavailableError, match="not found"):
            WorkbookRowSource(tmp_path / "nope.xlsx").read_all_rows("Agency")

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "broken.xlsx"
        path.write_bytes(b"this is not a zip file")
        with pytest.raises(SourceUnavailableError, match="Cannot open workbook"):
            WorkbookRowSource(path).read_all_rows("Agency")


class TestCsvExportRowSource:
    URL = "https://docs.google.com/spreadsheets/d/abc/gviz/tq?tqx=out:csv&sheet={sheet}"

    def test_template_must_name_sheet(self):
        with pytest.raises(ValueError):
            CsvExportRowSource("https://example.com/export.csv")

    def test_url_quotes_sheet_name(self):
        source = CsvExportRowSource(self.URL)
        assert source.url_for("BIC Agency").endswith("sheet=BIC%20Agency")

    def test_parses_csv_and_blanks_become_none(self, monkeypatch):
        seen = {}

        def fake_fetch(url, session=None, timeout=30):
            seen["url"] = url
            return 'UEI,Name,Parent\nUEI123,Carahsoft,\n"X1","Comma, Inc",Parent\n'

        monkeypatch.setattr(sources, "fetch_text", fake_fetch)
        rows = CsvExportRowSource(self.URL).read_all_rows("Vendor")
        assert seen["url"].endswith("sheet=Vendor")
        assert rows == [
            ["UEI", "Name", "Parent"],
            ["UEI123", "Carahsoft", None],
            ["X1", "Comma, Inc", "Parent"],
        ]

    def test_utf8_export_without_charset(self):
        response = requests.Response()
        response.status_code = 200
        response.headers["Content-Type"] = "text/csv"
        response._content = "id,name\n1,Département Café\n".encode("utf-8")
        response.encoding = requests.utils.get_encoding_from_headers(response.headers)
        manager = MagicMock()
        manager.session.get.return_value = response
        rows = CsvExportRowSource(self.URL, session_manager=manager).read_all_rows("Agency")
        assert rows[1] == ["1", "Département Café"]

    def test_404_is_missing_sheet(self, monkeypatch):
        response = requests.Response()
        response.status_code = 404

        def fake_fetch(url, session=None, timeout=30):
            raise requests.HTTPError(response=response)

        monkeypatch.setattr(sources, "fetch_text", fake_fetch)
        assert CsvExportRowSource(self.URL).read_all_rows("Vendor") == []

    def test_server_error_is_unavailable(self, monkeypatch):
        response = requests.Response()
        response.status_code = 500

        def fake_fetch(url, session=None, timeout=30):
            raise requests.HTTPError(response=response)

        monkeypatch.setattr(sources, "fetch_text", fake_fetch)
        with pytest.raises(SourceUnavailableError, match="HTTP 500"):
            CsvExportRowSource(self.URL).read_all_rows("Vendor")

    def test_connection_error_is_unavailable(self, monkeypatch):
        def fake_fetch(url, session=None, timeout=30):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(sources, "fetch_text", fake_fetch)
        with pytest.raises(SourceUnavailableError, match="refused"):
            CsvExportRowSource(self.URL).read_all_rows("Vendor")


class FailingSource:
    def __init__(self, failures, rows=None):
        self.failures = failures
        self.rows = rows or [["h"]]
        self.calls = 0

    def read_all_rows(self, sheet_name):
        self.calls += 1
        if self.calls <= self.failures:
            raise SourceUnavailableError(f"attempt {self.calls} failed")
        return self.rows


class TestRetryingRowSource:
    def test_recovers_with_backoff(self):
        delays = []
        inner = FailingSource(failures=2)
        source = RetryingRowSource(inner, max_attempts=3, backoff_seconds=1.0, sleep=delays.append)
        assert source.read_all_rows("Agency") == [["h"]]
        assert inner.calls == 3
        assert delays == [1.0, 2.0]

    def test_gives_up_after_max_attempts(self):
        delays = []
        inner = FailingSource(failures=5)
        source = RetryingRowSource(inner, max_attempts=2, backoff_seconds=0.5, sleep=delays.append)
        with pytest.raises(SourceUnavailableError, match="attempt 2"):
            source.read_all_rows("Agency")
        assert inner.calls == 2
        assert delays == [0.5]

    def test_other_errors_not_retried(self):
        class Broken:
            def read_all_rows(self, sheet_name):
                raise KeyError(sheet_name)

        source = RetryingRowSource(Broken(), sleep=lambda s: None)
        with pytest.raises(KeyError):
            source.read_all_rows("Agency")

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryingRowSource(FailingSource(0), max_attempts=0)


class TestBuildRowSource:
    def test_workbook_by_default(self, monkeypatch, tmp_path):
        monkeypatch.delenv("APP_SHEET_CSV_URL", raising=False)
        monkeypatch.setenv("APP_WORKBOOK_PATH", str(tmp_path / "book.xlsx"))
        monkeypatch.setenv("APP_SOURCE_RETRIES", "4")
        source = build_row_source(AppConfig.from_env())
        assert isinstance(source, RetryingRowSource)
        assert source.max_attempts == 4
        assert isinstance(source.inner, WorkbookRowSource)
        assert source.inner.path == tmp_path / "book.xlsx"

    def test_csv_url_takes_precedence(self, monkeypatch):
        monkeypatch.setenv("APP_SHEET_CSV_URL", TestCsvExportRowSource.URL)
        monkeypatch.setenv("APP_SOURCE_TIMEOUT", "7")
        source = build_row_source(AppConfig.from_env())
        assert isinstance(source.inner, CsvExportRowSource)
        assert source.inner.timeout == 7.0
