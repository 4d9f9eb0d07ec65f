"""
Tests for the FastAPI application — api/app.py and api/routes/*.

Runs every endpoint against the in-memory fixture sheets through
``TestClient``; no workbook or network access needed.
"""

import json

import pytest
from fastapi.testclient import TestClient

from api import dependencies
from api.app import create_app
from pipeline.data_manager import EntityDataManager
from pipeline.sources import SourceUnavailableError


class OfflineSource:
    def read_all_rows(self, sheet_name):
        raise SourceUnavailableError("spreadsheet export unreachable")


@pytest.fixture()
def offline_client(clock):
    manager = EntityDataManager(OfflineSource(), ttl_seconds=120, clock=clock)
    with TestClient(create_app(manager=manager), raise_server_exceptions=False) as c:
        yield c
    dependencies.reset()


# ── App wiring ────────────────────────────────────────────────────────────────

class TestApp:
    def test_health_before_first_load(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["cache_state"] == "empty"

    def test_health_after_load(self, client):
        client.get("/api/v1/entities")
        body = client.get("/health").json()
        assert body["cache_state"] == "fresh"
        assert body["entity_counts"] == {"agencies": 3, "oems": 1, "vendors": 1}
        assert body["loaded_at"]

    def test_request_id_header(self, client):
        resp = client.get("/health")
        assert len(resp.headers["X-Request-ID"]) == 8

    def test_openapi_lists_routes(self, client):
        paths = client.get("/openapi.json").json()["paths"]
        for path in ("/api/v1/schemas", "/api/v1/columns/extract", "/api/v1/entities/{entity_id}",
                     "/api/v1/reports/top", "/api/v1/cache/refresh", "/health"):
            assert path in paths

    def test_cors_preflight(self, client):
        resp = client.options(
            "/api/v1/schemas",
            headers={"Origin": "https://example.org", "Access-Control-Request-Method": "GET"},
        )
        assert resp.status_code == 200
        assert "access-control-allow-origin" in resp.headers


# ── Schemas ───────────────────────────────────────────────────────────────────

class TestSchemas:
    def test_list(self, client):
        resp = client.get("/api/v1/schemas")
        assert resp.status_code == 200
        body = resp.json()
        assert len(body) == 22
        assert body[0]["key"] == "obligations"
        assert body[0]["column"] == "D"
        assert [s["column_index"] for s in body] == sorted(s["column_index"] for s in body)
        assert "max-age" in resp.headers["Cache-Control"]

    def test_documented_example_matches_registry(self, client):
        props = client.get("/openapi.json").json()["components"]["schemas"]["SchemaOut"]["properties"]
        example = {name: spec["examples"][0] for name, spec in props.items()}
        listed = client.get("/api/v1/schemas").json()[0]
        assert example == {name: listed[name] for name in example}

    def test_filter_by_pattern(self, client):
        body = client.get("/api/v1/schemas", params={"pattern": "flat_profile"}).json()
        assert [s["key"] for s in body] == ["usaiProfile"]

    def test_unknown_pattern_is_422(self, client):
        assert client.get("/api/v1/schemas", params={"pattern": "nope"}).status_code == 422

    def test_detail(self, client):
        body = client.get("/api/v1/schemas/obligations").json()
        assert body["primary_value_path"] == "total_obligated"
        assert body["time_series_path"] == "fiscal_year_obligations"
        assert "source_file" in body["required_fields"]

    def test_unknown_key_is_404(self, client):
        resp = client.get("/api/v1/schemas/nope")
        assert resp.status_code == 404
        body = resp.json()
        assert body["error"] == "Not found"
        assert body["status_code"] == 404
        assert "nope" in body["detail"]


# ── Columns ───────────────────────────────────────────────────────────────────

class TestColumns:
    def test_extract_value(self, client, small_business):
        resp = client.post("/api/v1/columns/extract",
                           json={"key": "smallBusiness", "value": small_business})
        assert resp.status_code == 200
        body = resp.json()
        assert body["schema"]["key"] == "smallBusiness"
        assert body["primary_value"] == 300
        assert body["fiscal_years"] == {"2022": 120, "2023": 180}
        assert body["categories"][0]["percentage"] == 66.67
        assert body["metadata"]["source_file"] == "fas_small_business.csv"

    def test_extract_raw_by_column_letter(self, client, obligations):
        resp = client.post("/api/v1/columns/extract",
                           json={"column": "d", "raw": json.dumps(obligations)})
        assert resp.status_code == 200
        assert resp.json()["primary_value"] == 1000

    def test_extract_invalid_raw_is_empty(self, client):
        body = client.post("/api/v1/columns/extract",
                           json={"key": "obligations", "raw": "{not json"}).json()
        assert body["primary_value"] is None
        assert body["categories"] == []

    def test_extract_unknown_key(self, client):
        resp = client.post("/api/v1/columns/extract", json={"key": "nope", "value": {}})
        assert resp.status_code == 404

    def test_extract_unknown_column(self, client):
        resp = client.post("/api/v1/columns/extract", json={"column": "ZZ", "value": {}})
        assert resp.status_code == 404

    def test_payload_needs_schema_ref(self, client, obligations):
        resp = client.post("/api/v1/columns/extract", json={"value": obligations})
        assert resp.status_code == 422

    def test_payload_rejects_value_and_raw(self, client):
        resp = client.post("/api/v1/columns/extract",
                           json={"key": "obligations", "value": {"a": 1}, "raw": "{}"})
        assert resp.status_code == 422

    def test_detect(self, client, ai_product):
        body = client.post("/api/v1/columns/detect", json={"value": ai_product}).json()
        assert body == {"schema_key": "aiProduct", "status": "ok", "error": None}

    def test_detect_unrecognised(self, client):
        body = client.post("/api/v1/columns/detect", json={"value": {"mystery": 1}}).json()
        assert body["schema_key"] is None
        assert body["status"] == "ok"

    def test_detect_parse_error(self, client):
        body = client.post("/api/v1/columns/detect", json={"raw": "[1, 2"}).json()
        assert body["schema_key"] is None
        assert body["status"] == "parse_error"
        assert body["error"]

    def test_validate(self, client, obligations):
        body = client.post("/api/v1/columns/validate",
                           json={"key": "obligations", "value": obligations}).json()
        assert body == {"valid": True, "schema_key": "obligations", "errors": [], "warnings": []}

    def test_validate_missing_field(self, client, obligations):
        del obligations["source_file"]
        body = client.post("/api/v1/columns/validate",
                           json={"key": "obligations", "value": obligations}).json()
        assert body["valid"] is False
        assert "Missing required field: source_file" in body["errors"]

    def test_validate_invalid_json(self, client):
        body = client.post("/api/v1/columns/validate",
                           json={"key": "obligations", "raw": "{oops"}).json()
        assert body["valid"] is False
        assert body["errors"][0].startswith("Invalid JSON:")


# ── Entities ──────────────────────────────────────────────────────────────────

class TestEntities:
    def test_list_all_sorted_by_name(self, client):
        body = client.get("/api/v1/entities").json()
        assert body["total"] == 5
        assert [e["name"] for e in body["items"]] == [
            "Acme Corp",
            "Carahsoft",
            "Department of Defense",
            "Department of Homeland Security",
            "Department of Veterans Affairs",
        ]

    def test_filter_by_type(self, client):
        body = client.get("/api/v1/entities", params={"type": "agency"}).json()
        assert body["total"] == 3
        assert {e["type"] for e in body["items"]} == {"agency"}

    def test_filter_by_name_and_tier(self, client):
        body = client.get("/api/v1/entities", params={"name": "veterans"}).json()
        assert [e["id"] for e in body["items"]] == ["agency_1"]
        body = client.get("/api/v1/entities", params={"tier": "Tier 4"}).json()
        assert [e["id"] for e in body["items"]] == ["agency_4"]

    def test_filter_by_parent(self, client):
        body = client.get("/api/v1/entities", params={"parent": "Carahsoft Technology"}).json()
        assert [e["id"] for e in body["items"]] == ["vendor_1"]

    def test_sort_by_obligations_and_page(self, client):
        body = client.get("/api/v1/entities",
                          params={"sort": "total_obligations", "limit": 2, "offset": 1}).json()
        assert body["total"] == 5
        assert [e["name"] for e in body["items"]] == ["Carahsoft", "Department of Veterans Affairs"]

    def test_unknown_type_is_400(self, client):
        resp = client.get("/api/v1/entities", params={"type": "department"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Bad request"

    def test_bad_sort_is_422(self, client):
        assert client.get("/api/v1/entities", params={"sort": "tier"}).status_code == 422

    def test_detail(self, client):
        body = client.get("/api/v1/entities/agency_1").json()
        assert body["name"] == "Department of Veterans Affairs"
        assert body["identifier"] == "036"
        assert body["row_index"] == 1
        assert body["total_obligations"] == 1000
        assert body["fiscal_year_trend"] == {"2022": 400, "2023": 600}
        assert body["attributes"] == {"website": "https://www.va.gov"}
        assert "smallBusiness" in body["available_columns"]
        assert body["columns"]["oneGovTier"]["mode_tier"] == "Tier 2"

    def test_detail_without_columns(self, client):
        body = client.get("/api/v1/entities/agency_4", params={"include_columns": "false"}).json()
        assert body["columns"] is None
        assert body["parse_errors"] == ["obligations"]
        assert body["total_obligations_source"] == "tier_total"

    def test_unknown_entity_is_404(self, client):
        assert client.get("/api/v1/entities/agency_99").status_code == 404

    def test_entity_column(self, client):
        body = client.get("/api/v1/entities/vendor_1/columns/bicTopProductsPerAgency").json()
        assert body["primary_value"] == 1000
        assert [c["name"] for c in body["categories"]] == ["DOD", "VA"]

    def test_entity_column_empty(self, client):
        body = client.get("/api/v1/entities/agency_2/columns/aiProduct").json()
        assert body["primary_value"] is None
        assert body["categories"] == []

    def test_entity_column_unknown_key(self, client):
        assert client.get("/api/v1/entities/agency_1/columns/nope").status_code == 404


# ── Reports ───────────────────────────────────────────────────────────────────

class TestReports:
    def test_summary(self, client):
        body = client.get("/api/v1/reports/summary").json()
        assert body["counts"]["total"] == 5
        assert body["obligations"]["total"] == 9050
        assert body["top"]["vendor"][0]["name"] == "Carahsoft"

    def test_analytics(self, client):
        body = client.get("/api/v1/reports/analytics/agency").json()
        assert body["entity_type"] == "agency"
        assert body["tier_distribution"] == {"Tier 2": 1, "Tier 4": 1}
        assert list(body["tier_definitions"]) == ["Tier 1", "Tier 2", "Tier 3", "Tier 4", "Below Tier 4"]
        assert body["ai_adoption_rate"] == 33.3

    def test_analytics_unknown_type(self, client):
        assert client.get("/api/v1/reports/analytics/department").status_code == 400

    def test_dashboard(self, client):
        body = client.get("/api/v1/reports/dashboard", params={"type": "agency", "parent": "VA"}).json()
        assert len(body) == 1
        assert body[0]["contract_count"] == 2

    def test_table(self, client):
        body = client.get("/api/v1/reports/table", params={"type": "oem"}).json()
        assert body[0]["fy2024"] == 300
        assert body[0]["category"] == "OEM"

    def test_top(self, client):
        body = client.get("/api/v1/reports/top", params={"column": "obligations", "top_n": 2}).json()
        assert [i["name"] for i in body["items"]] == ["Department of Defense", "Carahsoft", "Others"]
        assert body["others_value"] == 1800
        assert body["overall_total"] == 8800

    def test_top_restricted_to_entities(self, client):
        params = [("column", "obligations"), ("entity", "Acme Corp"), ("entity", "Carahsoft")]
        body = client.get("/api/v1/reports/top", params=params).json()
        assert [i["name"] for i in body["items"]] == ["Carahsoft", "Acme Corp"]

    def test_top_requires_column(self, client):
        assert client.get("/api/v1/reports/top").status_code == 422

    def test_top_n_bounds(self, client):
        resp = client.get("/api/v1/reports/top", params={"column": "obligations", "top_n": 0})
        assert resp.status_code == 422

    def test_top_unknown_column(self, client):
        assert client.get("/api/v1/reports/top", params={"column": "nope"}).status_code == 404

    def test_trends(self, client):
        body = client.get("/api/v1/reports/trends",
                          params={"column": "obligations", "type": "agency"}).json()
        assert body["fiscal_years"] == {"2022": 2400, "2023": 3600}
        assert body["trend"]["growth"] == [None, 50.0]


# ── Cache ─────────────────────────────────────────────────────────────────────

class TestCache:
    def test_status(self, client):
        client.get("/api/v1/entities")
        body = client.get("/api/v1/cache/status").json()
        assert body["state"] == "fresh"
        assert body["ttl_seconds"] == 120
        assert body["load_reports"]["agency"]["skip_counts"] == {"blank_row": 1, "parse_error": 1}

    def test_refresh_reloads(self, client, data_manager):
        client.get("/api/v1/entities")
        resp = client.post("/api/v1/cache/refresh")
        assert resp.status_code == 200
        assert resp.json()["has_data"] is True
        assert data_manager.load_count == 2

    def test_clear(self, client, data_manager):
        client.get("/api/v1/entities")
        body = client.post("/api/v1/cache/clear").json()
        assert body["state"] == "empty"
        assert body["has_data"] is False
        client.get("/api/v1/entities")
        assert data_manager.load_count == 2

    def test_reports_follow_refresh(self, client, sheets, data_manager):
        before = client.get("/api/v1/reports/summary").json()
        sheets["Vendor"].pop()
        client.post("/api/v1/cache/refresh")
        after = client.get("/api/v1/reports/summary").json()
        assert before["counts"]["vendor"] == 1
        assert after["counts"]["vendor"] == 0


# ── Source failures ───────────────────────────────────────────────────────────

class TestSourceUnavailable:
    def test_entities_503(self, offline_client):
        resp = offline_client.get("/api/v1/entities")
        assert resp.status_code == 503
        body = resp.json()
        assert body["error"] == "Entity data unavailable"
        assert "unreachable" in body["detail"]

    def test_reports_503(self, offline_client):
        assert offline_client.get("/api/v1/reports/summary").status_code == 503

    def test_health_degraded_after_failure(self, offline_client):
        offline_client.get("/api/v1/entities")
        resp = offline_client.get("/health")
        assert resp.status_code == 503
        assert resp.json()["status"] == "degraded"

    def test_schema_routes_still_work(self, offline_client):
        assert offline_client.get("/api/v1/schemas").status_code == 200

    def test_refresh_503(self, offline_client):
        assert offline_client.post("/api/v1/cache/refresh").status_code == 503
