"""Tests for extraction/detector.py — structural schema detection."""

import pytest

from extraction.detector import FINGERPRINTS, Fingerprint, detect_schema


class TestDetectSchema:
    @pytest.mark.parametrize("fixture,expected", [
        ("obligations", "obligations"),
        ("small_business", "smallBusiness"),
        ("top_ref_piid", "topRefPiid"),
        ("ai_product", "aiProduct"),
        ("active_contracts", "activeContracts"),
        ("bic_agency_products", "bicTopProductsPerAgency"),
        ("usai_profile", "usaiProfile"),
        ("one_gov_tier", "oneGovTier"),
        ("discounted_products", "oneGovDiscountedProducts"),
    ])
    def test_fixture_values(self, fixture, expected, request):
        assert detect_schema(request.getfixturevalue(fixture)) == expected

    def test_profile_wins_over_later_fingerprints(self):
        value = {"oem_name": "Acme", "headquarters": "Reston", "total_obligated": 1,
                 "fiscal_year_obligations": {"2024": 1}}
        assert detect_schema(value) == "usaiProfile"

    def test_bic_reseller_requires_list(self):
        assert detect_schema({"top_15_resellers": [{"vendor_name": "x"}]}) == "bicReseller"
        assert detect_schema({"top_15_resellers": {"x": {}}}) is None

    def test_zero_counts_as_absent(self):
        assert detect_schema({"total_obligated": 0, "fiscal_year_obligations": {"2024": 0}}) is None

    def test_bic_agency_needs_grand_total(self):
        assert detect_schema({"top_10_agencies": {"DOD": {}}}) is None

    @pytest.mark.parametrize("value", [None, [], "text", {}, {"unrelated": 1}])
    def test_unrecognised(self, value):
        assert detect_schema(value) is None


class TestFingerprints:
    def test_every_fingerprint_names_a_registry_key(self):
        from extraction.registry import COLUMN_SCHEMAS
        assert {f.schema_key for f in FINGERPRINTS} == set(COLUMN_SCHEMAS)

    def test_matches_nested_path(self):
        fp = Fingerprint("x", ("summary.grand_total",))
        assert fp.matches({"summary": {"grand_total": 5}})
        assert not fp.matches({"summary": {}})
