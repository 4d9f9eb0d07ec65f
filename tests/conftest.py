"""
Pytest fixtures for the OneGov FIT Market tests.

Provides reusable test fixtures: one well-formed JSON value per column
pattern, raw sheet rows for the Agency / OEM / Vendor sheets, an in-memory
row source and data manager over those rows (with a controllable clock),
an openpyxl-generated workbook, and a FastAPI TestClient.

Expected numbers for the fixture sheets (used across test modules):

    agency_1  Department of Veterans Affairs   obligations 1000  (2022: 400, 2023: 600)
    agency_2  Department of Defense            obligations 5000  (2022: 2000, 2023: 3000)
    (row 3)   blank name -> skipped
    agency_4  Department of Homeland Security  obligations cell is "{not json"; tier total 250
    oem_1     Acme Corp                        obligations 800   (2024: 300, 2025: 500)
    vendor_1  Carahsoft                        obligations 2000  (2024: 1000, 2025: 1000)
"""

import copy
import json
from pathlib import Path

import openpyxl
import pytest

from extraction.registry import json_column_indexes
from pipeline.data_manager import EntityDataManager
from pipeline.sources import InMemoryRowSource
from utils.config import NON_JSON_COLUMNS

ROW_WIDTH = 31  # A..AE


# ── Sample column values (one per pattern) ────────────────────────────────────

OBLIGATIONS = {
    "source_file": "fas_obligations.csv",
    "total_obligated": 1000,
    "fiscal_year_obligations": {"2022": 400, "2023": 600},
    "processed_date": "2025-06-01T12:00:00",
}

SMALL_BUSINESS = {
    "source_file": "fas_small_business.csv",
    "summary": {"total_all_obligations": 300},
    "business_size_summaries": {
        "SMALL BUSINESS": {
            "total": 200,
            "percentage_of_total": "66.67%",
            "fiscal_years": {"2022": 80, "2023": 120},
        },
        "OTHER THAN SMALL BUSINESS": {
            "total": 100,
            "percentage_of_total": 33.33,
            "fiscal_years": {"2022": 40, "2023": 60},
        },
    },
    "processed_date": "2025-06-01T12:00:00",
}

TOP_REF_PIID = {
    "source_file": "fas_piid.csv",
    "total_obligations": 500,
    "unique_ref_piids": 2,
    "fiscal_years_covered": ["2023", "2024"],
    "yearly_totals": {"2023": 200, "2024": 300},
    "top_10_reference_piids": [
        {"reference_piid": "47QTCA20D001", "dollars_obligated": 350,
         "fiscal_year_breakdown": {"2023": 150, "2024": 200}},
        {"reference_piid": "GS35F0119Y", "dollars_obligated": 150,
         "fiscal_year_breakdown": {"2023": 50, "2024": 100}},
    ],
    "processed_date": "2025-06-01T12:00:00",
}

AI_PRODUCT = {
    "source_file": "fas_ai.csv",
    "ai_product_status": "found",
    "summary": {"grand_total_obligations": 1000},
    "fiscal_year_summaries": {
        "2024": {
            "total_obligations": 400,
            "top_10_products": [
                {"product": "Copilot", "obligations": 300, "percentage_of_total": 75.0},
                {" product": "Bedrock", "obligations": 100, "percentage_of_total": 25.0},
            ],
        },
        "2025": {
            "total_obligations": 600,
            "top_10_products": [
                {"product": "Copilot", "obligations": 600, "percentage_of_total": 100.0},
            ],
        },
    },
    "processed_date": "2025-06-01T12:00:00",
}

ACTIVE_CONTRACTS = {
    "source_file": "fas_active.csv",
    "summary": {"total_obligations": 750},
    "expiring_by_quarter": {
        "Q1 FY26": {"total_obligations_expiring": 500, "contract_count": 3},
        "Q2 FY26": {"total_obligations_expiring": 250, "contract_count": 1},
    },
    "processed_date": "2025-06-01T12:00:00",
}

BIC_AGENCY_PRODUCTS = {
    "source_file": "bic_products.csv",
    "summary": {"grand_total": 1000},
    "yearly_totals": {"2024": 400, "2025": 600},
    "top_10_agencies": {
        "DOD": {
            "agency_total": 700,
            "percentage_of_grand_total": 70.0,
            "top_3_products": [
                {"product_name": "Laptop", "total_price": 500, "percentage_of_agency_total": 71.43},
                {"product_name": "Monitor", "total_price": 200, "percentage_of_agency_total": 28.57},
            ],
        },
        "VA": {
            "agency_total": 300,
            "percentage_of_grand_total": 30.0,
            "top_3_products": [
                {"product_name": "Docking Station", "total_price": 300},
            ],
        },
    },
    "processed_date": "2025-06-01T12:00:00",
}

USAI_PROFILE = {
    "oem_name": "Acme Corp",
    "headquarters": "Reston, VA",
    "founded": 1999,
    "products": ["Acme Cloud", "Acme AI"],
}

ONE_GOV_TIER = {
    "mode_tier": "Tier 2",
    "overall_tier": "Tier 2",
    "total_obligated": 1000,
    "formatted_total": "$1.0K",
    "average_obligations_per_year": 500,
    "fiscal_year_tiers": {
        "2022": {"obligations": 400, "tier": "Tier 3"},
        "2023": {"obligations": 600, "tier": "Tier 2"},
    },
    "tier_counts": {"Tier 2": 1, "Tier 3": 1},
    "tier_summary": "Tier 2 in 1 of 2 years",
    "tier_definitions": {"Tier 2": "$200M - $500M"},
    "processed_date": "2025-06-01T12:00:00",
}

DISCOUNTED_PRODUCTS = {
    "source_file": "fas_discounts.csv",
    "discount_status": "Active Discounts",
    "summary": {"total_obligations_with_discounts": 50},
    "discount_categories": {"Azure": {"total": 50}},
    "processed_date": "2025-06-01T12:00:00",
}


def obligations_value(total, series):
    return dict(OBLIGATIONS, total_obligated=total, fiscal_year_obligations=series)


# ── Sheet helpers ─────────────────────────────────────────────────────────────

def header_row(identifier_label="Identifier", overrides=None):
    """Header row with the registry header at every JSON column position."""
    row = [None] * ROW_WIDTH
    row[0], row[1], row[2] = identifier_label, "Name", "Parent"
    for index, schema in json_column_indexes().items():
        row[index] = schema.header_name
    for attr, index in NON_JSON_COLUMNS.items():
        row[index] = attr
    for index, text in (overrides or {}).items():
        row[index] = text
    return row


def make_row(identifier, name, parent, columns=None, attributes=None, raw=None):
    """One data row; ``columns`` maps registry key -> value (JSON-encoded here).

    ``raw`` maps zero-based index -> cell content written as-is.
    """
    from extraction.registry import get_schema

    row = [None] * ROW_WIDTH
    row[0], row[1], row[2] = identifier, name, parent
    for key, value in (columns or {}).items():
        row[get_schema(key).column_index] = json.dumps(value)
    for attr, value in (attributes or {}).items():
        row[NON_JSON_COLUMNS[attr]] = value
    for index, value in (raw or {}).items():
        row[index] = value
    return row


def build_sheets():
    dhs_tier = dict(
        ONE_GOV_TIER,
        mode_tier="Tier 4",
        total_obligated=250,
        fiscal_year_tiers={"2022": {"obligations": 100}, "2023": {"obligations": 150}},
    )
    agency = [
        header_row("Agency Code"),
        make_row("036", "Department of Veterans Affairs", "VA",
                 columns={
                     "obligations": OBLIGATIONS,
                     "smallBusiness": SMALL_BUSINESS,
                     "oneGovTier": ONE_GOV_TIER,
                     "aiProduct": AI_PRODUCT,
                     "activeContracts": ACTIVE_CONTRACTS,
                     "oneGovDiscountedProducts": DISCOUNTED_PRODUCTS,
                 },
                 attributes={"website": "https://www.va.gov"}),
        make_row("097", "Department of Defense", "DOD",
                 columns={"obligations": obligations_value(5000, {"2022": 2000, "2023": 3000})}),
        make_row("999", None, "Nobody"),
        make_row("070", "Department of Homeland Security", "DHS",
                 columns={"oneGovTier": dhs_tier},
                 raw={3: "{not json"}),
    ]
    oem = [
        header_row("DUNS"),
        make_row("123456789", "Acme Corp", "Acme Holdings",
                 columns={
                     "obligations": obligations_value(800, {"2024": 300, "2025": 500}),
                     "usaiProfile": USAI_PROFILE,
                 }),
    ]
    vendor = [
        header_row("UEI"),
        make_row("UEI123", "Carahsoft", "Carahsoft Technology",
                 columns={
                     "obligations": obligations_value(2000, {"2024": 1000, "2025": 1000}),
                     "bicTopProductsPerAgency": BIC_AGENCY_PRODUCTS,
                 }),
    ]
    return {"Agency": agency, "OEM": oem, "Vendor": vendor}


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture()
def obligations():
    return copy.deepcopy(OBLIGATIONS)


@pytest.fixture()
def small_business():
    return copy.deepcopy(SMALL_BUSINESS)


@pytest.fixture()
def top_ref_piid():
    return copy.deepcopy(TOP_REF_PIID)


@pytest.fixture()
def ai_product():
    return copy.deepcopy(AI_PRODUCT)


@pytest.fixture()
def active_contracts():
    return copy.deepcopy(ACTIVE_CONTRACTS)


@pytest.fixture()
def bic_agency_products():
    return copy.deepcopy(BIC_AGENCY_PRODUCTS)


@pytest.fixture()
def usai_profile():
    return copy.deepcopy(USAI_PROFILE)


@pytest.fixture()
def one_gov_tier():
    return copy.deepcopy(ONE_GOV_TIER)


@pytest.fixture()
def discounted_products():
    return copy.deepcopy(DISCOUNTED_PRODUCTS)


@pytest.fixture()
def sheets():
    """Raw rows for the three entity sheets, header row first."""
    return build_sheets()


@pytest.fixture()
def row_maker():
    """The ``make_row`` / ``header_row`` helpers for tests that build their own sheets."""
    return make_row, header_row


@pytest.fixture()
def row_source(sheets):
    return InMemoryRowSource(sheets)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def data_manager(row_source, clock):
    return EntityDataManager(row_source, ttl_seconds=120, clock=clock)


@pytest.fixture()
def snapshot(data_manager):
    return data_manager.snapshot()


@pytest.fixture()
def workbook_path(tmp_path, sheets) -> Path:
    """The fixture sheets written to a real .xlsx file with openpyxl."""
    path = tmp_path / "fit_market.xlsx"
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(name)
        for row in rows:
            ws.append(row)
    wb.save(path)
    return path


@pytest.fixture()
def client(data_manager):
    """TestClient wired to the in-memory data manager."""
    from fastapi.testclient import TestClient

    from api import dependencies
    from api.app import create_app

    app = create_app(manager=data_manager)
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    dependencies.reset()
