"""Structural schema detection for JSON column values of unknown origin.

Used only as a fallback when a column's identity is ambiguous, e.g. the
header text at a registry position does not match the expected header.
Fingerprints are tried in a fixed priority order; the first match wins.
Columns with distinctive top-level keys come first, generic shapes last.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from extraction.paths import resolve


@dataclass(frozen=True)
class Fingerprint:
    """A structural test: every path present, optionally some list-typed."""

    schema_key: str
    present: tuple[str, ...]
    list_typed: tuple[str, ...] = ()

    def matches(self, value: Mapping) -> bool:
        for path in self.present:
            found = resolve(value, path)
            # Zero, empty text and False count as absent.
            if found is None or found == "" or found == 0:
                return False
        return all(isinstance(resolve(value, p), list) for p in self.list_typed)


FINGERPRINTS: tuple[Fingerprint, ...] = (
    Fingerprint("usaiProfile", ("oem_name", "headquarters")),
    Fingerprint("obligations", ("total_obligated", "fiscal_year_obligations")),
    Fingerprint("oneGovTier", ("mode_tier", "tier_definitions")),
    Fingerprint("smallBusiness", ("business_size_summaries",)),
    Fingerprint("sumTier", ("tier_summaries",)),
    Fingerprint("sumType", ("sum_type_summaries",)),
    Fingerprint("contractVehicle", ("top_contract_summaries",)),
    Fingerprint("fundingDepartment", ("top_10_department_summaries",)),
    Fingerprint("oneGovDiscountedProducts", ("discount_categories",)),
    Fingerprint("topRefPiid", ("top_10_reference_piids",)),
    Fingerprint("topPiid", ("top_10_piids",)),
    Fingerprint("activeContracts", ("expiring_by_quarter",)),
    Fingerprint("expiringDiscountedProducts", ("discount_contracts_expiring_by_quarter",)),
    Fingerprint("aiProduct", ("ai_product_status",)),
    Fingerprint("aiCategory", ("ai_category_status",)),
    Fingerprint("topBicProducts", ("top_25_products",)),
    Fingerprint("reseller", ("top_15_reseller_summaries",)),
    Fingerprint("bicReseller", ("top_15_resellers",), list_typed=("top_15_resellers",)),
    Fingerprint("bicOem", ("top_15_manufacturers",)),
    Fingerprint("fasOem", ("top_10_oem_summaries",)),
    Fingerprint("fundingAgency", ("top_10_agency_summaries",)),
    Fingerprint("bicTopProductsPerAgency", ("top_10_agencies", "summary.grand_total")),
)


def detect_schema(value: Any) -> str | None:
    """Return the schema key whose fingerprint matches *value* first, or None."""
    if not isinstance(value, Mapping):
        return None
    for fingerprint in FINGERPRINTS:
        if fingerprint.matches(value):
            return fingerprint.schema_key
    return None
