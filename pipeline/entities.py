"""
Entity model — one Agency / OEM / Vendor row with its parsed JSON columns.

Sheet rows are turned into frozen ``Entity`` records by ``parse_sheet``.
Every JSON column is decoded once (``extraction.cells``) and stored under
its registry key; the derived fields the dashboards sort and filter on are
computed here, once per load:

    total_obligations   first present of: obligations primary value,
                        OneGov tier total, sum of obligation fiscal years
    tier                oneGovTier.mode_tier, then sumTier.tier
    has_ai_products     aiProduct decoded to a non-empty object
    fiscal_year_trend   obligations fiscal years, else OneGov tier series

Entities are never mutated; a reload rebuilds them wholesale.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Optional

from extraction.cells import parse_json_cell
from extraction.detector import detect_schema
from extraction.extractors import ExtractionResult, extract, get_fiscal_year_data, get_primary_value
from extraction.paths import resolve
from extraction.registry import ColumnSchema, find_schema, json_column_indexes
from pipeline.logging import (
    SKIP_BLANK_ROW,
    SKIP_HEADER_MISMATCH,
    SKIP_PARSE_ERROR,
    LoadReport,
)
from utils.config import EntityLayout
from utils.strings import normalize_header

logger = logging.getLogger(__name__)


class EntityType(str, Enum):
    AGENCY = "agency"
    OEM = "oem"
    VENDOR = "vendor"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["EntityType"]:
        """Case-insensitive lookup; ``None`` / blank means "all types".

        Raises:
            ValueError: for an unrecognised entity type.
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(t.value for t in cls)
            raise ValueError(f"Unknown entity type {value!r}; expected one of: {valid}") from None


def _empty() -> Mapping[str, Any]:
    return MappingProxyType({})


@dataclass(frozen=True)
class Entity:
    id: str
    name: str
    type: EntityType
    row_index: int
    identifier: Optional[str] = None
    parent: Optional[str] = None
    columns: Mapping[str, Any] = field(default_factory=_empty)
    attributes: Mapping[str, Any] = field(default_factory=_empty)
    total_obligations: float = 0.0
    total_obligations_source: str = "none"
    tier: Optional[str] = None
    has_ai_products: bool = False
    fiscal_year_trend: Mapping[str, float] = field(default_factory=_empty)
    parse_errors: tuple[str, ...] = field(default=())

    def column(self, key: str) -> Any:
        """Decoded JSON for *key*, or None when the cell was empty / invalid."""
        return self.columns.get(key)

    def extract(self, ref: ColumnSchema | str) -> ExtractionResult:
        schema = find_schema(ref)
        if schema is None:
            return ExtractionResult.empty()
        return extract(self.columns.get(schema.key), schema)

    def summary_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "identifier": self.identifier,
            "parent": self.parent,
            "total_obligations": self.total_obligations,
            "total_obligations_source": self.total_obligations_source,
            "tier": self.tier,
            "has_ai_products": self.has_ai_products,
        }

    def to_dict(self, include_columns: bool = True) -> dict[str, Any]:
        d = self.summary_dict()
        d["row_index"] = self.row_index
        d["fiscal_year_trend"] = dict(self.fiscal_year_trend)
        d["attributes"] = dict(self.attributes)
        d["available_columns"] = sorted(self.columns)
        d["parse_errors"] = list(self.parse_errors)
        if include_columns:
            d["columns"] = dict(self.columns)
        return d


# ── Derived fields ────────────────────────────────────────────────────────────


def _obligations_primary(columns: Mapping[str, Any]) -> Optional[float]:
    return get_primary_value(columns.get("obligations"), "obligations")


def _tier_total(columns: Mapping[str, Any]) -> Optional[float]:
    return get_primary_value(columns.get("oneGovTier"), "oneGovTier")


def _fiscal_year_sum(columns: Mapping[str, Any]) -> Optional[float]:
    series = get_fiscal_year_data(columns.get("obligations"), "obligations")
    return sum(series.values()) if series else None


TOTAL_OBLIGATION_STRATEGIES: tuple[tuple[str, Callable[[Mapping[str, Any]], Optional[float]]], ...] = (
    ("obligations_primary", _obligations_primary),
    ("tier_total", _tier_total),
    ("fiscal_year_sum", _fiscal_year_sum),
)


def derive_total_obligations(columns: Mapping[str, Any]) -> tuple[float, str]:
    """Return ``(amount, strategy_name)``; ``(0.0, "none")`` when nothing applies."""
    for name, strategy in TOTAL_OBLIGATION_STRATEGIES:
        amount = strategy(columns)
        if amount is not None:
            return amount, name
    return 0.0, "none"


def derive_tier(columns: Mapping[str, Any]) -> Optional[str]:
    for source, path in (("oneGovTier", "mode_tier"), ("sumTier", "tier")):
        tier = resolve(columns.get(source), path)
        if isinstance(tier, str) and tier.strip():
            return tier.strip()
    return None


def derive_has_ai_products(columns: Mapping[str, Any]) -> bool:
    value = columns.get("aiProduct")
    return isinstance(value, Mapping) and len(value) > 0


def derive_fiscal_year_trend(columns: Mapping[str, Any]) -> dict[str, float]:
    series = get_fiscal_year_data(columns.get("obligations"), "obligations")
    if not series:
        series = get_fiscal_year_data(columns.get("oneGovTier"), "oneGovTier")
    return dict(sorted((series or {}).items()))


def make_entity(*, entity_type: EntityType, row_index: int, name: str,
                identifier: Optional[str] = None, parent: Optional[str] = None,
                columns: Optional[Mapping[str, Any]] = None,
                attributes: Optional[Mapping[str, Any]] = None,
                parse_errors: tuple[str, ...] = ()) -> Entity:
    """Build a frozen Entity and compute its derived fields."""
    cols = dict(columns or {})
    total, source = derive_total_obligations(cols)
    return Entity(
        id=f"{entity_type.value}_{row_index}",
        name=name,
        type=entity_type,
        row_index=row_index,
        identifier=identifier,
        parent=parent,
        columns=MappingProxyType(cols),
        attributes=MappingProxyType(dict(attributes or {})),
        total_obligations=total,
        total_obligations_source=source,
        tier=derive_tier(cols),
        has_ai_products=derive_has_ai_products(cols),
        fiscal_year_trend=MappingProxyType(derive_fiscal_year_trend(cols)),
        parse_errors=parse_errors,
    )


# ── Sheet parsing ─────────────────────────────────────────────────────────────


def _cell(row: list, index: int) -> Any:
    return row[index] if index < len(row) else None


def _cell_text(value: Any) -> Any:
    """Plain-cell normalisation: strip text, ISO dates, drop blanks."""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        # DUNS / agency codes come back from XLSX as floats.
        return str(int(value))
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def resolve_column_keys(header: list, sheet_name: str,
                        report: Optional[LoadReport] = None) -> dict[int, tuple[ColumnSchema, bool]]:
    """Map each JSON column position to ``(schema, header_matches)``.

    A blank header cell trusts the registry.  A header that disagrees is
    logged and recorded; cells in that column are then identified
    structurally with ``detect_schema``.
    """
    positions: dict[int, tuple[ColumnSchema, bool]] = {}
    for index, schema in sorted(json_column_indexes().items()):
        text = _cell(header, index)
        matches = (not normalize_header(text)
                   or normalize_header(text) == normalize_header(schema.header_name))
        if not matches:
            logger.warning("%s column %s: header %r does not match expected %r; "
                           "detecting column structurally",
                           sheet_name, schema.column, text, schema.header_name)
            if report is not None:
                report.add_skip(SKIP_HEADER_MISMATCH,
                                f"header {text!r} != {schema.header_name!r}",
                                item=f"{sheet_name}!{schema.column}1")
        positions[index] = (schema, matches)
    return positions


def parse_sheet(rows: list[list], layout: EntityLayout,
                report: Optional[LoadReport] = None) -> list[Entity]:
    """Turn raw sheet rows (header first) into Entities.

    Rows with a blank name are skipped.  A JSON cell that fails to decode
    is recorded and left out; the rest of the row still loads.
    """
    if not rows:
        return []
    entity_type = EntityType(layout.entity_type)
    sheet = layout.sheet_name
    positions = resolve_column_keys(list(rows[0]), sheet, report)
    # Columns whose header matches claim their keys before detected ones.
    ordered = sorted(positions.items(), key=lambda item: (not item[1][1], item[0]))
    entities: list[Entity] = []

    for row_index, row in enumerate(rows[1:], start=1):
        row = list(row)
        name = _cell_text(_cell(row, layout.name_index))
        if name is None:
            if report is not None:
                report.add_skip(SKIP_BLANK_ROW, "row has no entity name",
                                item=f"{sheet}!{row_index + 1}")
            continue

        columns: dict[str, Any] = {}
        parse_errors: list[str] = []
        for index, (schema, header_matches) in ordered:
            where = f"{sheet}!{schema.column}{row_index + 1}"
            parsed = parse_json_cell(_cell(row, index), context=where)
            if parsed.status == "parse_error":
                parse_errors.append(schema.key)
                if report is not None:
                    report.add_skip(SKIP_PARSE_ERROR, parsed.error or "invalid JSON", item=where)
                continue
            if not parsed.ok:
                continue
            key = schema.key
            if not header_matches:
                detected = detect_schema(parsed.data)
                if detected is None:
                    logger.debug("%s: structure not recognised, keeping %s", where, key)
                else:
                    key = detected
            if key in columns:
                logger.warning("%s: detected %s already loaded from another column; keeping it",
                               where, key)
                if report is not None:
                    report.add_skip(SKIP_HEADER_MISMATCH,
                                    f"detected {key!r} duplicates another column", item=where)
                continue
            columns[key] = parsed.data

        attributes = {}
        for attr, index in layout.attribute_columns.items():
            value = _cell_text(_cell(row, index))
            if value is not None:
                attributes[attr] = value
        identifier = _cell_text(_cell(row, layout.identifier_index))
        parent = _cell_text(_cell(row, layout.parent_index))

        entities.append(make_entity(
            entity_type=entity_type,
            row_index=row_index,
            name=str(name),
            identifier=str(identifier) if identifier is not None else None,
            parent=str(parent) if parent is not None else None,
            columns=columns,
            attributes=attributes,
            parse_errors=tuple(parse_errors),
        ))
        if report is not None:
            report.items_processed += 1

    return entities
