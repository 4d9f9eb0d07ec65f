"""Pattern extractors: turn a decoded JSON column value into an ExtractionResult.

Each of the six structural patterns has one extractor function.  The
extractors know nothing about individual columns; they read paths and field
candidates from the ``ColumnSchema`` they are given and normalise whatever
they find into the same shape:

    ExtractionResult(
        primary_value=1499132295.48,
        fiscal_years={"2022": 285946596.21, ...},
        categories=[Category(name, value, percentage, fiscal_years), ...],
        profile=None,
    )

Extraction is pure and never raises on malformed input: missing paths come
back as ``None`` / empty lists, and a breakdown container of the wrong shape
(a list where the schema says map, or vice versa) is iterated as whatever it
actually is.

Public accessors accept either a schema key ("smallBusiness") or a
``ColumnSchema``.  An unknown key yields absent values, not an exception.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from extraction.cells import parse_json_cell
from extraction.paths import resolve
from extraction.registry import (
    ColumnSchema,
    ContainerKind,
    PatternKind,
    find_schema,
    get_schema_by_column,
)
from utils.strings import parse_amount, parse_percentage

logger = logging.getLogger(__name__)

# Per-item fiscal-year breakdown: map items use ``fiscal_years``, list items
# and nested entities use ``fiscal_year_breakdown``.
ITEM_YEAR_FIELDS = ("fiscal_years", "fiscal_year_breakdown")
_FALLBACK_LABEL_FIELDS = ("name",)


# ── Result types ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Category:
    """One breakdown item, identical in shape for map and list containers."""

    name: str
    value: float | None
    percentage: float | None = None
    fiscal_years: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "value": self.value,
            "percentage": self.percentage,
            "fiscal_years": dict(self.fiscal_years),
        }


@dataclass
class ExtractionResult:
    primary_value: float | None = None
    fiscal_years: dict[str, float] | None = None
    categories: list[Category] = field(default_factory=list)
    profile: dict[str, Any] | None = None

    @classmethod
    def empty(cls) -> "ExtractionResult":
        return cls()

    @property
    def is_empty(self) -> bool:
        return (
            self.primary_value is None
            and self.fiscal_years is None
            and not self.categories
            and self.profile is None
        )

    def to_dict(self) -> dict:
        return {
            "primary_value": self.primary_value,
            "fiscal_years": dict(self.fiscal_years) if self.fiscal_years is not None else None,
            "categories": [c.to_dict() for c in self.categories],
            "profile": dict(self.profile) if self.profile is not None else None,
        }


# ── Field helpers ─────────────────────────────────────────────────────────────


def _first_present(item: Any, fields: tuple[str, ...]) -> Any:
    if not isinstance(item, Mapping):
        return None
    for name in fields:
        val = item.get(name)
        if val is not None:
            return val
    return None


def _item_amount(item: Any, fields: tuple[str, ...]) -> float | None:
    """Amount of a breakdown item; a bare number stands for itself."""
    if isinstance(item, Mapping):
        for name in fields:
            amount = parse_amount(item.get(name))
            if amount is not None:
                return amount
        return None
    return parse_amount(item)


def _year_series(raw: Any, value_fields: tuple[str, ...]) -> dict[str, float]:
    """Normalise ``{year: number | {amount-ish: number}}`` to ``{year: float}``."""
    if not isinstance(raw, Mapping):
        return {}
    series: dict[str, float] = {}
    for year, entry in raw.items():
        amount = _item_amount(entry, value_fields)
        if amount is not None:
            series[str(year)] = amount
    return series


def _item_years(item: Any, schema: ColumnSchema) -> dict[str, float]:
    raw = _first_present(item, ITEM_YEAR_FIELDS)
    return _year_series(raw, schema.year_value_candidates)


def _sum_series(series: list[Mapping[str, float]]) -> dict[str, float] | None:
    totals: dict[str, float] = {}
    for one in series:
        for year, amount in one.items():
            totals[year] = totals.get(year, 0.0) + amount
    return totals or None


def _label(item: Mapping, key_fields: tuple[str, ...], position: int) -> str:
    raw = _first_present(item, key_fields + _FALLBACK_LABEL_FIELDS)
    if raw is None:
        return f"#{position + 1}"
    return str(raw).strip()


def _iter_entries(
    container: Any,
    key_fields: tuple[str, ...],
    expected: ContainerKind | None,
    schema_key: str,
) -> Iterator[tuple[str, Any]]:
    """Yield ``(label, item)`` pairs from a map or list container."""
    if isinstance(container, Mapping):
        if expected is ContainerKind.LIST:
            logger.debug("%s: expected list breakdown, iterating map", schema_key)
        for name, item in container.items():
            yield str(name).strip(), item
    elif isinstance(container, list):
        if expected is ContainerKind.ORDERED_MAP:
            logger.debug("%s: expected map breakdown, iterating list", schema_key)
        for pos, item in enumerate(container):
            if isinstance(item, Mapping):
                yield _label(item, key_fields, pos), item
    elif container is not None:
        logger.debug("%s: breakdown container is %s, ignoring",
                     schema_key, type(container).__name__)


def _primary(value: Mapping, schema: ColumnSchema) -> float | None:
    for path in schema.primary_value_strategies:
        amount = parse_amount(resolve(value, path))
        if amount is not None:
            return amount
    return None


def _entity_categories(value: Mapping, schema: ColumnSchema) -> list[Category]:
    """First-level breakdown items as categories (map and list alike)."""
    container = resolve(value, schema.categories_path)
    categories = []
    for name, item in _iter_entries(container, schema.item_key_fields,
                                    schema.container_kind, schema.key):
        categories.append(Category(
            name=name,
            value=_item_amount(item, schema.item_value_fields),
            percentage=parse_percentage(_first_present(item, schema.percentage_fields)),
            fiscal_years=_item_years(item, schema),
        ))
    return categories


def _nested_categories(entry: Any, schema: ColumnSchema) -> list[Category]:
    """Second-level items inside one breakdown entry."""
    nested = _first_present(entry, (schema.nested_list_field,)) if schema.nested_list_field else None
    categories = []
    for name, item in _iter_entries(nested, schema.nested_key_fields,
                                    ContainerKind.LIST, schema.key):
        categories.append(Category(
            name=name,
            value=_item_amount(item, schema.nested_value_fields),
            percentage=parse_percentage(_first_present(item, schema.nested_percentage_fields)),
            fiscal_years=_item_years(item, schema),
        ))
    return categories


def _series_or_aggregate(value: Mapping, schema: ColumnSchema,
                         categories: list[Category]) -> dict[str, float] | None:
    if schema.time_series_path:
        series = _year_series(resolve(value, schema.time_series_path),
                              schema.year_value_candidates)
        if series:
            return series
    return _sum_series([c.fiscal_years for c in categories])


# ── Pattern extractors ────────────────────────────────────────────────────────


def _extract_simple_totals(value: Mapping, schema: ColumnSchema) -> ExtractionResult:
    series = _year_series(resolve(value, schema.time_series_path),
                          schema.year_value_candidates)
    return ExtractionResult(
        primary_value=_primary(value, schema),
        fiscal_years=series or None,
    )


def _extract_summary(value: Mapping, schema: ColumnSchema) -> ExtractionResult:
    # SummaryWithMap and SummaryWithArray differ only in container shape,
    # which _iter_entries already handles.
    categories = _entity_categories(value, schema)
    return ExtractionResult(
        primary_value=_primary(value, schema),
        fiscal_years=_series_or_aggregate(value, schema, categories),
        categories=categories,
    )


def _extract_nested_by_year(value: Mapping, schema: ColumnSchema) -> ExtractionResult:
    primary = _primary(value, schema)
    container = resolve(value, schema.categories_path)
    periods = list(_iter_entries(container, (), schema.container_kind, schema.key))

    series: dict[str, float] = {}
    if schema.period_total_fields:
        for period, entry in periods:
            total = _item_amount(entry, schema.period_total_fields)
            if total is None:
                nested = _nested_categories(entry, schema)
                total = sum(c.value for c in nested if c.value is not None) if nested else None
            if total is not None:
                series[period] = total
    elif schema.time_series_path:
        series = _year_series(resolve(value, schema.time_series_path),
                              schema.year_value_candidates)

    if not schema.nested_list_field:
        # Periods themselves are the categories (e.g. quarters).
        categories = _entity_categories(value, schema)
        return ExtractionResult(primary_value=primary, fiscal_years=series or None,
                                categories=categories)

    # Flatten: aggregate nested items by label across all periods.
    totals: dict[str, float | None] = {}
    per_period: dict[str, dict[str, float]] = {}
    for period, entry in periods:
        for cat in _nested_categories(entry, schema):
            per_period.setdefault(cat.name, {})
            if cat.name not in totals:
                totals[cat.name] = None
            if cat.value is not None:
                totals[cat.name] = (totals[cat.name] or 0.0) + cat.value
                per_period[cat.name][period] = per_period[cat.name].get(period, 0.0) + cat.value

    categories = [
        Category(
            name=name,
            value=amount,
            percentage=round(amount / primary * 100, 2) if amount is not None and primary else None,
            fiscal_years=per_period[name],
        )
        for name, amount in totals.items()
    ]
    return ExtractionResult(primary_value=primary, fiscal_years=series or None,
                            categories=categories)


def _extract_nested_by_entity(value: Mapping, schema: ColumnSchema) -> ExtractionResult:
    return _extract_summary(value, schema)


def _extract_flat_profile(value: Mapping, schema: ColumnSchema) -> ExtractionResult:
    profile = {
        str(k): v for k, v in value.items()
        if not isinstance(v, (Mapping, list))
    }
    return ExtractionResult(profile=profile)


_EXTRACTORS: dict[PatternKind, Callable[[Mapping, ColumnSchema], ExtractionResult]] = {
    PatternKind.SIMPLE_TOTALS: _extract_simple_totals,
    PatternKind.SUMMARY_WITH_MAP: _extract_summary,
    PatternKind.SUMMARY_WITH_ARRAY: _extract_summary,
    PatternKind.NESTED_BY_YEAR: _extract_nested_by_year,
    PatternKind.NESTED_BY_ENTITY: _extract_nested_by_entity,
    PatternKind.FLAT_PROFILE: _extract_flat_profile,
}


def extract(value: Any, schema: ColumnSchema) -> ExtractionResult:
    """Extract a normalised result from a decoded column value.

    Non-mapping input (None, lists, scalars) yields ``ExtractionResult.empty()``.
    """
    if not isinstance(value, Mapping):
        return ExtractionResult.empty()
    return _EXTRACTORS[schema.pattern](value, schema)


# ── Public accessors ──────────────────────────────────────────────────────────


def _extract_ref(value: Any, ref: ColumnSchema | str) -> ExtractionResult | None:
    schema = find_schema(ref)
    if schema is None:
        return None
    return extract(value, schema)


def get_primary_value(value: Any, ref: ColumnSchema | str) -> float | None:
    result = _extract_ref(value, ref)
    return result.primary_value if result else None


def get_primary_value_by_column(value: Any, column: str | int) -> float | None:
    """Primary value looked up by column letter ("E") or index (4)."""
    schema = get_schema_by_column(column)
    if schema is None:
        return None
    return extract(value, schema).primary_value


def get_fiscal_year_data(value: Any, ref: ColumnSchema | str) -> dict[str, float] | None:
    result = _extract_ref(value, ref)
    return result.fiscal_years if result else None


def get_categories(value: Any, ref: ColumnSchema | str) -> list[Category]:
    result = _extract_ref(value, ref)
    return result.categories if result else []


def get_category_by_name(value: Any, ref: ColumnSchema | str, name: str) -> Category | None:
    for category in get_categories(value, ref):
        if category.name == name:
            return category
    return None


def get_top_categories(value: Any, ref: ColumnSchema | str, n: int = 10) -> list[Category]:
    """Top *n* categories by value, descending (missing values sort as 0)."""
    categories = get_categories(value, ref)
    return sorted(categories, key=lambda c: c.value or 0.0, reverse=True)[:n]


def get_value_for_year(value: Any, ref: ColumnSchema | str, year: str | int) -> float | None:
    series = get_fiscal_year_data(value, ref)
    return series.get(str(year)) if series else None


def _drill_down(value: Any, ref: ColumnSchema | str, entry_name: str) -> list[Category]:
    schema = find_schema(ref)
    if schema is None or not isinstance(value, Mapping):
        return []
    container = resolve(value, schema.categories_path)
    wanted = str(entry_name).strip()
    for name, entry in _iter_entries(container, schema.item_key_fields,
                                     schema.container_kind, schema.key):
        if name == wanted:
            return _nested_categories(entry, schema)
    return []


def get_period_categories(value: Any, ref: ColumnSchema | str, period: str | int) -> list[Category]:
    """Nested items for one period of a NestedByYear column.

    Example:
        get_period_categories(data, "aiProduct", "2024")
    """
    return _drill_down(value, ref, str(period))


def get_entity_breakdown(value: Any, ref: ColumnSchema | str, entity: str) -> list[Category]:
    """Nested top-K list for one entity of a NestedByEntity column.

    Example:
        get_entity_breakdown(data, "bicTopProductsPerAgency", "DOD")
    """
    return _drill_down(value, ref, entity)


def extract_normalized(value: Any, ref: ColumnSchema | str) -> dict | None:
    """Full normalised view of a column value, or ``None`` for an unknown key."""
    schema = find_schema(ref)
    if schema is None:
        return None
    result = extract(value, schema)
    meta_source = value if isinstance(value, Mapping) else {}
    return {
        "schema": schema.describe(),
        "primary_value": result.primary_value,
        "fiscal_years": result.fiscal_years,
        "categories": [c.to_dict() for c in result.categories],
        "profile": result.profile,
        "metadata": {
            "processed_date": meta_source.get("processed_date"),
            "source_file": meta_source.get("source_file"),
        },
    }


def extract_cell(raw: Any, ref: ColumnSchema | str) -> ExtractionResult:
    """Decode a raw cell and extract it; malformed input gives an empty result."""
    schema = find_schema(ref)
    if schema is None:
        return ExtractionResult.empty()
    parsed = parse_json_cell(raw, context=schema.key)
    if not parsed.ok:
        return ExtractionResult.empty()
    return extract(parsed.data, schema)
