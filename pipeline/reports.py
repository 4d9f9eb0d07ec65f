"""
Reporting views over cached entities.

Pure functions compute each view from a sequence of Entities; ``ReportService``
binds them to an ``EntityDataManager`` and memoises results per snapshot in a
``TTLCache`` keyed on the snapshot's load sequence, so a reload misses.

Views:
  - dashboard_rows       compact per-entity rows for the dashboard grid
  - table_rows           flattened rows for the report table
  - top_entities         report-builder top-N by one JSON column, plus "Others"
  - fiscal_year_trends   per-year totals of one column across entities
  - trend_report         trends + YoY growth, total and average growth
  - kpi_numbers          count / total / average / top entity
  - type_analytics       per-entity-type distributions and adoption rates
  - summary_report       cross-type counts, obligations and top 5s
  - recommend_chart_types
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Optional

from extraction.registry import ColumnSchema, get_schema
from pipeline.data_manager import EntityDataManager
from pipeline.entities import Entity, EntityType
from utils.cache import TTLCache
from utils.config import KnownValues
from utils.formatting import format_amount, format_currency_short, format_percent

logger = logging.getLogger(__name__)

OTHERS_LABEL = "Others"
TABLE_FISCAL_YEARS = ("2024", "2025")


# ── Per-entity values ─────────────────────────────────────────────────────────


def column_value(entity: Entity, schema: ColumnSchema) -> Optional[float]:
    """Headline number of one column for one entity.

    The primary value when present, otherwise the sum of the column's
    fiscal-year series.
    """
    result = entity.extract(schema)
    if result.primary_value is not None:
        return result.primary_value
    if result.fiscal_years:
        return sum(result.fiscal_years.values())
    return None


def _small_business_share(entity: Entity) -> Optional[float]:
    for category in entity.extract("smallBusiness").categories:
        if category.name.upper() == "SMALL BUSINESS":
            return category.percentage
    return None


def _has_discounts(entity: Entity) -> bool:
    status = (entity.column("oneGovDiscountedProducts") or {}).get("discount_status")
    return isinstance(status, str) and status.strip().lower() == "active discounts"


def _filter(entities: Sequence[Entity], names: Optional[Sequence[str]] = None,
            parent: Optional[str] = None) -> list[Entity]:
    selected = list(entities)
    if names:
        wanted = set(names)
        selected = [e for e in selected if e.name in wanted]
    if parent:
        selected = [e for e in selected if e.parent == parent]
    return selected


# ── Views ─────────────────────────────────────────────────────────────────────


def dashboard_rows(entities: Sequence[Entity]) -> list[dict[str, Any]]:
    return [
        {
            "id": e.id,
            "name": e.name,
            "type": e.type.value,
            "parent": e.parent,
            "total_obligations": e.total_obligations,
            "total_obligations_label": format_currency_short(e.total_obligations),
            "tier": e.tier,
            "contract_count": len(e.extract("activeContracts").categories),
            "has_ai_products": e.has_ai_products,
        }
        for e in entities
    ]


def table_rows(entities: Sequence[Entity],
               fiscal_years: Sequence[str] = TABLE_FISCAL_YEARS) -> list[dict[str, Any]]:
    rows = []
    for e in entities:
        row = {
            "id": e.id,
            "name": e.name,
            "type": e.type.value,
            "category": e.type.value.upper(),
            "total": e.total_obligations,
            "tier": e.tier or "N/A",
            "small_business_share": _small_business_share(e),
        }
        for year in fiscal_years:
            row[f"fy{year}"] = e.fiscal_year_trend.get(year, 0.0)
        rows.append(row)
    return rows


def top_entities(entities: Sequence[Entity], schema: ColumnSchema,
                 top_n: int = 10) -> dict[str, Any]:
    """Top *top_n* entities by one column, with the remainder rolled into Others."""
    valued = []
    for e in entities:
        value = column_value(e, schema)
        if value is not None and value > 0:
            valued.append({"id": e.id, "name": e.name, "type": e.type.value, "value": value})
    valued.sort(key=lambda item: item["value"], reverse=True)

    overall = sum(item["value"] for item in valued)
    top = valued[:top_n]
    top_total = sum(item["value"] for item in top)
    others = overall - top_total
    items = [dict(item, rank=i + 1, label=format_currency_short(item["value"]))
             for i, item in enumerate(top)]
    if others > 0 and len(valued) > top_n:
        items.append({"id": None, "name": OTHERS_LABEL, "type": None, "value": others,
                      "rank": None, "label": format_currency_short(others)})
    return {
        "column": schema.key,
        "top_n": top_n,
        "items": items,
        "top_total": top_total,
        "others_value": others,
        "overall_total": overall,
        "chart_types": recommend_chart_types(len(top), schema.key),
        "kpi": kpi_numbers(valued),
    }


def fiscal_year_trends(entities: Sequence[Entity], schema: ColumnSchema) -> dict[str, float]:
    totals: dict[str, float] = {}
    for e in entities:
        series = e.extract(schema).fiscal_years or {}
        for year, amount in series.items():
            totals[year] = totals.get(year, 0.0) + amount
    return dict(sorted(totals.items()))


def year_over_year_growth(series: Mapping[str, float]) -> dict[str, float]:
    """Percent change per year against the previous year (skipped when previous <= 0)."""
    years = sorted(series)
    growth: dict[str, float] = {}
    for prev, cur in zip(years, years[1:]):
        previous = series[prev] or 0.0
        if previous > 0:
            growth[cur] = round((series[cur] - previous) / previous * 100, 1)
    return growth


def trend_report(series: Mapping[str, float]) -> Optional[dict[str, Any]]:
    """Historical trend with YoY growth; None when there is no series."""
    if not series:
        return None
    years = sorted(series)
    values = [series[y] for y in years]
    growth = year_over_year_growth(series)
    rates = [growth.get(y) for y in years[1:]]
    known = [r for r in rates if r is not None]

    total_growth = None
    if len(values) > 1 and values[0]:
        total_growth = round((values[-1] - values[0]) / values[0] * 100, 1)

    rows = []
    for i, year in enumerate(years):
        rows.append({
            "year": year,
            "value": values[i],
            "label": format_amount(values[i]),
            "yoy_growth": growth.get(year) if i else None,
            "yoy_change": values[i] - values[i - 1] if i else None,
        })
    return {
        "years": years,
        "values": values,
        "growth": [None] + rates,
        "total_growth": total_growth,
        "total_growth_label": format_percent(total_growth) if total_growth is not None else "N/A",
        "avg_annual_growth": round(sum(known) / len(known), 1) if known else None,
        "rows": rows,
    }


def kpi_numbers(items: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    """Count, total, average and top entry of ``{name, value}`` items."""
    total = sum(item.get("value") or 0.0 for item in items)
    count = len(items)
    average = total / count if count else 0.0
    top = max(items, key=lambda item: item.get("value") or 0.0, default=None)
    return {
        "count": count,
        "total": total,
        "total_label": format_currency_short(total),
        "average": average,
        "average_label": format_currency_short(average),
        "top_name": top["name"] if top else None,
        "top_value": (top.get("value") or 0.0) if top else 0.0,
    }


def recommend_chart_types(entity_count: int, column: str) -> list[str]:
    """Chart types suited to the number of entities shown."""
    if column in ("topRefPiid", "topPiid"):
        return ["funnel", "horizontalBar", "verticalBar"]
    if entity_count <= 5:
        return ["verticalBar", "horizontalBar", "pie", "doughnut"]
    if entity_count <= 10:
        return ["horizontalBar", "stackedBar", "pie"]
    return ["horizontalBar", "funnel"]


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def type_analytics(entities: Sequence[Entity], top_n: int = 10) -> dict[str, Any]:
    tiers: dict[str, int] = {}
    parents: dict[str, int] = {}
    ai = discounts = 0
    for e in entities:
        if e.tier:
            tiers[e.tier] = tiers.get(e.tier, 0) + 1
        if e.parent:
            parents[e.parent] = parents.get(e.parent, 0) + 1
        ai += e.has_ai_products
        discounts += _has_discounts(e)

    count = len(entities)
    ranked = sorted((e for e in entities if e.total_obligations),
                    key=lambda e: e.total_obligations, reverse=True)[:top_n]
    return {
        "total_entities": count,
        "total_obligations": sum(e.total_obligations for e in entities),
        "tier_distribution": dict(sorted(tiers.items(), key=lambda kv: KnownValues.tier_rank(kv[0]))),
        "tier_definitions": dict(KnownValues.TIER_DEFINITIONS),
        "parent_distribution": dict(sorted(parents.items(), key=lambda kv: -kv[1])),
        "ai_adoption": ai,
        "ai_adoption_rate": _rate(ai, count),
        "discount_users": discounts,
        "discount_usage_rate": _rate(discounts, count),
        "top_entities": [
            {"id": e.id, "name": e.name, "identifier": e.identifier, "parent": e.parent,
             "obligations": e.total_obligations, "tier": e.tier}
            for e in ranked
        ],
    }


def summary_report(by_type: Mapping[EntityType, Sequence[Entity]], top_n: int = 5) -> dict[str, Any]:
    counts: dict[str, int] = {}
    obligations: dict[str, float] = {}
    top: dict[str, list[dict[str, Any]]] = {}
    for entity_type in EntityType:
        entities = by_type.get(entity_type, ())
        counts[entity_type.value] = len(entities)
        obligations[entity_type.value] = sum(e.total_obligations for e in entities)
        ranked = sorted(entities, key=lambda e: e.total_obligations, reverse=True)[:top_n]
        top[entity_type.value] = [e.summary_dict() for e in ranked]
    counts["total"] = sum(counts.values())
    obligations["total"] = sum(obligations.values())
    return {
        "counts": counts,
        "obligations": obligations,
        "obligations_label": {k: format_currency_short(v) for k, v in obligations.items()},
        "top": top,
    }


# ── Service ───────────────────────────────────────────────────────────────────


class ReportService:
    """Report views bound to a data manager, memoised per snapshot."""

    def __init__(self, manager: EntityDataManager, cache: Optional[TTLCache] = None) -> None:
        self.manager = manager
        self.cache = cache or TTLCache(maxsize=256, ttl_seconds=manager.ttl_seconds)

    def _cached(self, name: str, params: tuple, compute) -> Any:
        snapshot = self.manager.snapshot()
        key = (name, params, snapshot.sequence)
        return self.cache.get_or_compute(key, lambda: compute(snapshot))

    def summary(self) -> dict[str, Any]:
        return self._cached("summary", (), lambda s: summary_report(
            {t: s.entities(t) for t in EntityType}))

    def analytics(self, entity_type: str) -> dict[str, Any]:
        wanted = EntityType.parse(entity_type)
        if wanted is None:
            raise ValueError("entity type is required for analytics")
        return self._cached("analytics", (wanted.value,),
                            lambda s: dict(type_analytics(s.entities(wanted)), entity_type=wanted.value))

    def dashboard(self, entity_type: Optional[str] = None,
                  parent: Optional[str] = None) -> list[dict[str, Any]]:
        wanted = EntityType.parse(entity_type)
        return self._cached("dashboard", (wanted, parent),
                            lambda s: dashboard_rows(_filter(s.entities(wanted), parent=parent)))

    def table(self, entity_type: Optional[str] = None) -> list[dict[str, Any]]:
        wanted = EntityType.parse(entity_type)
        return self._cached("table", (wanted,), lambda s: table_rows(s.entities(wanted)))

    def top(self, entity_type: Optional[str], column: str, top_n: int = 10,
            names: Optional[Sequence[str]] = None) -> dict[str, Any]:
        if top_n < 1:
            raise ValueError("top_n must be at least 1")
        wanted = EntityType.parse(entity_type)
        schema = get_schema(column)
        params = (wanted, schema.key, top_n, tuple(names or ()))
        return self._cached("top", params, lambda s: top_entities(
            _filter(s.entities(wanted), names=names), schema, top_n))

    def trends(self, entity_type: Optional[str], column: str,
               names: Optional[Sequence[str]] = None) -> dict[str, Any]:
        wanted = EntityType.parse(entity_type)
        schema = get_schema(column)
        params = (wanted, schema.key, tuple(names or ()))

        def compute(snapshot):
            series = fiscal_year_trends(_filter(snapshot.entities(wanted), names=names), schema)
            return {"column": schema.key, "fiscal_years": series, "trend": trend_report(series)}

        return self._cached("trends", params, compute)
