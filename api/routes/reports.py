"""
Report endpoints for the dashboards and the report builder.

GET /api/v1/reports/summary               → counts, obligations and top 5 per type
GET /api/v1/reports/analytics/{type}      → tier / parent distributions, adoption rates
GET /api/v1/reports/dashboard             → compact rows for the dashboard grid
GET /api/v1/reports/table                 → flattened rows for the report table
GET /api/v1/reports/top                   → top-N entities by one JSON column
GET /api/v1/reports/trends                → per-year totals of one column with YoY growth

Results are memoised per entity snapshot; a reload invalidates them.
"""

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_report_service
from pipeline.reports import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/summary", summary="Cross-type summary")
def summary(reports: ReportService = Depends(get_report_service)) -> dict:
    return reports.summary()


@router.get("/analytics/{entity_type}", summary="Per-type analytics")
def analytics(entity_type: str, reports: ReportService = Depends(get_report_service)) -> dict:
    """Tier and parent distributions, AI adoption and discount usage for one entity type."""
    return reports.analytics(entity_type)


@router.get("/dashboard", summary="Dashboard rows")
def dashboard(
    type: str | None = Query(None, description="agency | oem | vendor (default: all)"),
    parent: str | None = Query(None, description="Exact parent department / company"),
    reports: ReportService = Depends(get_report_service),
) -> list[dict]:
    return reports.dashboard(type, parent=parent)


@router.get("/table", summary="Report table rows")
def table(
    type: str | None = Query(None, description="agency | oem | vendor (default: all)"),
    reports: ReportService = Depends(get_report_service),
) -> list[dict]:
    return reports.table(type)


@router.get("/top", summary="Top entities by column")
def top(
    column: str = Query(..., description="Registry key of the column to rank by", examples=["obligations"]),
    type: str | None = Query(None, description="agency | oem | vendor (default: all)"),
    top_n: int = Query(10, ge=1, le=100, description="Number of entities before the Others bucket"),
    entity: list[str] | None = Query(None, description="Restrict to these entity names (repeatable)"),
    reports: ReportService = Depends(get_report_service),
) -> dict:
    """Rank entities by the column's headline number.

    Entities with no positive value are left out.  When more entities
    qualify than ``top_n`` the remainder is summed into an ``Others`` item.
    The response also carries KPI numbers and recommended chart types.
    """
    return reports.top(type, column, top_n=top_n, names=entity)


@router.get("/trends", summary="Fiscal-year trends by column")
def trends(
    column: str = Query(..., description="Registry key of the column", examples=["obligations"]),
    type: str | None = Query(None, description="agency | oem | vendor (default: all)"),
    entity: list[str] | None = Query(None, description="Restrict to these entity names (repeatable)"),
    reports: ReportService = Depends(get_report_service),
) -> dict:
    return reports.trends(type, column, names=entity)
