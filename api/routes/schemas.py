"""
Schema registry endpoints.

GET /api/v1/schemas          → all known JSON columns, in column order
GET /api/v1/schemas/{key}    → one registry entry (404 for an unknown key)
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from api.models import SchemaDetailOut, SchemaOut
from extraction.registry import COLUMN_SCHEMAS, PatternKind, get_schema

router = APIRouter(prefix="/schemas", tags=["schemas"])

_CACHE_HEADER = {"Cache-Control": "max-age=3600"}


def _detail(schema) -> dict:
    d = schema.describe()
    d.update(
        description=schema.description,
        primary_value_path=schema.primary_value_path,
        primary_value_fallbacks=list(schema.primary_value_fallbacks),
        time_series_path=schema.time_series_path,
        categories_path=schema.categories_path,
        container_kind=schema.container_kind.value if schema.container_kind else None,
        required_fields=list(schema.required_fields),
    )
    return d


@router.get("", response_model=list[SchemaOut], summary="List known JSON columns")
def list_schemas(
    pattern: PatternKind | None = Query(None, description="Only schemas of this pattern"),
) -> JSONResponse:
    schemas = sorted(COLUMN_SCHEMAS.values(), key=lambda s: s.column_index)
    if pattern is not None:
        schemas = [s for s in schemas if s.pattern is pattern]
    return JSONResponse(content=[s.describe() for s in schemas], headers=_CACHE_HEADER)


@router.get("/{key}", response_model=SchemaDetailOut, summary="Get one schema")
def get_schema_detail(key: str) -> dict:
    """Return the registry entry for *key*, including extraction paths."""
    return _detail(get_schema(key))
