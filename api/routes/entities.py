"""
Entity endpoints.

GET /api/v1/entities                       → list agencies / OEMs / vendors
GET /api/v1/entities/{id}                  → one entity with its columns
GET /api/v1/entities/{id}/columns/{key}    → one JSON column, normalised
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_data_manager
from api.models import EntityDetailOut, EntityListOut, NormalizedColumnOut
from extraction.extractors import extract_normalized
from extraction.registry import get_schema
from pipeline.data_manager import EntityDataManager
from pipeline.entities import Entity

router = APIRouter(prefix="/entities", tags=["entities"])


def _require(manager: EntityDataManager, entity_id: str) -> Entity:
    entity = manager.get_entity(entity_id)
    if entity is None:
        raise HTTPException(status_code=404, detail=f"Entity {entity_id!r} not found")
    return entity


@router.get("", response_model=EntityListOut, summary="List entities")
def list_entities(
    type: str | None = Query(None, description="agency | oem | vendor (default: all)"),
    parent: str | None = Query(None, description="Exact parent department / company"),
    name: str | None = Query(None, description="Case-insensitive substring of the name"),
    tier: str | None = Query(None, description="Exact tier label, e.g. 'Tier 2'"),
    sort: str = Query("name", pattern="^(name|total_obligations)$", description="Sort key"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    manager: EntityDataManager = Depends(get_data_manager),
) -> dict:
    """Return entity summaries, filtered and paged.

    ``total_obligations`` sorts descending; ``name`` sorts ascending.
    """
    entities = list(manager.get_entities(type))
    if parent:
        entities = [e for e in entities if e.parent == parent]
    if name:
        needle = name.casefold()
        entities = [e for e in entities if needle in e.name.casefold()]
    if tier:
        entities = [e for e in entities if e.tier == tier]

    if sort == "total_obligations":
        entities.sort(key=lambda e: e.total_obligations, reverse=True)
    else:
        entities.sort(key=lambda e: e.name.casefold())

    page = entities[offset:offset + limit]
    return {"total": len(entities), "items": [e.summary_dict() for e in page]}


@router.get("/{entity_id}", response_model=EntityDetailOut, summary="Get one entity")
def get_entity(
    entity_id: str,
    include_columns: bool = Query(True, description="Include decoded JSON columns"),
    manager: EntityDataManager = Depends(get_data_manager),
) -> dict:
    return _require(manager, entity_id).to_dict(include_columns=include_columns)


@router.get(
    "/{entity_id}/columns/{key}",
    response_model=NormalizedColumnOut,
    summary="Extract one column of an entity",
)
def get_entity_column(
    entity_id: str,
    key: str,
    manager: EntityDataManager = Depends(get_data_manager),
) -> dict:
    """Normalised view of one JSON column; empty when the cell was blank or invalid."""
    schema = get_schema(key)
    entity = _require(manager, entity_id)
    return extract_normalized(entity.column(schema.key), schema)
