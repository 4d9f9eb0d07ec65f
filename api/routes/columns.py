"""
Column extraction endpoints: run the extraction engine on a posted value.

POST /api/v1/columns/extract   → normalised view of one column value
POST /api/v1/columns/detect    → which registry key a value looks like
POST /api/v1/columns/validate  → structural validation against a schema

Each body carries either ``value`` (decoded JSON) or ``raw`` (cell text).
Raw text that is not valid JSON extracts to an empty result rather than an
error, matching how sheet loads treat bad cells.
"""

from typing import Any

from fastapi import APIRouter

from api.models import CellPayload, ColumnPayload, DetectOut, NormalizedColumnOut, ValidationOut
from extraction.cells import ParsedCell, parse_json_cell
from extraction.detector import detect_schema
from extraction.errors import UnknownSchemaError
from extraction.extractors import extract_normalized
from extraction.registry import ColumnSchema, get_schema, get_schema_by_column
from extraction.validator import validate_structure

router = APIRouter(prefix="/columns", tags=["columns"])


def _schema_for(payload: ColumnPayload) -> ColumnSchema:
    if payload.key:
        return get_schema(payload.key)
    schema = get_schema_by_column(payload.column)
    if schema is None:
        raise UnknownSchemaError(payload.column)
    return schema


def _decode(payload: CellPayload, context: str) -> ParsedCell:
    source: Any = payload.raw if payload.raw is not None else payload.value
    return parse_json_cell(source, context=context)


@router.post("/extract", response_model=NormalizedColumnOut, summary="Extract a column value")
def extract_column(payload: ColumnPayload) -> dict:
    schema = _schema_for(payload)
    parsed = _decode(payload, context=f"POST /columns/extract ({schema.key})")
    return extract_normalized(parsed.data if parsed.ok else None, schema)


@router.post("/detect", response_model=DetectOut, summary="Detect the schema of a column value")
def detect_column(payload: CellPayload) -> dict:
    """Identify a value by its field fingerprint; ``schema_key`` is null when unrecognised."""
    parsed = _decode(payload, context="POST /columns/detect")
    return {
        "schema_key": detect_schema(parsed.data) if parsed.ok else None,
        "status": parsed.status,
        "error": parsed.error,
    }


@router.post("/validate", response_model=ValidationOut, summary="Validate a column value")
def validate_column(payload: ColumnPayload) -> dict:
    schema = _schema_for(payload)
    parsed = _decode(payload, context=f"POST /columns/validate ({schema.key})")
    if parsed.status == "parse_error":
        return {"valid": False, "schema_key": schema.key,
                "errors": [f"Invalid JSON: {parsed.error}"], "warnings": []}
    return validate_structure(parsed.data, schema).to_dict()
