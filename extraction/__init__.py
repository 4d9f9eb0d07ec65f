"""Schema-driven extraction engine for the JSON columns of the entity sheets."""

from extraction.errors import ExtractionError, UnknownSchemaError
from extraction.paths import resolve, has_path
from extraction.registry import (
    COLUMN_SCHEMAS,
    ColumnSchema,
    ContainerKind,
    DataSource,
    PatternKind,
    find_schema,
    get_schema,
    get_schema_by_column,
    json_column_indexes,
    schemas_for_pattern,
)
from extraction.cells import ParsedCell, parse_json_cell
from extraction.extractors import (
    Category,
    ExtractionResult,
    extract,
    extract_cell,
    extract_normalized,
    get_categories,
    get_category_by_name,
    get_entity_breakdown,
    get_fiscal_year_data,
    get_period_categories,
    get_primary_value,
    get_primary_value_by_column,
    get_top_categories,
    get_value_for_year,
)
from extraction.detector import detect_schema
from extraction.validator import StructureValidation, validate_row_columns, validate_structure

__all__ = [
    "ExtractionError",
    "UnknownSchemaError",
    "resolve",
    "has_path",
    "COLUMN_SCHEMAS",
    "ColumnSchema",
    "ContainerKind",
    "DataSource",
    "PatternKind",
    "find_schema",
    "get_schema",
    "get_schema_by_column",
    "json_column_indexes",
    "schemas_for_pattern",
    "ParsedCell",
    "parse_json_cell",
    "Category",
    "ExtractionResult",
    "extract",
    "extract_cell",
    "extract_normalized",
    "get_categories",
    "get_category_by_name",
    "get_entity_breakdown",
    "get_fiscal_year_data",
    "get_period_categories",
    "get_primary_value",
    "get_primary_value_by_column",
    "get_top_categories",
    "get_value_for_year",
    "detect_schema",
    "StructureValidation",
    "validate_row_columns",
    "validate_structure",
]
