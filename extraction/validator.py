"""Structural validation of JSON column values against their registry schema.

Checks are registered in a ``ValidationRegistry`` and split issues into
errors (the value does not have the structure the schema promises) and
warnings (something optional is missing or odd).  Validation never raises
and never blocks extraction; it exists for diagnostics and data QA.

    required_fields        missing path                         -> error
    primary_value          absent / non-numeric grand total     -> warning
    categories_container   absent breakdown                     -> warning
                           map/list disagreement                -> error
    fiscal_year_keys       non-year key in the time series      -> warning
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from extraction.cells import parse_json_cell
from extraction.paths import has_path, resolve
from extraction.registry import ColumnSchema, ContainerKind, find_schema, json_column_indexes
from utils.validation import (
    ValidationIssue,
    ValidationRegistry,
    is_number,
    is_valid_fiscal_year,
)


@dataclass
class StructureValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    schema_key: str | None = None

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "schema_key": self.schema_key,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def _type_name(value: Any) -> str:
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, list):
        return "array"
    return type(value).__name__


# ── Checks ────────────────────────────────────────────────────────────────────


def check_required_fields(value: Mapping, schema: ColumnSchema) -> list[ValidationIssue]:
    return [
        ValidationIssue("required_fields", "error", f"Missing required field: {path}", sample=path)
        for path in schema.required_fields
        if not has_path(value, path)
    ]


def check_primary_value(value: Mapping, schema: ColumnSchema) -> list[ValidationIssue]:
    if schema.primary_value_path is None:
        return []
    for path in schema.primary_value_strategies:
        found = resolve(value, path)
        if found is None:
            continue
        if not is_number(found):
            return [ValidationIssue(
                "primary_value", "warning",
                f"Primary value is not a number: {_type_name(found)}", sample=found,
            )]
        return []
    return [ValidationIssue(
        "primary_value", "warning",
        f"Primary value path '{schema.primary_value_path}' not found",
    )]


def check_categories_container(value: Mapping, schema: ColumnSchema) -> list[ValidationIssue]:
    if schema.categories_path is None:
        return []
    container = resolve(value, schema.categories_path)
    if container is None:
        return [ValidationIssue(
            "categories_container", "warning",
            f"Categories path '{schema.categories_path}' not found",
        )]
    if schema.container_kind is ContainerKind.LIST and not isinstance(container, list):
        return [ValidationIssue(
            "categories_container", "error",
            f"Expected array at '{schema.categories_path}', got {_type_name(container)}",
        )]
    if schema.container_kind is ContainerKind.ORDERED_MAP and not isinstance(container, Mapping):
        return [ValidationIssue(
            "categories_container", "error",
            f"Expected object at '{schema.categories_path}', got {_type_name(container)}",
        )]
    return []


def check_fiscal_year_keys(value: Mapping, schema: ColumnSchema) -> list[ValidationIssue]:
    series = resolve(value, schema.time_series_path)
    if not isinstance(series, Mapping):
        return []
    bad = [k for k in series if not is_valid_fiscal_year(k)]
    if not bad:
        return []
    return [ValidationIssue(
        "fiscal_year_keys", "warning",
        f"Unexpected fiscal year keys in '{schema.time_series_path}'",
        sample=bad[0],
    )]


STRUCTURE_CHECKS = ValidationRegistry()
STRUCTURE_CHECKS.register("required_fields", check_required_fields)
STRUCTURE_CHECKS.register("primary_value", check_primary_value)
STRUCTURE_CHECKS.register("categories_container", check_categories_container)
STRUCTURE_CHECKS.register("fiscal_year_keys", check_fiscal_year_keys)


# ── Entry points ──────────────────────────────────────────────────────────────


def validate_structure(value: Any, ref: ColumnSchema | str,
                       registry: ValidationRegistry = STRUCTURE_CHECKS) -> StructureValidation:
    """Validate a decoded column value against its schema.

    Returns:
        StructureValidation; ``valid`` is False when any error was found.
    """
    schema = find_schema(ref)
    if schema is None:
        return StructureValidation(valid=False, errors=[f"Unknown schema key: {ref}"])
    if not isinstance(value, Mapping):
        return StructureValidation(
            valid=False, schema_key=schema.key,
            errors=["JSON data is null or not an object"],
        )

    result = registry.run_all(value, schema)
    return StructureValidation(
        valid=result.is_valid(),
        errors=[i.detail for i in result.get_issues_by_severity("error")],
        warnings=[i.detail for i in result.get_issues_by_severity("warning")],
        schema_key=schema.key,
    )


def validate_row_columns(row: list) -> dict[str, dict]:
    """Validate every registry JSON column of one raw sheet row.

    Returns:
        ``{column_letter: {status, schema_key, errors, warnings, error}}``
        where status is one of empty / parse_error / valid / invalid.
    """
    report: dict[str, dict] = {}
    for index, schema in sorted(json_column_indexes().items()):
        raw = row[index] if index < len(row) else None
        parsed = parse_json_cell(raw, context=f"column {schema.column}")
        entry: dict[str, Any] = {
            "schema_key": schema.key,
            "errors": [],
            "warnings": [],
            "error": None,
        }
        if parsed.status == "empty":
            entry["status"] = "empty"
        elif parsed.status == "parse_error":
            entry["status"] = "parse_error"
            entry["error"] = parsed.error
        else:
            outcome = validate_structure(parsed.data, schema)
            entry["status"] = "valid" if outcome.valid else "invalid"
            entry["errors"] = outcome.errors
            entry["warnings"] = outcome.warnings
        report[schema.column] = entry
    return report
