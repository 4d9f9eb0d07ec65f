"""
Pydantic request/response models for the API.

Optional fields default to None so that partial responses are valid when a
column cell is empty or only partly populated.  Amounts are in dollars.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator


# ── Schema registry models ────────────────────────────────────────────────────

class SchemaOut(BaseModel):
    """One known JSON column."""
    key: str = Field(..., description="Registry key", examples=["obligations"])
    column: str = Field(..., description="Spreadsheet column letter", examples=["D"])
    column_index: int = Field(..., description="Zero-based column position", examples=[3])
    header_name: str = Field(..., description="Expected header text", examples=["Obligations"])
    pattern: str = Field(..., description="Structural pattern of the JSON value", examples=["simple_totals"])
    data_source: str = Field(..., description="Upstream data source", examples=["FAS"])


class SchemaDetailOut(SchemaOut):
    """Registry entry including the paths the extractors follow."""
    description: str | None = Field(None, description="What the column holds")
    primary_value_path: str | None = Field(None, description="Dotted path to the headline number", examples=["total_obligated"])
    primary_value_fallbacks: list[str] = Field(default_factory=list, description="Paths tried when the primary path is absent")
    time_series_path: str | None = Field(None, description="Dotted path to the fiscal-year series", examples=["fiscal_year_obligations"])
    categories_path: str | None = Field(None, description="Dotted path to the category container")
    container_kind: str | None = Field(None, description="ordered_map | list")
    required_fields: list[str] = Field(default_factory=list, description="Top-level fields the validator requires")


# ── Column payloads ───────────────────────────────────────────────────────────

class CellPayload(BaseModel):
    """A column value, either already decoded (``value``) or as raw cell text (``raw``)."""
    value: Any = Field(None, description="Decoded JSON value")
    raw: str | None = Field(None, description="Raw cell text; decoded server-side", examples=['{"total_obligated": 1000}'])

    @model_validator(mode="after")
    def _one_of_value_or_raw(self) -> "CellPayload":
        if self.value is not None and self.raw is not None:
            raise ValueError("pass either 'value' or 'raw', not both")
        return self


class ColumnPayload(CellPayload):
    """A column value plus the schema it belongs to (key or column letter)."""
    key: str | None = Field(None, description="Registry key", examples=["obligations"])
    column: str | None = Field(None, description="Column letter, used when key is omitted", examples=["H"])

    @model_validator(mode="after")
    def _needs_schema_ref(self) -> "ColumnPayload":
        if not self.key and not self.column:
            raise ValueError("either 'key' or 'column' is required")
        return self


class CategoryOut(BaseModel):
    name: str = Field(..., description="Category label", examples=["SMALL BUSINESS"])
    value: float | None = Field(None, description="Category amount", examples=[200.0])
    percentage: float | None = Field(None, description="Share of the column total, percent", examples=[66.67])
    fiscal_years: dict[str, float] = Field(default_factory=dict, description="Per-year amounts for this category")


class ColumnMetadataOut(BaseModel):
    processed_date: str | None = Field(None, description="When the upstream job produced the value")
    source_file: str | None = Field(None, description="Upstream file the value was built from")


class NormalizedColumnOut(BaseModel):
    """Uniform view of one JSON column value regardless of its pattern."""
    schema_: SchemaOut = Field(..., alias="schema", description="Schema the value was extracted with")
    primary_value: float | None = Field(None, description="Headline number", examples=[1000.0])
    fiscal_years: dict[str, float] | None = Field(None, description="Fiscal year to amount", examples=[{"2022": 400.0, "2023": 600.0}])
    categories: list[CategoryOut] = Field(default_factory=list, description="Flattened categories")
    profile: dict[str, Any] | None = Field(None, description="Scalar fields of a flat profile column")
    metadata: ColumnMetadataOut = Field(default_factory=ColumnMetadataOut)

    model_config = {"populate_by_name": True}


class DetectOut(BaseModel):
    schema_key: str | None = Field(None, description="Detected registry key, or null when unrecognised", examples=["obligations"])
    status: str = Field(..., description="Cell decode status: ok | empty | parse_error", examples=["ok"])
    error: str | None = Field(None, description="Decode error, if any")


class ValidationOut(BaseModel):
    valid: bool = Field(..., description="False when any error was found")
    schema_key: str | None = Field(None, description="Schema validated against")
    errors: list[str] = Field(default_factory=list, description="Structural errors")
    warnings: list[str] = Field(default_factory=list, description="Non-fatal findings")


# ── Entity models ─────────────────────────────────────────────────────────────

class EntitySummaryOut(BaseModel):
    """An agency, OEM or vendor row without its JSON columns."""
    id: str = Field(..., description="Stable id: <type>_<row>", examples=["agency_1"])
    name: str = Field(..., description="Entity name", examples=["Department of Veterans Affairs"])
    type: str = Field(..., description="agency | oem | vendor", examples=["agency"])
    identifier: str | None = Field(None, description="Agency code, DUNS or UEI", examples=["036"])
    parent: str | None = Field(None, description="Parent department or company")
    total_obligations: float = Field(0.0, description="Derived total obligations", examples=[1500000.0])
    total_obligations_source: str = Field("none", description="Which source the total was derived from", examples=["obligations_primary"])
    tier: str | None = Field(None, description="OneGov or SUM tier", examples=["Tier 2"])
    has_ai_products: bool = Field(False, description="True when the AI product column is populated")


class EntityDetailOut(EntitySummaryOut):
    row_index: int = Field(..., description="Data row number in the source sheet (1 = first row after the header)")
    fiscal_year_trend: dict[str, float] = Field(default_factory=dict, description="Obligations per fiscal year")
    attributes: dict[str, Any] = Field(default_factory=dict, description="Non-JSON cells (links, table timestamps)")
    available_columns: list[str] = Field(default_factory=list, description="Registry keys with a decoded value")
    parse_errors: list[str] = Field(default_factory=list, description="Registry keys whose cell was not valid JSON")
    columns: dict[str, Any] | None = Field(None, description="Decoded JSON columns (when include_columns=true)")


class EntityListOut(BaseModel):
    total: int = Field(..., description="Number of matching entities")
    items: list[EntitySummaryOut]


# ── Cache + meta ──────────────────────────────────────────────────────────────

class CacheStatusOut(BaseModel):
    state: str = Field(..., description="empty | loading | fresh | stale", examples=["fresh"])
    has_data: bool
    loaded_at: str | None = Field(None, description="UTC timestamp of the last successful load")
    age_seconds: float | None = None
    ttl_seconds: float
    is_stale: bool
    entity_counts: dict[str, int]
    load_reports: dict[str, Any] = Field(default_factory=dict, description="Per-sheet load accounting")
    last_error: str | None = None


class ErrorOut(BaseModel):
    error: str = Field(..., examples=["Not found"])
    detail: str | None = None
    status_code: int = Field(..., examples=[404])
