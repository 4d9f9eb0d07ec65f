"""Column schema registry for the JSON columns of the Agency / OEM / Vendor sheets.

Every JSON column in the three entity sheets follows one of six structural
patterns.  This module enumerates each known column once, as data: where its
grand total lives, where its fiscal-year series lives, where its breakdown
lives and how the breakdown items name their label and amount.

The extractors in ``extraction.extractors`` only read these entries.  Adding
a column means adding a ``ColumnSchema`` to ``_SCHEMAS`` below and nothing
else.

Sheet layout (identical on all three sheets)::

    A-C   identifiers (DUNS/UEI/code, name, parent)
    D-X   JSON columns (21)
    Y-AB  data-table URLs and update timestamps
    AC    USAi profile (JSON)
    AD-AE website / LinkedIn
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from extraction.errors import UnknownSchemaError


class PatternKind(str, Enum):
    """The closed set of structural shapes a JSON column can take."""

    SIMPLE_TOTALS = "simple_totals"
    SUMMARY_WITH_MAP = "summary_with_map"
    SUMMARY_WITH_ARRAY = "summary_with_array"
    NESTED_BY_YEAR = "nested_by_year"
    NESTED_BY_ENTITY = "nested_by_entity"
    FLAT_PROFILE = "flat_profile"


class ContainerKind(str, Enum):
    """Runtime shape of a breakdown container."""

    ORDERED_MAP = "ordered_map"
    LIST = "list"


class DataSource(str, Enum):
    """Upstream provenance of a column (informational only)."""

    FAS = "FAS"
    BIC = "BIC"
    CALCULATED = "CALCULATED"
    USAI = "USAI"


# Amount field candidates, checked in order.  Map-shaped breakdowns normally
# carry ``total``; the FAS OEM column carries ``total_obligations`` instead.
DEFAULT_MAP_VALUE_FIELDS = ("total_obligations", "total")
DEFAULT_YEAR_VALUE_FIELDS = ("obligations", "total_price", "total_sales", "total_spend", "amount")
DEFAULT_PERCENTAGE_FIELDS = ("percentage_of_total",)
STANDARD_FISCAL_YEARS = ("2022", "2023", "2024", "2025")


@dataclass(frozen=True)
class ColumnSchema:
    """Declarative description of one JSON column.

    Attributes:
        key: Logical column name used throughout the code base.
        column: Sheet column letter ("D".."AC").
        column_index: Zero-based position in a sheet row.
        header_name: Header text expected in the first sheet row.
        pattern: Structural pattern used for extractor dispatch.
        data_source: Provenance tag (FAS / BIC / CALCULATED / USAI).
        primary_value_path: Dotted path to the grand total; None only for
            flat profiles.
        primary_value_fallbacks: Alternative paths tried, in order, when the
            primary path is absent.
        time_series_path: Dotted path to a year -> amount mapping.
        categories_path: Dotted path to the breakdown container.
        container_kind: Expected runtime shape of the breakdown container.
        item_key_fields: Candidate label fields for list items.
        item_value_fields: Candidate amount fields for breakdown items.
        year_value_fields: Candidate amount fields inside a per-year
            sub-object (checked after ``item_value_fields``).
        percentage_fields: Candidate share fields for breakdown items.
        nested_list_field: Second-level list inside each breakdown entry
            (nested patterns only).
        nested_key_fields / nested_value_fields / nested_percentage_fields:
            Label, amount and share candidates for second-level items.
        period_total_fields: Per-period total fields of a nested-by-year
            container; empty when the periods are not fiscal years.
        required_fields: Paths that must be present for a valid value.
        fiscal_year_fields: Fiscal years normally present.
        known_categories: Category labels seen in production data.
    """

    key: str
    column: str
    column_index: int
    header_name: str
    pattern: PatternKind
    data_source: DataSource
    description: str = ""
    primary_value_path: str | None = None
    primary_value_fallbacks: tuple[str, ...] = ()
    time_series_path: str | None = None
    categories_path: str | None = None
    container_kind: ContainerKind | None = None
    item_key_fields: tuple[str, ...] = ()
    item_value_fields: tuple[str, ...] = DEFAULT_MAP_VALUE_FIELDS
    year_value_fields: tuple[str, ...] = DEFAULT_YEAR_VALUE_FIELDS
    percentage_fields: tuple[str, ...] = DEFAULT_PERCENTAGE_FIELDS
    nested_list_field: str | None = None
    nested_key_fields: tuple[str, ...] = ()
    nested_value_fields: tuple[str, ...] = ()
    nested_percentage_fields: tuple[str, ...] = ()
    period_total_fields: tuple[str, ...] = ()
    required_fields: tuple[str, ...] = ()
    fiscal_year_fields: tuple[str, ...] = ()
    known_categories: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        is_profile = self.pattern is PatternKind.FLAT_PROFILE
        if is_profile == (self.primary_value_path is not None):
            raise ValueError(
                f"{self.key}: primary_value_path must be set unless the "
                f"pattern is {PatternKind.FLAT_PROFILE.value}"
            )
        if (self.categories_path is None) != (self.container_kind is None):
            raise ValueError(
                f"{self.key}: categories_path and container_kind go together"
            )

    @property
    def item_key_field(self) -> str | None:
        return self.item_key_fields[0] if self.item_key_fields else None

    @property
    def item_value_field(self) -> str | None:
        return self.item_value_fields[0] if self.item_value_fields else None

    @property
    def primary_value_strategies(self) -> tuple[str, ...]:
        """Ordered paths tried for the grand total."""
        if self.primary_value_path is None:
            return ()
        return (self.primary_value_path,) + self.primary_value_fallbacks

    @property
    def year_value_candidates(self) -> tuple[str, ...]:
        """Amount fields checked inside a per-year sub-object."""
        seen: dict[str, None] = {}
        for name in self.item_value_fields + self.year_value_fields:
            seen.setdefault(name, None)
        return tuple(seen)

    def describe(self) -> dict:
        """Schema summary used by ``extract_normalized`` and the API."""
        return {
            "key": self.key,
            "column": self.column,
            "column_index": self.column_index,
            "header_name": self.header_name,
            "pattern": self.pattern.value,
            "data_source": self.data_source.value,
        }


# ── Registry entries ──────────────────────────────────────────────────────────

_SCHEMAS: tuple[ColumnSchema, ...] = (
    ColumnSchema(
        key="obligations", column="D", column_index=3, header_name="Obligations",
        pattern=PatternKind.SIMPLE_TOTALS, data_source=DataSource.FAS,
        description="Total federal obligations with fiscal year breakdown.",
        primary_value_path="total_obligated",
        primary_value_fallbacks=("summary.total_obligations",),
        time_series_path="fiscal_year_obligations",
        required_fields=("source_file", "fiscal_year_obligations", "total_obligated", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
    ),
    ColumnSchema(
        key="smallBusiness", column="E", column_index=4, header_name="Small Business",
        pattern=PatternKind.SUMMARY_WITH_MAP, data_source=DataSource.FAS,
        description="Obligations by business size (Small vs Other Than Small).",
        primary_value_path="summary.total_all_obligations",
        categories_path="business_size_summaries", container_kind=ContainerKind.ORDERED_MAP,
        required_fields=("source_file", "summary", "business_size_summaries", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
        known_categories=("SMALL BUSINESS", "OTHER THAN SMALL BUSINESS"),
    ),
    ColumnSchema(
        key="sumTier", column="F", column_index=5, header_name="SUM Tier",
        pattern=PatternKind.SUMMARY_WITH_MAP, data_source=DataSource.FAS,
        description="Obligations by Spend Under Management tier.",
        primary_value_path="summary.total_all_obligations",
        categories_path="tier_summaries", container_kind=ContainerKind.ORDERED_MAP,
        required_fields=("source_file", "summary", "tier_summaries", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
        known_categories=("BIC", "TIER 0", "TIER 1", "TIER 2"),
    ),
    ColumnSchema(
        key="sumType", column="G", column_index=6, header_name="Sum Type",
        pattern=PatternKind.SUMMARY_WITH_MAP, data_source=DataSource.FAS,
        description="Obligations by contract management type.",
        primary_value_path="summary.total_all_obligations",
        categories_path="sum_type_summaries", container_kind=ContainerKind.ORDERED_MAP,
        required_fields=("source_file", "summary", "sum_type_summaries", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
        known_categories=("Governmentwide Management", "Agency Managed & IDIQ", "Open Market"),
    ),
    ColumnSchema(
        key="contractVehicle", column="H", column_index=7, header_name="Contract Vehicle",
        pattern=PatternKind.SUMMARY_WITH_MAP, data_source=DataSource.FAS,
        description="Top 20 contract vehicles by obligations.",
        primary_value_path="summary.total_all_obligations",
        categories_path="top_contract_summaries", container_kind=ContainerKind.ORDERED_MAP,
        required_fields=("source_file", "summary", "top_contract_summaries", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
    ),
    ColumnSchema(
        key="fundingDepartment", column="I", column_index=8, header_name="Funding Department",
        pattern=PatternKind.SUMMARY_WITH_MAP, data_source=DataSource.FAS,
        description="Top 10 funding departments by obligations.",
        primary_value_path="summary.total_all_departments",
        primary_value_fallbacks=("summary.total_top_10_departments",),
        categories_path="top_10_department_summaries", container_kind=ContainerKind.ORDERED_MAP,
        required_fields=("source_file", "summary", "top_10_department_summaries", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
    ),
    ColumnSchema(
        key="oneGovDiscountedProducts", column="J", column_index=9,
        header_name="OneGov Discounted Products",
        pattern=PatternKind.SUMMARY_WITH_MAP, data_source=DataSource.FAS,
        description="Obligations for products carrying OneGov discounts.",
        primary_value_path="summary.total_obligations_with_discounts",
        categories_path="discount_categories", container_kind=ContainerKind.ORDERED_MAP,
        required_fields=("source_file", "discount_status", "summary", "discount_categories", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
        known_categories=(
            "AWS Migration Credits",
            "AWS Modernization - Application",
            "AWS Modernization - Infrastructure",
            "AWS Modernization - POC",
            "AWS Training & Certification",
            "Azure",
            "ServiceNow ITSM Pro Bundle - GCC",
        ),
    ),
    ColumnSchema(
        key="topRefPiid", column="K", column_index=10, header_name="Top Ref_PIID",
        pattern=PatternKind.SUMMARY_WITH_ARRAY, data_source=DataSource.FAS,
        description="Top 10 reference PIIDs (parent contracts) by obligations.",
        primary_value_path="total_obligations",
        time_series_path="yearly_totals",
        categories_path="top_10_reference_piids", container_kind=ContainerKind.LIST,
        item_key_fields=("reference_piid",),
        item_value_fields=("dollars_obligated",),
        required_fields=(
            "source_file", "total_obligations", "unique_ref_piids", "fiscal_years_covered",
            "yearly_totals", "top_10_reference_piids", "processed_date",
        ),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
    ),
    ColumnSchema(
        key="topPiid", column="L", column_index=11, header_name="Top PIID",
        pattern=PatternKind.SUMMARY_WITH_ARRAY, data_source=DataSource.FAS,
        description="Top 10 individual contract PIIDs by obligations.",
        primary_value_path="total_obligations",
        time_series_path="yearly_totals",
        categories_path="top_10_piids", container_kind=ContainerKind.LIST,
        item_key_fields=("piid",),
        item_value_fields=("dollars_obligated",),
        required_fields=(
            "source_file", "total_obligations", "unique_piids", "fiscal_years_covered",
            "yearly_totals", "top_10_piids", "processed_date",
        ),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
    ),
    ColumnSchema(
        key="activeContracts", column="M", column_index=12, header_name="Active Contracts",
        pattern=PatternKind.NESTED_BY_YEAR, data_source=DataSource.FAS,
        description="Contract expiration analysis by fiscal quarter.",
        primary_value_path="summary.total_obligations",
        categories_path="expiring_by_quarter", container_kind=ContainerKind.ORDERED_MAP,
        item_value_fields=("total_obligations_expiring",),
        required_fields=("source_file", "summary", "expiring_by_quarter", "processed_date"),
        known_categories=(
            "Q1 FY26", "Q2 FY26", "Q3 FY26", "Q4 FY26",
            "Q1 FY27", "Q2 FY27", "Q3 FY27", "Q4 FY27",
        ),
    ),
    ColumnSchema(
        key="expiringDiscountedProducts", column="N", column_index=13,
        header_name="Expiring OneGov Discounted Products",
        pattern=PatternKind.NESTED_BY_ENTITY, data_source=DataSource.FAS,
        description="Expiring discounted contracts by quarter with top entities per quarter.",
        primary_value_path="summary.grand_total_all_obligations",
        categories_path="discount_contracts_expiring_by_quarter",
        container_kind=ContainerKind.ORDERED_MAP,
        item_value_fields=("total_dollars_expiring",),
        percentage_fields=("percentage_of_total_discounts",),
        nested_list_field="top_entities_expiring",
        nested_key_fields=("entity_name",),
        nested_value_fields=("dollars_expiring",),
        required_fields=(
            "source_file", "sheet_type", "grouped_by", "discount_report_status",
            "summary", "discount_contracts_expiring_by_quarter", "processed_date",
        ),
    ),
    ColumnSchema(
        key="aiProduct", column="O", column_index=14, header_name="AI Product",
        pattern=PatternKind.NESTED_BY_YEAR, data_source=DataSource.FAS,
        description="AI-related products by fiscal year, top 10 per year.",
        primary_value_path="summary.grand_total_obligations",
        categories_path="fiscal_year_summaries", container_kind=ContainerKind.ORDERED_MAP,
        nested_list_field="top_10_products",
        # Some records carry the label under " product" (leading space).
        nested_key_fields=("product", " product"),
        nested_value_fields=("obligations",),
        nested_percentage_fields=("percentage_of_total",),
        period_total_fields=("total_obligations",),
        required_fields=("source_file", "ai_product_status", "summary", "fiscal_year_summaries", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
    ),
    ColumnSchema(
        key="aiCategory", column="P", column_index=15, header_name="AI Category",
        pattern=PatternKind.NESTED_BY_YEAR, data_source=DataSource.FAS,
        description="AI product categories by fiscal year.",
        primary_value_path="summary.grand_total_obligations",
        categories_path="fiscal_year_summaries", container_kind=ContainerKind.ORDERED_MAP,
        nested_list_field="top_10_categories",
        nested_key_fields=("category",),
        nested_value_fields=("obligations",),
        nested_percentage_fields=("percentage_of_total",),
        period_total_fields=("total_obligations",),
        required_fields=("source_file", "ai_category_status", "summary", "fiscal_year_summaries", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
        known_categories=(
            "Cloud & Infrastructure Services",
            "Professional Services - Consulting",
            "Professional Services - Implementation",
            "Professional Services - Development",
            "Software Licenses & Subscriptions",
            "Hardware & Equipment",
            "Training & Education",
            "Data Analytics & AI/ML",
            "Insufficient Information",
        ),
    ),
    ColumnSchema(
        key="topBicProducts", column="Q", column_index=16, header_name="Top BIC Products",
        pattern=PatternKind.SUMMARY_WITH_ARRAY, data_source=DataSource.BIC,
        description="Top 25 BIC products by total price.",
        primary_value_path="summary.total_all_products",
        primary_value_fallbacks=("summary.total_top_25_products",),
        time_series_path="yearly_totals",
        categories_path="top_25_products", container_kind=ContainerKind.LIST,
        item_key_fields=("product_name",),
        item_value_fields=("total_price",),
        required_fields=("source_file", "summary", "yearly_totals", "top_25_products", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
    ),
    ColumnSchema(
        key="reseller", column="R", column_index=17, header_name="Reseller",
        pattern=PatternKind.SUMMARY_WITH_MAP, data_source=DataSource.FAS,
        description="Top 15 FAS resellers by obligations.",
        primary_value_path="summary.total_all_resellers",
        primary_value_fallbacks=("summary.total_top_15_resellers",),
        categories_path="top_15_reseller_summaries", container_kind=ContainerKind.ORDERED_MAP,
        required_fields=("source_file", "summary", "top_15_reseller_summaries", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
    ),
    ColumnSchema(
        key="bicReseller", column="S", column_index=18, header_name="BIC Reseller",
        pattern=PatternKind.SUMMARY_WITH_ARRAY, data_source=DataSource.BIC,
        description="Top 15 BIC resellers by total sales.",
        primary_value_path="summary.total_all_resellers",
        primary_value_fallbacks=("summary.total_top_15_resellers",),
        time_series_path="yearly_totals",
        categories_path="top_15_resellers", container_kind=ContainerKind.LIST,
        item_key_fields=("vendor_name",),
        item_value_fields=("total_sales",),
        required_fields=("source_file", "summary", "yearly_totals", "top_15_resellers", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
    ),
    ColumnSchema(
        key="bicOem", column="T", column_index=19, header_name="BIC OEM",
        pattern=PatternKind.SUMMARY_WITH_ARRAY, data_source=DataSource.BIC,
        description="Top 15 BIC manufacturers by total sales.",
        primary_value_path="summary.total_all_manufacturers",
        primary_value_fallbacks=("summary.total_top_15_manufacturers",),
        time_series_path="yearly_totals",
        categories_path="top_15_manufacturers", container_kind=ContainerKind.LIST,
        item_key_fields=("manufacturer_name",),
        item_value_fields=("total_sales",),
        required_fields=("source_file", "summary", "yearly_totals", "top_15_manufacturers", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
    ),
    ColumnSchema(
        key="fasOem", column="U", column_index=20, header_name="FAS OEM",
        pattern=PatternKind.SUMMARY_WITH_MAP, data_source=DataSource.FAS,
        description="Top 10 FAS OEMs by obligations.",
        primary_value_path="summary.total_all_oems",
        primary_value_fallbacks=("summary.total_top_10_oems",),
        categories_path="top_10_oem_summaries", container_kind=ContainerKind.ORDERED_MAP,
        # Items carry total_obligations, not total.
        item_value_fields=("total_obligations", "total"),
        required_fields=("source_file", "summary", "top_10_oem_summaries", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
    ),
    ColumnSchema(
        key="fundingAgency", column="V", column_index=21, header_name="Funding Agency",
        pattern=PatternKind.SUMMARY_WITH_MAP, data_source=DataSource.FAS,
        description="Top 10 funding agencies (sub-department level).",
        primary_value_path="summary.total_all_agencies",
        primary_value_fallbacks=("summary.total_top_10_agencies",),
        categories_path="top_10_agency_summaries", container_kind=ContainerKind.ORDERED_MAP,
        required_fields=("source_file", "summary", "top_10_agency_summaries", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
    ),
    ColumnSchema(
        key="bicTopProductsPerAgency", column="W", column_index=22,
        header_name="BIC Top Products per Agency",
        pattern=PatternKind.NESTED_BY_ENTITY, data_source=DataSource.BIC,
        description="Top 10 agencies with their top 3 BIC products each.",
        primary_value_path="summary.grand_total",
        time_series_path="yearly_totals",
        categories_path="top_10_agencies", container_kind=ContainerKind.ORDERED_MAP,
        item_value_fields=("agency_total",),
        percentage_fields=("percentage_of_grand_total",),
        nested_list_field="top_3_products",
        nested_key_fields=("product_name",),
        nested_value_fields=("total_price",),
        nested_percentage_fields=("percentage_of_agency_total",),
        required_fields=("source_file", "summary", "yearly_totals", "top_10_agencies", "processed_date"),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
    ),
    ColumnSchema(
        key="oneGovTier", column="X", column_index=23, header_name="OneGov Tier",
        pattern=PatternKind.SIMPLE_TOTALS, data_source=DataSource.CALCULATED,
        description="Tier classification from average yearly obligations.",
        primary_value_path="total_obligated",
        time_series_path="fiscal_year_tiers",
        required_fields=(
            "mode_tier", "overall_tier", "total_obligated", "formatted_total",
            "average_obligations_per_year", "fiscal_year_tiers", "tier_counts",
            "tier_summary", "tier_definitions", "processed_date",
        ),
        fiscal_year_fields=STANDARD_FISCAL_YEARS,
    ),
    ColumnSchema(
        key="usaiProfile", column="AC", column_index=28, header_name="USAi Profile",
        pattern=PatternKind.FLAT_PROFILE, data_source=DataSource.USAI,
        description="Company profile (headquarters, overview, products).",
        required_fields=("oem_name",),
    ),
)

COLUMN_SCHEMAS: Mapping[str, ColumnSchema] = MappingProxyType({s.key: s for s in _SCHEMAS})

_BY_COLUMN: dict[str | int, ColumnSchema] = {}
for _schema in _SCHEMAS:
    _BY_COLUMN[_schema.column] = _schema
    _BY_COLUMN[_schema.column_index] = _schema
del _schema


# ── Lookups ───────────────────────────────────────────────────────────────────


def get_schema(key: str) -> ColumnSchema:
    """Return the schema for logical column *key*.

    Raises:
        UnknownSchemaError: if *key* is not registered.
    """
    try:
        return COLUMN_SCHEMAS[key]
    except KeyError:
        raise UnknownSchemaError(key) from None


def get_schema_by_column(ref: str | int) -> ColumnSchema | None:
    """Look up a schema by column letter ("U") or zero-based index (20)."""
    if isinstance(ref, str):
        ref = ref.strip().upper()
    return _BY_COLUMN.get(ref)


def find_schema(ref: ColumnSchema | str | int | None) -> ColumnSchema | None:
    """Resolve a schema object, logical key, column letter or index."""
    if ref is None:
        return None
    if isinstance(ref, ColumnSchema):
        return ref
    if isinstance(ref, str) and ref in COLUMN_SCHEMAS:
        return COLUMN_SCHEMAS[ref]
    if isinstance(ref, bool):
        return None
    return get_schema_by_column(ref)


def schemas_for_pattern(kind: PatternKind) -> list[ColumnSchema]:
    return [s for s in _SCHEMAS if s.pattern is kind]


def json_column_indexes() -> dict[int, ColumnSchema]:
    """Map of zero-based sheet position -> schema for every JSON column."""
    return {s.column_index: s for s in _SCHEMAS}
