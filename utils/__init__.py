"""Shared utilities for the OneGov FIT Market backend."""

# String utilities
from utils.strings import (
    parse_amount,
    parse_percentage,
    normalize_whitespace,
    normalize_header,
)

# Formatting utilities
from utils.formatting import (
    format_amount,
    format_currency_short,
    format_percent,
)

# Caching
from utils.cache import TTLCache

# Configuration
from utils.config import (
    AppConfig,
    Config,
    EntityLayout,
    ENTITY_LAYOUTS,
    KnownValues,
    CACHE_TTL_SECONDS,
)

# Validation
from utils.validation import (
    ValidationIssue,
    ValidationResult,
    ValidationRegistry,
    is_valid_fiscal_year,
    is_number,
)

# HTTP
from utils.http import RetryStrategy, SessionManager, fetch_text

__all__ = [
    "parse_amount",
    "parse_percentage",
    "normalize_whitespace",
    "normalize_header",
    "format_amount",
    "format_currency_short",
    "format_percent",
    "TTLCache",
    "AppConfig",
    "Config",
    "EntityLayout",
    "ENTITY_LAYOUTS",
    "KnownValues",
    "CACHE_TTL_SECONDS",
    "ValidationIssue",
    "ValidationResult",
    "ValidationRegistry",
    "is_valid_fiscal_year",
    "is_number",
    "RetryStrategy",
    "SessionManager",
    "fetch_text",
]
