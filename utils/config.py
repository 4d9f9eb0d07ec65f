"""Configuration management for the OneGov FIT Market backend.

Provides:
- Config base class with dict / JSON round-tripping
- AppConfig: application settings loaded from environment variables
- EntityLayout / ENTITY_LAYOUTS: where each entity sheet keeps its columns
- KnownValues: OneGov tier definitions and their display order
"""

import json
import os as _os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional


# ── Sheet layout ─────────────────────────────────────────────────────────────
# All three entity sheets share one layout: identifiers in A-C, JSON columns
# in D-X and AC (see extraction.registry), plain cells elsewhere.

CACHE_TTL_SECONDS = 120

NON_JSON_COLUMNS = {
    "fas_data_table": 24,       # Y
    "fas_table_updated": 25,    # Z
    "bic_data_table": 26,       # AA
    "bic_table_updated": 27,    # AB
    "website": 29,              # AD
    "linkedin": 30,             # AE
}


@dataclass(frozen=True)
class EntityLayout:
    """Column positions (zero-based) of one entity sheet."""

    entity_type: str
    sheet_name: str
    identifier_field: str
    identifier_index: int = 0
    name_index: int = 1
    parent_index: int = 2
    attribute_columns: Dict[str, int] = field(default_factory=lambda: dict(NON_JSON_COLUMNS))


ENTITY_LAYOUTS: Dict[str, EntityLayout] = {
    "agency": EntityLayout("agency", "Agency", identifier_field="agency_code"),
    "oem": EntityLayout("oem", "OEM", identifier_field="duns"),
    "vendor": EntityLayout("vendor", "Vendor", identifier_field="uei"),
}


class Config:
    """Base configuration class for organizing application settings."""

    def __init__(self):
        """Initialize configuration with default values."""
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary.

        Returns:
            Dictionary of all config attributes
        """
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            Config instance with values from dictionary
        """
        config = cls()
        for key, value in data.items():
            setattr(config, key, value)
        return config

    def save_json(self, path: Path) -> None:
        """Save configuration to JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

    @classmethod
    def load_json(cls, path: Path) -> "Config":
        """Load configuration from JSON file.

        Raises:
            FileNotFoundError: If file doesn't exist
            json.JSONDecodeError: If file is not valid JSON
        """
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)


class KnownValues:
    """Container for known values used in validation and reporting."""

    # OneGov tier thresholds on average yearly obligations.
    TIER_DEFINITIONS = {
        "Tier 1": "> $500M",
        "Tier 2": "$200M - $500M",
        "Tier 3": "$50M - $200M",
        "Tier 4": "$10M - $50M",
        "Below Tier 4": "< $10M",
    }

    TIER_ORDER = tuple(TIER_DEFINITIONS)

    @classmethod
    def tier_rank(cls, tier: Optional[str]) -> int:
        """Sort rank of a tier label; unknown tiers sort last."""
        try:
            return cls.TIER_ORDER.index(tier)
        except ValueError:
            return len(cls.TIER_ORDER)


# ── Application configuration ────────────────────────────────────────────────


class AppConfig(Config):
    """Application-level configuration loaded from environment variables.

    All env vars have sensible defaults so the application works out of the
    box without any configuration.

    Environment variables:
        APP_WORKBOOK_PATH: XLSX export of the entity spreadsheet (default: onegov_fit_market.xlsx)
        APP_SHEET_CSV_URL: Published-CSV URL template containing "{sheet}";
            when set it takes precedence over the workbook
        APP_CACHE_TTL_SECONDS: Entity cache lifetime (default: 120)
        APP_SOURCE_RETRIES: Attempts per sheet read (default: 3)
        APP_SOURCE_BACKOFF: Base backoff between attempts, seconds (default: 1.0)
        APP_SOURCE_TIMEOUT: HTTP timeout for CSV reads, seconds (default: 30)
        APP_PORT: API server port (default: 8000)
        APP_HOST: API server bind address (default: 127.0.0.1)
        APP_LOG_FORMAT: Logging format, "text" or "json" (default: text)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
    """

    def __init__(self) -> None:
        super().__init__()
        self.workbook_path = Path(_os.getenv("APP_WORKBOOK_PATH", "onegov_fit_market.xlsx"))
        self.sheet_csv_url: Optional[str] = _os.getenv("APP_SHEET_CSV_URL") or None
        self.cache_ttl_seconds = float(_os.getenv("APP_CACHE_TTL_SECONDS", str(CACHE_TTL_SECONDS)))
        self.source_retries = int(_os.getenv("APP_SOURCE_RETRIES", "3"))
        self.source_backoff = float(_os.getenv("APP_SOURCE_BACKOFF", "1.0"))
        self.source_timeout = float(_os.getenv("APP_SOURCE_TIMEOUT", "30"))
        self.api_port = int(_os.getenv("APP_PORT", "8000"))
        self.api_host = _os.getenv("APP_HOST", "127.0.0.1")
        self.log_format = _os.getenv("APP_LOG_FORMAT", "text")
        raw_origins = _os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*"
            else [o.strip() for o in raw_origins.split(",") if o.strip()]
        )

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()
