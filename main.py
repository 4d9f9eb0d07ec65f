#!/usr/bin/env python3
"""
OneGov FIT Market API — launch the server.

Usage:
    python main.py                                   # http://127.0.0.1:8000
    python main.py --port 9000                       # http://127.0.0.1:9000
    python main.py --host 0.0.0.0                    # bind on all interfaces
    python main.py --workbook /path/to/fit_market.xlsx
    python main.py --csv-url 'https://example.org/export?sheet={sheet}'
    python main.py --reload                          # auto-reload on code changes
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path

import uvicorn


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Launch the OneGov FIT Market extraction and reporting API.",
    )
    parser.add_argument(
        "--host", default=os.getenv("APP_HOST", "127.0.0.1"),
        help="Bind address (default: 127.0.0.1 or APP_HOST env var)",
    )
    parser.add_argument(
        "--port", type=int, default=int(os.getenv("APP_PORT", "8000")),
        help="Port to listen on (default: 8000 or APP_PORT env var)",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--workbook", type=Path, default=None,
        help="XLSX export of the entity spreadsheet (default: APP_WORKBOOK_PATH)",
    )
    source.add_argument(
        "--csv-url", default=None,
        help="Published-CSV URL template containing {sheet} (default: APP_SHEET_CSV_URL)",
    )
    parser.add_argument(
        "--cache-ttl", type=float, default=None,
        help="Entity cache lifetime in seconds (default: 120 or APP_CACHE_TTL_SECONDS)",
    )
    parser.add_argument(
        "--log-format", choices=("text", "json"), default=None,
        help="Log output format (default: text or APP_LOG_FORMAT)",
    )
    parser.add_argument(
        "--reload", action="store_true",
        help="Enable auto-reload on file changes (development mode)",
    )
    return parser


def apply_overrides(args: argparse.Namespace) -> None:
    """Push CLI options into the environment read by ``AppConfig``."""
    if args.workbook is not None:
        os.environ["APP_WORKBOOK_PATH"] = str(args.workbook)
        os.environ.pop("APP_SHEET_CSV_URL", None)
    if args.csv_url:
        if "{sheet}" not in args.csv_url:
            raise SystemExit("--csv-url must contain '{sheet}'")
        os.environ["APP_SHEET_CSV_URL"] = args.csv_url
    if args.cache_ttl is not None:
        os.environ["APP_CACHE_TTL_SECONDS"] = str(args.cache_ttl)
    if args.log_format:
        os.environ["APP_LOG_FORMAT"] = args.log_format


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    apply_overrides(args)

    source = os.getenv("APP_SHEET_CSV_URL") or os.getenv("APP_WORKBOOK_PATH", "onegov_fit_market.xlsx")
    if not os.getenv("APP_SHEET_CSV_URL") and not Path(source).exists():
        print(f"Warning: workbook not found at {source}")
        print("  pass --workbook /path/to/export.xlsx or --csv-url '<url with {sheet}>'")
        print()

    print(f"Starting OneGov FIT Market API at http://{args.host}:{args.port}")
    print(f"Entity source: {source}")
    print()

    uvicorn.run(
        "api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
