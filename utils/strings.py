"""String processing utilities for sheet cells and JSON amounts.

parse_amount() is called for every amount the extractors read, so the
patterns are compiled once at import time.
"""

import re

WHITESPACE = re.compile(r"\s+")
CURRENCY_SYMBOLS = re.compile(r"[$€£¥]")
_SCALED_AMOUNT = re.compile(r"^(-?\d+(?:\.\d+)?)\s*([KMBT])$", re.IGNORECASE)
_SCALES = {"K": 1e3, "M": 1e6, "B": 1e9, "T": 1e12}


def parse_amount(val) -> float | None:
    """Parse a dollar amount, returning ``None`` when it is not numeric.

    Absent and non-numeric input stay distinct from zero.  The compact
    forms produced by the upstream formatter ("$2.5M") are accepted.

    Example:
        1200 -> 1200.0
        "$1,234.50" -> 1234.5
        "$2.5M" -> 2500000.0
        "n/a" -> None
    """
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return float(val)
    if not isinstance(val, str):
        return None
    s = CURRENCY_SYMBOLS.sub('', val).replace(',', '').strip()
    if not s:
        return None
    m = _SCALED_AMOUNT.match(s)
    if m:
        return float(m.group(1)) * _SCALES[m.group(2).upper()]
    try:
        return float(s)
    except ValueError:
        return None


def parse_percentage(val) -> float | None:
    """Parse a share such as ``"66.89%"`` or ``66.89`` into a float.

    Returns ``None`` for absent or non-numeric input.
    """
    if isinstance(val, str):
        val = val.strip().rstrip('%').strip()
    return parse_amount(val)


def normalize_whitespace(s: str) -> str:
    """Normalize multiple whitespace characters to single spaces.

    Example:
        "SUM   Tier \\n" -> "SUM Tier"
    """
    return WHITESPACE.sub(' ', s).strip()


def normalize_header(val) -> str:
    """Case-folded, whitespace-normalized header text for comparisons."""
    if val is None:
        return ""
    return normalize_whitespace(str(val)).casefold()
