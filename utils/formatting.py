"""Display formatting for dollar amounts, percentages and counts.

Used by the reporting views to attach human-readable labels next to raw
numbers (KPI cards, table rows, trend tooltips).
"""

from typing import Optional


def format_amount(value: Optional[float], precision: int = 0,
                  thousands_sep: bool = True) -> str:
    """Format a dollar amount for display.

    Args:
        value: Amount in dollars (can be None or 0)
        precision: Decimal places (default: 0 for whole dollars)
        thousands_sep: Add thousands separator (default: True)

    Returns:
        Formatted string like "$1,234" or "$1.2M"

    Examples:
        format_amount(1234) -> "$1,234"
        format_amount(1499132295.48) -> "$1.5B"
        format_amount(None) -> "-"
    """
    if value is None or value == 0:
        return "-"

    # For very large amounts, use compact notation
    if value >= 1_000_000_000:
        return f"${value / 1_000_000_000:.1f}B"
    if value >= 1_000_000:
        return f"${value / 1_000_000:.1f}M"

    if thousands_sep:
        return f"${value:,.{precision}f}"
    return f"${value:.{precision}f}"


def format_currency_short(value: Optional[float]) -> str:
    """Compact dollar label for chart axes and KPI cards.

    Examples:
        format_currency_short(2_500_000) -> "$2.5M"
        format_currency_short(-12_300) -> "-$12.3K"
        format_currency_short(None) -> "$0"
    """
    if not value:
        return "$0"
    sign = "-" if value < 0 else ""
    magnitude = abs(value)
    if magnitude >= 1_000_000_000:
        return f"{sign}${magnitude / 1_000_000_000:.1f}B"
    if magnitude >= 1_000_000:
        return f"{sign}${magnitude / 1_000_000:.1f}M"
    if magnitude >= 1_000:
        return f"{sign}${magnitude / 1_000:.1f}K"
    return f"{sign}${magnitude:.0f}"


def format_percent(value: Optional[float], precision: int = 1) -> str:
    """Format a percentage for display.

    Examples:
        format_percent(42.5) -> "42.5%"
        format_percent(None) -> "-"
    """
    if value is None:
        return "-"
    return f"{value:.{precision}f}%"
