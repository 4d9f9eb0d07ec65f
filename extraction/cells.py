"""Raw sheet cell decoding.

A JSON column cell may be empty, hold a JSON document, already be decoded
(when the row source did the work) or hold garbage.  ``parse_json_cell``
classifies all of these without raising so one bad cell never aborts a
sheet load.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Literal

logger = logging.getLogger(__name__)

CellStatus = Literal["empty", "ok", "parse_error"]

_EMPTY_TEXT = frozenset({"", "{}", "[]"})


@dataclass(frozen=True)
class ParsedCell:
    status: CellStatus
    data: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


EMPTY_CELL = ParsedCell("empty")


def parse_json_cell(raw: Any, *, context: str = "") -> ParsedCell:
    """Decode one raw cell.

    Args:
        raw: Cell content as read from the sheet.
        context: Optional location label (e.g. ``"Agency!D12"``) for logs.

    Returns:
        ``ParsedCell`` with status ``empty`` (None, blank, ``{}``, ``[]``),
        ``ok`` (a decoded mapping or list) or ``parse_error``.
    """
    if raw is None:
        return EMPTY_CELL
    if isinstance(raw, (dict, list)):
        return ParsedCell("ok", raw) if raw else EMPTY_CELL
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        # Bare numbers / dates from the sheet are not JSON documents.
        return ParsedCell("parse_error", error=f"expected JSON text, got {type(raw).__name__}")

    text = raw.strip()
    if text in _EMPTY_TEXT:
        return EMPTY_CELL
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("Invalid JSON in cell %s: %s", context or "<unknown>", exc)
        return ParsedCell("parse_error", error=str(exc))

    if not isinstance(data, (dict, list)):
        return ParsedCell("parse_error", error=f"expected JSON object or array, got {type(data).__name__}")
    if not data:
        return EMPTY_CELL
    return ParsedCell("ok", data)
