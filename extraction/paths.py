"""Dotted-path resolution over decoded JSON cell values.

Column schemas address totals and breakdowns with dot-notation paths such as
``summary.total_all_obligations``.  ``resolve`` walks a decoded value one
segment at a time and returns a default instead of raising when any step is
missing, so callers can treat "absent" uniformly across all column shapes.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_MISSING = object()


def split_path(path: str | None) -> tuple[str, ...]:
    """Split a dotted path into its segments (empty segments dropped)."""
    if not path:
        return ()
    return tuple(part for part in path.split(".") if part)


def _step(container: Any, segment: str) -> Any:
    if isinstance(container, Mapping):
        return container.get(segment, _MISSING)
    # Lists are only addressable by an explicit integer segment ("items.0.name")
    if isinstance(container, Sequence) and not isinstance(container, (str, bytes)):
        if segment.lstrip("-").isdigit():
            idx = int(segment)
            if -len(container) <= idx < len(container):
                return container[idx]
    return _MISSING


def _walk(value: Any, segments: tuple[str, ...]) -> Any:
    current = value
    for segment in segments:
        current = _step(current, segment)
        if current is _MISSING:
            return _MISSING
    return current


def resolve(value: Any, path: str | None, default: Any = None) -> Any:
    """Return the value at *path* inside *value*, or *default*.

    Args:
        value: Decoded JSON (mapping, list, scalar or None).
        path: Dot-notation path, e.g. ``"summary.total_all_obligations"``.
        default: Returned when the path is empty or any step is absent.

    Returns:
        The exact object stored at the path.  A stored JSON ``null`` is
        treated the same as a missing key.

    Examples:
        resolve({"a": {"b": 1}}, "a.b") -> 1
        resolve({"a": 5}, "a.b") -> None
    """
    segments = split_path(path)
    if not segments:
        return default
    found = _walk(value, segments)
    if found is _MISSING or found is None:
        return default
    return found


def has_path(value: Any, path: str | None) -> bool:
    """True when the key at *path* exists, even if it holds JSON ``null``."""
    segments = split_path(path)
    return bool(segments) and _walk(value, segments) is not _MISSING
