"""Small comparison and formatting helpers."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def contains_zero(values: Iterable[int]) -> bool:
    """Return True if any value is zero."""
    return any(value == 0 for value in values)


def count_zero(values: Iterable[int]) -> int:
    """Return how many values are zero."""
    return sum(1 for value in values if value == 0)


def millis_to_iso(timestamp_ms: int) -> str:
    """Format a Unix millisecond timestamp as an RFC 3339 UTC string."""
    seconds = timestamp_ms // 1000
    moment = _EPOCH + timedelta(seconds=seconds)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def compare_slices(a: Sequence[Any], b: Sequence[Any]) -> bool:
    """Return True if both sequences hold equal items in the same order."""
    if len(a) != len(b):
        return False
    return all(x == y for x, y in zip(a, b))


def compare_maps(map1: Mapping[Any, Any], map2: Mapping[Any, Any]) -> bool:
    """Return True if both mappings hold the same keys with equal values."""
    if len(map1) != len(map2):
        return False
    missing = object()
    return all(map2.get(key, missing) == value for key, value in map1.items())