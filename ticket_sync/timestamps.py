"""Timestamp normalization to canonical epoch milliseconds.

Ticket documents are written by several code paths over time, so the same
logical field may hold epoch milliseconds, epoch seconds, an ISO string, a
datetime or a store-native timestamp object. normalize() folds all of them
into one integer that sorting and filtering can rely on.
"""

from __future__ import annotations

import math
import time
from collections.abc import Mapping
from datetime import date, datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Protocol, runtime_checkable

# Numbers above these thresholds are treated as ms / seconds respectively.
EPOCH_MS_THRESHOLD = 1_000_000_000_000
EPOCH_SECONDS_THRESHOLD = 1_000_000_000


@runtime_checkable
class SupportsToMillis(Protocol):
    """Store timestamp exposing a zero-argument milliseconds accessor."""

    def to_millis(self) -> int: ...


@runtime_checkable
class SupportsToDatetime(Protocol):
    """Store timestamp exposing a zero-argument datetime accessor."""

    def to_datetime(self) -> datetime: ...


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def to_datetime(ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _from_number(value: float) -> int | None:
    try:
        if not math.isfinite(value):
            return None
    except OverflowError:
        return None
    if value > EPOCH_MS_THRESHOLD:
        return int(value)
    if value > EPOCH_SECONDS_THRESHOLD:
        return int(value * 1000)
    return None


def _from_datetime(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def _from_string(value: str) -> int | None:
    text = value.strip()
    if not text:
        return None
    try:
        return _from_datetime(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None
    if not isinstance(parsed, datetime):
        return None
    try:
        return _from_datetime(parsed)
    except (ValueError, OverflowError, OSError):
        return None


def _from_seconds_pair(seconds: Any, nanoseconds: Any) -> int | None:
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        return None
    try:
        millis = seconds * 1000
        if not math.isfinite(millis):
            return None
        base = int(millis)
        if isinstance(nanoseconds, (int, float)) and not isinstance(nanoseconds, bool):
            if math.isfinite(nanoseconds):
                return base + math.floor(nanoseconds / 1_000_000)
    except OverflowError:
        return None
    return base


def normalize(raw: Any) -> int | None:
    """Normalize a raw timestamp into epoch milliseconds.

    Accepted shapes:
    - int/float: > 1e12 is epoch-ms, > 1e9 is epoch-seconds
    - str: ISO-8601 (trailing "Z" allowed, naive means UTC) or RFC 2822
    - datetime / date (naive means UTC)
    - objects with to_millis() or to_datetime()
    - objects or mappings with seconds/nanoseconds
      (including the serialized "_seconds"/"_nanoseconds" form)

    Args:
        raw: Value read from a ticket document

    Returns:
        Epoch milliseconds, or None for absent or unsupported input.
        Never raises.
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, (int, float)):
        return _from_number(raw)

    if isinstance(raw, str):
        return _from_string(raw)

    if isinstance(raw, datetime):
        return _from_datetime(raw)

    if isinstance(raw, date):
        return _from_datetime(datetime(raw.year, raw.month, raw.day))

    if isinstance(raw, SupportsToMillis):
        try:
            millis = raw.to_millis()
        except Exception:
            return None
        if isinstance(millis, (int, float)) and not isinstance(millis, bool):
            return int(millis) if math.isfinite(millis) else None
        return None

    if isinstance(raw, SupportsToDatetime):
        try:
            converted = raw.to_datetime()
        except Exception:
            return None
        return _from_datetime(converted) if isinstance(converted, datetime) else None

    if isinstance(raw, Mapping):
        if "seconds" in raw:
            return _from_seconds_pair(raw["seconds"], raw.get("nanoseconds"))
        if "_seconds" in raw:
            return _from_seconds_pair(raw["_seconds"], raw.get("_nanoseconds"))
        return None

    if hasattr(raw, "seconds"):
        return _from_seconds_pair(
            getattr(raw, "seconds", None), getattr(raw, "nanoseconds", None)
        )

    return None


def first_normalized(*candidates: Any) -> int | None:
    """Return the first candidate that normalizes to a timestamp.

    Args:
        *candidates: Raw values in order of preference

    Returns:
        Epoch milliseconds or None if no candidate is usable
    """
    for candidate in candidates:
        value = normalize(candidate)
        if value is not None:
            return value
    return None


__all__ = [
    "EPOCH_MS_THRESHOLD",
    "EPOCH_SECONDS_THRESHOLD",
    "SupportsToDatetime",
    "SupportsToMillis",
    "first_normalized",
    "normalize",
    "now_ms",
    "to_datetime",
]
