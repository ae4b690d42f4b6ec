"""
Timestamp normalisation.

Stored timestamps arrive in several shapes: native datetimes, Firestore
``DatetimeWithNanoseconds``/``Timestamp`` objects, millisecond counts, the
serialised ``{"_seconds", "_nanoseconds"}`` pair and ISO-8601 strings. Every
comparison in the service goes through :func:`to_instant` so those shapes
order consistently.
"""
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

IST = ZoneInfo("Asia/Kolkata")
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_ist_now() -> datetime:
    """
    Get current datetime in IST timezone.
    Returns:
        Current datetime object with IST timezone
    """
    return datetime.now(IST)


def _from_seconds_pair(value: Mapping) -> Optional[datetime]:
    seconds = value.get("_seconds", value.get("seconds"))
    if seconds is None:
        return None
    nanos = value.get("_nanoseconds", value.get("nanoseconds")) or 0
    try:
        return EPOCH + timedelta(seconds=int(seconds), microseconds=int(nanos) // 1000)
    except (TypeError, ValueError, OverflowError):
        return None


def _from_iso(value: str) -> Optional[datetime]:
    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def to_instant(value: Any, default: datetime = EPOCH) -> datetime:
    """
    Convert any supported timestamp representation into a tz-aware UTC datetime.

    Args:
        value: datetime, int/float milliseconds, seconds/nanoseconds mapping,
            ISO-8601 string or an object exposing ``to_datetime()``/``ToDatetime()``
        default: returned for None and for anything unparseable

    Returns:
        Aware datetime in UTC
    """
    result: Optional[datetime] = None

    if value is None or isinstance(value, bool):
        result = None
    elif isinstance(value, datetime):
        result = value
    elif isinstance(value, (int, float)):
        try:
            result = EPOCH + timedelta(milliseconds=value)
        except OverflowError:
            result = None
    elif isinstance(value, Mapping):
        result = _from_seconds_pair(value)
    elif isinstance(value, str):
        result = _from_iso(value)
    elif hasattr(value, "to_datetime"):
        result = value.to_datetime()
    elif hasattr(value, "ToDatetime"):
        result = value.ToDatetime()

    if not isinstance(result, datetime):
        return default
    if result.tzinfo is None:
        result = result.replace(tzinfo=timezone.utc)
    return result.astimezone(timezone.utc)


def to_millis(value: Any) -> int:
    instant = to_instant(value, default=None)
    if instant is None:
        return 0
    return int((instant - EPOCH) / timedelta(milliseconds=1))


def compare_timestamps(a: Any, b: Any) -> int:
    """-1, 0 or 1 depending on how a orders against b after normalisation."""
    left, right = to_instant(a), to_instant(b)
    return (left > right) - (left < right)


def format_date_for_sms(dt: Optional[datetime] = None) -> str:
    """DD/MM/YY in IST, the format the DLT templates were registered with."""
    moment = to_instant(dt) if dt is not None else utc_now()
    return moment.astimezone(IST).strftime("%d/%m/%y")
