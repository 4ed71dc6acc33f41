from __future__ import annotations

from datetime import date, datetime, timezone
from numbers import Number
from typing import Any, Mapping, Optional

# Epoch numbers above this are taken to be milliseconds.
_EPOCH_MILLIS_THRESHOLD = 10 ** 11


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _from_epoch(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)


def _from_platform_timestamp(value: Mapping[str, Any]) -> datetime:
    seconds = value.get("seconds", value.get("_seconds"))
    nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
    if seconds is None or isinstance(seconds, bool):
        raise ValueError("timestamp mapping requires seconds")
    dt = _from_epoch(int(seconds))
    return dt.replace(microsecond=int(nanos) // 1000)


def normalize_timestamp(value: Any) -> datetime:
    """
    Convert any accepted timestamp shape to the canonical UTC-naive datetime.

    Accepts datetime (aware converted to UTC, naive taken as UTC), date
    (midnight UTC), ISO-8601 strings, {"seconds", "nanoseconds"} mappings as
    written by hosted document stores, and epoch numbers (seconds, or
    milliseconds when large). Raises ValueError for anything else.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        dt = parse_iso_datetime(value)
        if dt is None:
            raise ValueError("empty timestamp")
        return dt
    if isinstance(value, Mapping):
        return _from_platform_timestamp(value)
    if isinstance(value, Number) and not isinstance(value, bool):
        seconds = float(value)
        if abs(seconds) > _EPOCH_MILLIS_THRESHOLD:
            seconds = seconds / 1000.0
        try:
            return _from_epoch(seconds)
        except (OverflowError, OSError) as exc:
            raise ValueError("epoch value out of range") from exc
    raise ValueError(f"unsupported timestamp type: {type(value).__name__}")


def to_utc_z(dt: Optional[datetime], timespec: str = "seconds") -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc)
    if timespec == "seconds":
        dt_utc = dt_utc.replace(microsecond=0)
    return dt_utc.isoformat(timespec=timespec).replace("+00:00", "Z")


def day_key(dt: datetime) -> str:
    """Calendar date of a canonical UTC-naive datetime as YYYY-MM-DD."""
    return dt.date().isoformat()
