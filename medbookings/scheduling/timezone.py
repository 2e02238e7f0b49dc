"""Local wall-clock <-> UTC conversion helpers.

Everything inside the scheduling core is a timezone-aware UTC datetime. These
helpers run at the boundary: request payloads are converted on the way in and
responses on the way out. The zone is always passed explicitly.
"""

from datetime import datetime, timezone, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

UTC = timezone.utc


@lru_cache(maxsize=64)
def get_zone(name: str | None) -> tzinfo:
    """Resolve an IANA zone name; ``None``/"UTC" give UTC."""
    if not name or name.upper() == "UTC":
        return UTC
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError as e:
        raise ValueError(f"Unknown timezone: {name}") from e


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime.

    Naive values are taken to already be UTC; some drivers (SQLite) drop the
    offset on the way back from the database.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_utc(value: datetime, tz: tzinfo = UTC) -> datetime:
    """Convert a local wall-clock time in *tz* to UTC.

    Aware values keep their own offset.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(UTC)


def to_local(value: datetime, tz: tzinfo) -> datetime:
    return as_utc(value).astimezone(tz)


def utcnow() -> datetime:
    return datetime.now(UTC)
