"""Business rules an availability window must satisfy before it is stored."""

from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from dateutil.relativedelta import relativedelta

from medbookings.scheduling.models import Occurrence
from medbookings.scheduling.timezone import as_utc, utcnow

Interval = tuple[datetime, datetime]


def end_of_month_ahead(now: datetime, months: int) -> datetime:
    """Last instant of the month ``months - 1`` months after ``now``'s month.

    ``months=3`` in January gives the end of March.
    """
    month_end = now + relativedelta(months=months - 1, day=31)
    return month_end.replace(hour=23, minute=59, second=59, microsecond=999999)


def validate_window_times(
    start: datetime,
    end: datetime,
    now: Optional[datetime] = None,
    min_minutes: int = 15,
    max_past_days: int = 30,
    max_future_months: int = 3,
) -> list[str]:
    """Range checks on the first occurrence of a window."""
    start, end = as_utc(start), as_utc(end)
    now = as_utc(now) if now else utcnow()
    errors: list[str] = []

    if end <= start:
        errors.append("End time must be after start time")
    elif end - start < timedelta(minutes=min_minutes):
        errors.append(f"Availability duration must be at least {min_minutes} minutes")

    if start < now - timedelta(days=max_past_days):
        errors.append(f"Cannot create availability more than {max_past_days} days in the past")

    if start > end_of_month_ahead(now, max_future_months):
        errors.append(f"Cannot create availability more than {max_future_months} months in the future")

    return errors


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


def find_overlaps(instances: Iterable[Occurrence], existing: Sequence[Interval]) -> list[str]:
    """Report every instance that overlaps one of the provider's other windows."""
    errors: list[str] = []
    for occ in instances:
        clashes = [
            (s, e) for s, e in existing if overlaps(occ.start_time, occ.end_time, as_utc(s), as_utc(e))
        ]
        if clashes:
            times = ", ".join(f"{as_utc(s).isoformat()} - {as_utc(e).isoformat()}" for s, e in clashes)
            errors.append(
                f"Availability from {occ.start_time.isoformat()} to {occ.end_time.isoformat()} "
                f"overlaps with existing availability: {times}"
            )
    return errors


def find_self_overlaps(instances: Sequence[Occurrence]) -> list[str]:
    """Report occurrences of one series that overlap each other."""
    ordered = sorted(instances, key=lambda occ: occ.start_time)
    errors: list[str] = []
    for first, second in zip(ordered, ordered[1:]):
        if overlaps(first.start_time, first.end_time, second.start_time, second.end_time):
            errors.append(
                "Recurring instances overlap with each other: "
                f"{first.start_time.isoformat()} - {first.end_time.isoformat()} and "
                f"{second.start_time.isoformat()} - {second.end_time.isoformat()}"
            )
    return errors
