"""Recurrence engine: expand a recurrence pattern into concrete occurrences.

The expansion is a pure function of its arguments. ``generate_occurrences``
validates eagerly and then hands back a lazy generator, so an invalid pattern
is rejected before a single occurrence is produced, and calling it again with
the same inputs restarts the sequence from scratch.

Inclusion rules (day of week, day/week of month) and time-of-day overrides are
evaluated in the timezone passed in ``tz``; emitted occurrences are UTC.
"""

import calendar
import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterator, Optional, Union

from dateutil.relativedelta import relativedelta

from medbookings.scheduling.errors import ValidationError
from medbookings.scheduling.models import (
    DAY_NAMES,
    LAST_WEEK,
    Occurrence,
    RecurrencePattern,
    RecurrenceType,
)
from medbookings.scheduling.timezone import UTC, as_utc

MAX_OCCURRENCES = 1000

# A pattern that can never match (e.g. the 31st of every February) stops
# scanning once the cursor is this many years past the first occurrence.
MAX_SCAN_YEARS = 50

_TIME_RE = re.compile(r"^([01][0-9]|2[0-3]):([0-5][0-9])$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_VALID_WEEKS_OF_MONTH = (LAST_WEEK, 1, 2, 3, 4)
_ORDINALS = {1: "first", 2: "second", 3: "third", 4: "fourth", LAST_WEEK: "last"}


# ------------------------------------------------------------------
# Parsing helpers
# ------------------------------------------------------------------

def parse_time_of_day(value: str) -> time:
    """Parse a 24-hour ``HH:MM`` string."""
    m = _TIME_RE.match(value or "")
    if not m:
        raise ValueError(f"Invalid time format: {value!r} (use HH:MM)")
    return time(int(m.group(1)), int(m.group(2)))


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string, rejecting impossible dates."""
    if not _DATE_RE.match(value or ""):
        raise ValueError(f"Invalid date format: {value!r} (use YYYY-MM-DD)")
    return date.fromisoformat(value)


def js_weekday(day: date) -> int:
    """Day of week with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def week_of_month(day: date) -> int:
    """Week of the month counted in 7-day buckets from the 1st (1..5)."""
    return (day.day - 1) // 7 + 1


def is_last_week_of_month(day: date) -> bool:
    return days_in_month(day.year, day.month) - day.day < 7


def matches_week_of_month(day: date, week: int) -> bool:
    if week == LAST_WEEK:
        return is_last_week_of_month(day)
    return week_of_month(day) == week


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------

def validate_recurrence_pattern(
    pattern: RecurrencePattern,
    base_start: Optional[datetime] = None,
    tz: tzinfo = UTC,
) -> list[str]:
    """Return every rule *pattern* violates (empty list when valid)."""
    errors: list[str] = []
    rtype = pattern.recurrence_type

    if rtype is None:
        errors.append(f"Invalid recurrence type: {pattern.type}")

    if pattern.interval is None or pattern.interval < 1:
        errors.append("Interval must be at least 1")

    if rtype is RecurrenceType.WEEKLY and pattern.days_of_week is not None:
        if not pattern.days_of_week:
            errors.append("At least one day of week must be specified for weekly recurrence")
        bad_days = [d for d in pattern.days_of_week if not 0 <= d <= 6]
        if bad_days:
            errors.append(f"Invalid day of week: {bad_days} (use 0=Sunday..6=Saturday)")

    if rtype is RecurrenceType.MONTHLY:
        if pattern.day_of_month is not None and not 1 <= pattern.day_of_month <= 31:
            errors.append("Day of month must be between 1 and 31")
        if pattern.week_of_month is not None and pattern.week_of_month not in _VALID_WEEKS_OF_MONTH:
            errors.append("Week of month must be 1-4 or -1 for last week")

    start_tod = _check_time(pattern.start_time, "start", errors)
    end_tod = _check_time(pattern.end_time, "end", errors)

    local_start_tod = None
    if base_start is not None:
        local_start_tod = as_utc(base_start).astimezone(tz).time()

    effective_start_tod = start_tod or local_start_tod
    if end_tod is not None and effective_start_tod is not None and end_tod <= effective_start_tod:
        errors.append("End time must be after start time")

    if pattern.end_date is not None:
        try:
            until = parse_date(pattern.end_date)
        except ValueError:
            errors.append(f"Invalid end date format: {pattern.end_date} (use YYYY-MM-DD)")
        else:
            if base_start is not None and effective_start_tod is not None:
                last_start = datetime.combine(until, effective_start_tod, tzinfo=tz)
                if last_start <= as_utc(base_start):
                    errors.append("End date must be after the start time")

    if pattern.count is not None and pattern.count < 1:
        errors.append("Count must be at least 1")

    for exception in pattern.exceptions:
        try:
            parse_date(exception)
        except ValueError:
            errors.append(f"Invalid exception date format: {exception} (use YYYY-MM-DD)")

    return errors


def _check_time(value: Optional[str], label: str, errors: list[str]) -> Optional[time]:
    if value is None:
        return None
    try:
        return parse_time_of_day(value)
    except ValueError:
        errors.append(f"Invalid {label} time format: {value} (use HH:MM)")
        return None


# ------------------------------------------------------------------
# Expansion
# ------------------------------------------------------------------

def generate_occurrences(
    pattern: Optional[RecurrencePattern],
    base_start: datetime,
    base_end: datetime,
    cap: Optional[int] = None,
    end_date: Union[date, datetime, None] = None,
    tz: tzinfo = UTC,
    include_exceptions: bool = False,
    ceiling: int = MAX_OCCURRENCES,
) -> Iterator[Occurrence]:
    """Expand *pattern* anchored at ``[base_start, base_end)``.

    Args:
        pattern: Recurrence rule; ``None`` means a one-off window.
        base_start: Start of the first occurrence (aware, any zone).
        base_end: End of the first occurrence.
        cap: Optional maximum number of occurrences to emit.
        end_date: Optional last date (inclusive) to emit, combined with the
            pattern's own ``end_date`` by taking the earlier one.
        tz: Zone in which weekdays, month days and HH:MM overrides are read.
        include_exceptions: Emit exception dates flagged with
            ``is_exception`` instead of skipping them. Exceptions never
            count towards ``count``/``cap``.
        ceiling: Hard upper bound on emitted occurrences.

    Raises:
        ValidationError: listing every violated rule, before any occurrence
            is generated.
    """
    pattern = pattern or RecurrencePattern()
    base_start = as_utc(base_start)
    base_end = as_utc(base_end)

    errors: list[str] = []
    if base_end <= base_start:
        errors.append("End time must be after start time")
    errors.extend(validate_recurrence_pattern(pattern, base_start, tz))
    if errors:
        raise ValidationError(errors)

    limit = min(v for v in (pattern.count, cap, ceiling) if v is not None)
    final_end = _effective_end_date(pattern, end_date, tz)

    return _expand(pattern, base_start, base_end, limit, final_end, tz, include_exceptions)


def _expand(
    pattern: RecurrencePattern,
    base_start: datetime,
    base_end: datetime,
    limit: int,
    final_end: Optional[date],
    tz: tzinfo,
    include_exceptions: bool,
) -> Iterator[Occurrence]:
    rtype = pattern.recurrence_type
    local_start = base_start.astimezone(tz)
    anchor = local_start.date()
    duration = base_end - base_start
    start_tod = parse_time_of_day(pattern.start_time) if pattern.start_time else local_start.time()
    end_tod = parse_time_of_day(pattern.end_time) if pattern.end_time else None
    exceptions = {parse_date(d) for d in pattern.exceptions}
    scan_until = anchor.replace(year=min(anchor.year + MAX_SCAN_YEARS, 9999), day=1)

    cursor: Optional[date] = _first_candidate(anchor, pattern, rtype)
    number = 0
    emitted = 0

    while cursor is not None and emitted < limit:
        if final_end is not None and cursor > final_end:
            break
        if cursor > scan_until:
            break

        if _is_included(cursor, pattern, rtype, anchor):
            is_exception = cursor in exceptions
            if include_exceptions or not is_exception:
                start = datetime.combine(cursor, start_tod, tzinfo=tz).astimezone(UTC)
                if end_tod is not None:
                    end = datetime.combine(cursor, end_tod, tzinfo=tz).astimezone(UTC)
                else:
                    end = start + duration
                yield Occurrence(
                    start_time=start,
                    end_time=end,
                    occurrence_number=number,
                    is_exception=is_exception,
                )
                if not is_exception:
                    emitted += 1
            number += 1

        following = _step(cursor, pattern, rtype, anchor)
        if following is None or following <= cursor:
            break
        cursor = following


def _effective_end_date(
    pattern: RecurrencePattern,
    end_date: Union[date, datetime, None],
    tz: tzinfo,
) -> Optional[date]:
    candidates: list[date] = []
    if isinstance(end_date, datetime):
        candidates.append(as_utc(end_date).astimezone(tz).date())
    elif end_date is not None:
        candidates.append(end_date)
    if pattern.end_date:
        candidates.append(parse_date(pattern.end_date))
    return min(candidates) if candidates else None


def _first_candidate(anchor: date, pattern: RecurrencePattern, rtype: RecurrenceType) -> Optional[date]:
    if rtype is RecurrenceType.MONTHLY:
        candidate = _monthly_candidate(anchor.year, anchor.month, pattern, anchor)
        if candidate is not None and candidate >= anchor:
            return candidate
        return _step(anchor, pattern, rtype, anchor)
    return anchor


def _is_included(day: date, pattern: RecurrencePattern, rtype: RecurrenceType, anchor: date) -> bool:
    if rtype is RecurrenceType.WEEKLY and pattern.days_of_week:
        return js_weekday(day) in pattern.days_of_week
    if rtype is RecurrenceType.MONTHLY:
        return _monthly_candidate(day.year, day.month, pattern, anchor) == day
    return True


def _monthly_candidate(year: int, month: int, pattern: RecurrencePattern, anchor: date) -> Optional[date]:
    """The single date in a month a MONTHLY pattern selects, if any.

    Months without such a date (e.g. no 31st) are skipped, never clamped.
    """
    last_day = days_in_month(year, month)

    if pattern.day_of_month is not None:
        if pattern.day_of_month > last_day:
            return None
        day = date(year, month, pattern.day_of_month)
        if pattern.week_of_month is not None and not matches_week_of_month(day, pattern.week_of_month):
            return None
        return day

    if pattern.week_of_month is not None:
        weekday = js_weekday(anchor)
        for d in range(1, last_day + 1):
            day = date(year, month, d)
            if js_weekday(day) == weekday and matches_week_of_month(day, pattern.week_of_month):
                return day
        return None

    if anchor.day > last_day:
        return None
    return date(year, month, anchor.day)


def _step(day: date, pattern: RecurrencePattern, rtype: RecurrenceType, anchor: date) -> Optional[date]:
    """Next candidate date; always at least one day after *day*."""
    interval = pattern.interval

    if rtype in (RecurrenceType.DAILY, RecurrenceType.CUSTOM):
        return day + timedelta(days=interval)

    if rtype is RecurrenceType.WEEKLY:
        if pattern.days_of_week:
            return _next_weekly(day, sorted(set(pattern.days_of_week)), interval)
        return day + timedelta(weeks=interval)

    if rtype is RecurrenceType.MONTHLY:
        try:
            month_start = day.replace(day=1) + relativedelta(months=interval)
        except ValueError:
            # Past the last representable year.
            return None
        candidate = _monthly_candidate(month_start.year, month_start.month, pattern, anchor)
        # No matching date that month: park the cursor on the 1st so the
        # inclusion test fails and stepping continues from there.
        return candidate or month_start

    return None


def _next_weekly(day: date, days_sorted: list[int], interval: int) -> date:
    current = js_weekday(day)
    for d in days_sorted:
        if d > current:
            return day + timedelta(days=d - current)
    return day + timedelta(days=7 * interval - current + days_sorted[0])


# ------------------------------------------------------------------
# Queries over a pattern
# ------------------------------------------------------------------

def is_date_in_pattern(
    day: date,
    pattern: Optional[RecurrencePattern],
    base_start: datetime,
    base_end: datetime,
    tz: tzinfo = UTC,
    ceiling: int = MAX_OCCURRENCES,
) -> bool:
    """Whether an occurrence of the pattern starts on local date *day*."""
    if day < as_utc(base_start).astimezone(tz).date():
        return False
    for occ in generate_occurrences(pattern, base_start, base_end, end_date=day, tz=tz, ceiling=ceiling):
        if occ.start_time.astimezone(tz).date() == day:
            return True
    return False


def next_occurrence(
    after: datetime,
    pattern: Optional[RecurrencePattern],
    base_start: datetime,
    base_end: datetime,
    tz: tzinfo = UTC,
    ceiling: int = MAX_OCCURRENCES,
) -> Optional[Occurrence]:
    """First occurrence starting strictly after *after*."""
    after = as_utc(after)
    for occ in generate_occurrences(pattern, base_start, base_end, tz=tz, ceiling=ceiling):
        if occ.start_time > after:
            return occ
    return None


def describe_pattern(pattern: RecurrencePattern) -> str:
    """Human-readable summary, e.g. "Every 2 weeks on Monday, Wednesday until 2024-03-01"."""
    rtype = pattern.recurrence_type
    if rtype is None:
        return "Unknown"
    if rtype is RecurrenceType.NONE:
        return "Does not repeat"

    n = pattern.interval
    if rtype in (RecurrenceType.DAILY, RecurrenceType.CUSTOM):
        text = "Daily" if n == 1 else f"Every {n} days"
    elif rtype is RecurrenceType.WEEKLY:
        text = "Weekly" if n == 1 else f"Every {n} weeks"
        if pattern.days_of_week:
            text += " on " + ", ".join(DAY_NAMES[d] for d in sorted(set(pattern.days_of_week)) if 0 <= d <= 6)
    else:
        text = "Monthly" if n == 1 else f"Every {n} months"
        if pattern.day_of_month is not None:
            text += f" on day {pattern.day_of_month}"
        elif pattern.week_of_month is not None:
            text += f" in the {_ORDINALS.get(pattern.week_of_month, pattern.week_of_month)} week"

    if pattern.start_time and pattern.end_time:
        text += f", {pattern.start_time}-{pattern.end_time}"
    if pattern.end_date:
        text += f" until {pattern.end_date}"
    if pattern.count:
        text += f", {pattern.count} times"
    if pattern.exceptions:
        text += f" (except {len(pattern.exceptions)} date{'s' if len(pattern.exceptions) != 1 else ''})"
    return text
