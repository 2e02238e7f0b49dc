"""Slot materializer: cut occurrences into bookable slots per service."""

import uuid
from datetime import datetime, timedelta, tzinfo
from typing import Iterable, Optional, Sequence

from medbookings.scheduling.models import (
    Occurrence,
    ScheduleEfficiency,
    SchedulingRule,
    ServiceOffering,
    SlotDraft,
    WindowSpec,
)
from medbookings.scheduling.timezone import UTC, as_utc

# (service_id, start, end) ranges already held by booked slots.
ExcludedRange = tuple[uuid.UUID, datetime, datetime]

_BOUNDARY_MINUTES: dict[SchedulingRule, int] = {
    SchedulingRule.ON_THE_HOUR: 60,
    SchedulingRule.ON_THE_HALF_HOUR: 30,
}


def boundary_minutes(rule: SchedulingRule) -> Optional[int]:
    """Boundary spacing for an aligned rule, ``None`` for CONTINUOUS."""
    return _BOUNDARY_MINUTES.get(rule)


def align_to_boundary(moment: datetime, rule: SchedulingRule, tz: tzinfo = UTC) -> datetime:
    """First local boundary of *rule* at or after *moment*, returned in UTC.

    CONTINUOUS has no boundaries; the moment is only truncated to the minute.
    """
    moment = as_utc(moment)
    step = boundary_minutes(rule)
    if step is None:
        return moment.replace(second=0, microsecond=0)

    local = moment.astimezone(tz)
    floored = local.replace(minute=(local.minute // step) * step, second=0, microsecond=0)
    if floored < local:
        floored += timedelta(minutes=step)
    return floored.astimezone(UTC)


def tile_occurrence(
    start: datetime,
    end: datetime,
    duration_minutes: int,
    rule: SchedulingRule = SchedulingRule.CONTINUOUS,
    tz: tzinfo = UTC,
) -> list[tuple[datetime, datetime]]:
    """Fit whole ``duration_minutes`` slots into ``[start, end)``.

    Each slot starts at the first boundary at or after the previous slot's
    end, so slots never overlap. A trailing partial slot is dropped.
    """
    if duration_minutes <= 0:
        raise ValueError("Slot duration must be positive")

    length = timedelta(minutes=duration_minutes)
    end = as_utc(end)
    cursor = align_to_boundary(start, rule, tz)
    intervals: list[tuple[datetime, datetime]] = []

    while cursor + length <= end:
        intervals.append((cursor, cursor + length))
        cursor = align_to_boundary(cursor + length, rule, tz)
    return intervals


def materialize_slots(
    window: WindowSpec,
    services: Sequence[ServiceOffering],
    occurrences: Iterable[Occurrence],
    tz: tzinfo = UTC,
    exclude: Iterable[ExcludedRange] = (),
) -> list[SlotDraft]:
    """Materialize one slot set per (occurrence, service).

    Services are independent of each other: the same interval may carry one
    slot for every offered service. Slots overlapping an *exclude* range of
    the same service are skipped. Exception occurrences never get slots.
    """
    excluded: dict[uuid.UUID, list[tuple[datetime, datetime]]] = {}
    for service_id, ex_start, ex_end in exclude:
        excluded.setdefault(service_id, []).append((as_utc(ex_start), as_utc(ex_end)))

    drafts: list[SlotDraft] = []
    for occurrence in occurrences:
        if occurrence.is_exception:
            continue
        for service in services:
            taken = excluded.get(service.service_id, [])
            for start, end in tile_occurrence(
                occurrence.start_time,
                occurrence.end_time,
                service.duration,
                window.scheduling_rule,
                tz,
            ):
                if any(start < t_end and t_start < end for t_start, t_end in taken):
                    continue
                drafts.append(
                    SlotDraft(
                        availability_id=window.availability_id,
                        provider_id=window.provider_id,
                        service_id=service.service_id,
                        service_config_id=service.service_config_id,
                        start_time=start,
                        end_time=end,
                        price=service.price,
                    )
                )
    return drafts


def is_slot_aligned(start: datetime, rule: SchedulingRule, tz: tzinfo = UTC) -> bool:
    """Whether *start* is a legal slot start under *rule*."""
    start = as_utc(start)
    return align_to_boundary(start, rule, tz) == start


def schedule_efficiency(
    window_minutes: int,
    duration_minutes: int,
    rule: SchedulingRule = SchedulingRule.CONTINUOUS,
) -> ScheduleEfficiency:
    """Compare the slots *rule* yields in a window against continuous tiling.

    The window is assumed to start on a boundary.
    """
    if duration_minutes <= 0:
        raise ValueError("Slot duration must be positive")

    max_possible = max(window_minutes, 0) // duration_minutes
    origin = datetime(2000, 1, 1, tzinfo=UTC)
    intervals = tile_occurrence(origin, origin + timedelta(minutes=max(window_minutes, 0)), duration_minutes, rule)
    actual = len(intervals)

    gaps = [
        (nxt[0] - prev[1]).total_seconds() / 60
        for prev, nxt in zip(intervals, intervals[1:])
    ]
    return ScheduleEfficiency(
        max_possible_slots=max_possible,
        actual_slots=actual,
        utilization_rate=(actual * duration_minutes / window_minutes) if window_minutes > 0 else 0.0,
        average_gap_minutes=(sum(gaps) / len(gaps)) if gaps else 0.0,
    )
