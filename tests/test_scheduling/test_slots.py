"""Tests for the slot materializer."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from medbookings.scheduling.models import Occurrence, SchedulingRule, ServiceOffering, WindowSpec
from medbookings.scheduling.slots import (
    align_to_boundary,
    is_slot_aligned,
    materialize_slots,
    schedule_efficiency,
    tile_occurrence,
)
from medbookings.scheduling.timezone import get_zone

UTC = timezone.utc
PROVIDER = uuid.UUID("bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb")
CONSULT = uuid.UUID("11111111-1111-1111-1111-111111111111")
FOLLOW_UP = uuid.UUID("22222222-2222-2222-2222-222222222222")


def _at(h: int, mi: int = 0, s: int = 0, day: int = 1) -> datetime:
    return datetime(2024, 1, day, h, mi, s, tzinfo=UTC)


def _occ(start: datetime, end: datetime, n: int = 0, is_exception: bool = False) -> Occurrence:
    return Occurrence(start_time=start, end_time=end, occurrence_number=n, is_exception=is_exception)


@pytest.fixture
def window():
    return WindowSpec(availability_id=uuid.uuid4(), provider_id=PROVIDER)


# ------------------------------------------------------------------ tiling

class TestContinuous:
    def test_tiles_whole_window(self):
        intervals = tile_occurrence(_at(9), _at(12), 30)
        assert len(intervals) == 6
        assert intervals[0] == (_at(9), _at(9, 30))
        assert intervals[-1][1] == _at(12)
        for (_, prev_end), (next_start, _) in zip(intervals, intervals[1:]):
            assert prev_end == next_start

    @pytest.mark.parametrize("minutes,duration", [(180, 30), (100, 30), (60, 45), (45, 45), (20, 30)])
    def test_count_and_coverage(self, minutes: int, duration: int):
        start = _at(9)
        intervals = tile_occurrence(start, start + timedelta(minutes=minutes), duration)
        assert len(intervals) == minutes // duration
        assert all(e - s == timedelta(minutes=duration) for s, e in intervals)
        if intervals:
            assert intervals[0][0] == start
            assert intervals[-1][1] == start + timedelta(minutes=duration * len(intervals))

    def test_trailing_partial_slot_is_dropped(self):
        intervals = tile_occurrence(_at(9), _at(10, 40), 30)
        assert [s for s, _ in intervals] == [_at(9), _at(9, 30), _at(10)]

    def test_seconds_are_truncated(self):
        intervals = tile_occurrence(_at(9, 0, 45), _at(10), 30)
        assert intervals[0][0] == _at(9)

    def test_non_positive_duration_rejected(self):
        with pytest.raises(ValueError):
            tile_occurrence(_at(9), _at(10), 0)


class TestAligned:
    def test_on_the_hour_snaps_each_slot(self):
        intervals = tile_occurrence(_at(9, 15), _at(12), 30, SchedulingRule.ON_THE_HOUR)
        assert intervals == [(_at(10), _at(10, 30)), (_at(11), _at(11, 30))]

    def test_on_the_half_hour_never_overlaps(self):
        intervals = tile_occurrence(_at(9, 10), _at(11), 45, SchedulingRule.ON_THE_HALF_HOUR)
        assert intervals == [(_at(9, 30), _at(10, 15))]

    def test_on_the_half_hour_back_to_back(self):
        intervals = tile_occurrence(_at(9), _at(10, 30), 30, SchedulingRule.ON_THE_HALF_HOUR)
        assert [s for s, _ in intervals] == [_at(9), _at(9, 30), _at(10)]

    def test_boundaries_are_local(self):
        # Kolkata is UTC+05:30, so local full hours fall on UTC half hours
        tz = get_zone("Asia/Kolkata")
        intervals = tile_occurrence(_at(3, 45), _at(6, 45), 60, SchedulingRule.ON_THE_HOUR, tz)
        assert intervals[0][0] == _at(4, 30)
        assert is_slot_aligned(_at(4, 30), SchedulingRule.ON_THE_HOUR, tz)
        assert not is_slot_aligned(_at(4), SchedulingRule.ON_THE_HOUR, tz)

    def test_align_to_boundary_keeps_aligned_moment(self):
        assert align_to_boundary(_at(10), SchedulingRule.ON_THE_HOUR) == _at(10)
        assert align_to_boundary(_at(10, 1), SchedulingRule.ON_THE_HOUR) == _at(11)
        assert align_to_boundary(_at(10, 1), SchedulingRule.ON_THE_HALF_HOUR) == _at(10, 30)

    def test_continuous_alignment_is_minute_precision(self):
        assert is_slot_aligned(_at(10, 7), SchedulingRule.CONTINUOUS)
        assert not is_slot_aligned(_at(10, 7, 30), SchedulingRule.CONTINUOUS)


# ------------------------------------------------------------------ materialization

class TestMaterialize:
    def test_one_slot_set_per_service(self, window: WindowSpec):
        services = [
            ServiceOffering(service_id=CONSULT, duration=30),
            ServiceOffering(service_id=FOLLOW_UP, duration=60),
        ]
        drafts = materialize_slots(window, services, [_occ(_at(9), _at(11))])
        consult = [d for d in drafts if d.service_id == CONSULT]
        follow_up = [d for d in drafts if d.service_id == FOLLOW_UP]
        assert len(consult) == 4
        assert len(follow_up) == 2
        # The same interval carries one slot for each service
        assert consult[0].start_time == follow_up[0].start_time == _at(9)
        assert all(d.provider_id == PROVIDER and d.availability_id == window.availability_id for d in drafts)
        assert all(d.duration_minutes in (30, 60) for d in drafts)

    def test_every_occurrence_is_materialized(self, window: WindowSpec):
        services = [ServiceOffering(service_id=CONSULT, duration=60)]
        occs = [_occ(_at(9, day=d), _at(11, day=d), n) for n, d in enumerate((1, 2, 3))]
        drafts = materialize_slots(window, services, occs)
        assert len(drafts) == 6
        assert {d.start_time.day for d in drafts} == {1, 2, 3}

    def test_exception_occurrences_get_no_slots(self, window: WindowSpec):
        services = [ServiceOffering(service_id=CONSULT, duration=60)]
        occs = [_occ(_at(9), _at(11)), _occ(_at(9, day=2), _at(11, day=2), 1, is_exception=True)]
        drafts = materialize_slots(window, services, occs)
        assert {d.start_time.day for d in drafts} == {1}

    def test_exclude_skips_only_same_service(self, window: WindowSpec):
        services = [
            ServiceOffering(service_id=CONSULT, duration=30),
            ServiceOffering(service_id=FOLLOW_UP, duration=60),
        ]
        drafts = materialize_slots(
            window, services, [_occ(_at(9), _at(11))], exclude=[(CONSULT, _at(9, 30), _at(10))]
        )
        consult_starts = [d.start_time for d in drafts if d.service_id == CONSULT]
        assert consult_starts == [_at(9), _at(10), _at(10, 30)]
        assert len([d for d in drafts if d.service_id == FOLLOW_UP]) == 2

    def test_idempotent(self, window: WindowSpec):
        services = [ServiceOffering(service_id=CONSULT, duration=20)]
        occs = [_occ(_at(8), _at(12, 10))]
        first = materialize_slots(window, services, occs)
        second = materialize_slots(window, services, occs)
        assert first == second

    def test_slots_stay_inside_occurrence(self, window: WindowSpec):
        services = [ServiceOffering(service_id=CONSULT, duration=25)]
        occ = _occ(_at(9, 5), _at(12, 50))
        for rule in SchedulingRule:
            w = window.model_copy(update={"scheduling_rule": rule})
            drafts = materialize_slots(w, services, [occ])
            assert drafts
            assert all(occ.start_time <= d.start_time and d.end_time <= occ.end_time for d in drafts)
            starts = sorted(d.start_time for d in drafts)
            ends = sorted(d.end_time for d in drafts)
            assert all(e <= s for e, s in zip(ends, starts[1:]))


class TestEfficiency:
    def test_continuous_uses_whole_window(self):
        result = schedule_efficiency(180, 45)
        assert result.max_possible_slots == 4
        assert result.actual_slots == 4
        assert result.utilization_rate == 1.0
        assert result.average_gap_minutes == 0

    def test_on_the_hour_leaves_gaps(self):
        result = schedule_efficiency(180, 45, SchedulingRule.ON_THE_HOUR)
        assert result.max_possible_slots == 4
        assert result.actual_slots == 3
        assert result.utilization_rate == pytest.approx(0.75)
        assert result.average_gap_minutes == pytest.approx(15)
