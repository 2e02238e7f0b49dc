"""Tests for the availability mutation reconciler."""

import uuid
from datetime import datetime, timezone

import pytest

from medbookings.scheduling.errors import (
    HasActiveBookingsError,
    WouldExcludeBookingError,
    WouldRemoveBookedServiceError,
)
from medbookings.scheduling.models import (
    BookingStatus,
    ExistingSlot,
    Occurrence,
    ServiceOffering,
    WindowSpec,
)
from medbookings.scheduling.reconciler import partition_slots, plan_delete, plan_update

UTC = timezone.utc
CONSULT = uuid.UUID("11111111-1111-1111-1111-111111111111")
FOLLOW_UP = uuid.UUID("22222222-2222-2222-2222-222222222222")


def _at(h: int, mi: int = 0, day: int = 7) -> datetime:
    return datetime(2030, 1, day, h, mi, tzinfo=UTC)


def _slot(h: int, service_id=CONSULT, *statuses: BookingStatus) -> ExistingSlot:
    return ExistingSlot(
        id=uuid.uuid4(),
        service_id=service_id,
        start_time=_at(h),
        end_time=_at(h + 1),
        booking_statuses=list(statuses),
    )


def _occ(start: datetime, end: datetime, is_exception: bool = False) -> Occurrence:
    return Occurrence(start_time=start, end_time=end, occurrence_number=0, is_exception=is_exception)


@pytest.fixture
def window():
    return WindowSpec(availability_id=uuid.uuid4(), provider_id=uuid.uuid4())


@pytest.fixture
def hourly():
    return [ServiceOffering(service_id=CONSULT, duration=60)]


class TestPartition:
    def test_splits_on_any_booking(self):
        free = _slot(9)
        booked = _slot(10, CONSULT, BookingStatus.CONFIRMED)
        cancelled = _slot(11, CONSULT, BookingStatus.CANCELLED)
        b, f = partition_slots([free, booked, cancelled])
        assert b == [booked, cancelled]
        assert f == [free]


class TestPlanDelete:
    def test_free_slots_are_all_deleted(self):
        slots = [_slot(9), _slot(10)]
        plan = plan_delete(slots)
        assert plan.slot_ids == [s.id for s in slots]

    def test_no_slots(self):
        assert plan_delete([]).slot_ids == []

    def test_refuses_with_booking(self):
        with pytest.raises(HasActiveBookingsError) as exc_info:
            plan_delete([_slot(9), _slot(10, CONSULT, BookingStatus.CONFIRMED)])
        assert exc_info.value.statuses == ["CONFIRMED"]

    def test_cancelled_booking_still_blocks(self):
        with pytest.raises(HasActiveBookingsError) as exc_info:
            plan_delete([_slot(9, CONSULT, BookingStatus.CANCELLED)])
        assert "CANCELLED" in exc_info.value.message


class TestPlanUpdate:
    def test_without_bookings_replaces_everything(self, window, hourly):
        existing = [_slot(9), _slot(10), _slot(11)]
        plan = plan_update(existing, [_occ(_at(13), _at(15))], hourly, window)
        assert set(plan.slots_to_delete) == {s.id for s in existing}
        assert plan.slots_to_retain == []
        assert [d.start_time for d in plan.slots_to_insert] == [_at(13), _at(14)]

    def test_booked_slot_is_retained_and_range_not_refilled(self, window, hourly):
        free_a, booked, free_b = _slot(9), _slot(10, CONSULT, BookingStatus.CONFIRMED), _slot(11)
        plan = plan_update([free_a, booked, free_b], [_occ(_at(9), _at(13))], hourly, window)
        assert set(plan.slots_to_delete) == {free_a.id, free_b.id}
        assert plan.slots_to_retain == [booked.id]
        assert [d.start_time for d in plan.slots_to_insert] == [_at(9), _at(11), _at(12)]

    def test_slots_before_not_before_are_not_regenerated(self, window, hourly):
        existing = [_slot(9), _slot(10)]
        occurrences = [_occ(_at(9, day=6), _at(11, day=6)), _occ(_at(9), _at(11))]
        plan = plan_update(existing, occurrences, hourly, window, not_before=_at(6))
        assert set(plan.slots_to_delete) == {s.id for s in existing}
        assert [d.start_time for d in plan.slots_to_insert] == [_at(9), _at(10)]

    def test_shrinking_past_booking_is_refused(self, window, hourly):
        booked = _slot(10, CONSULT, BookingStatus.PENDING)
        with pytest.raises(WouldExcludeBookingError) as exc_info:
            plan_update([_slot(9), booked], [_occ(_at(9), _at(10, 30))], hourly, window)
        assert exc_info.value.intervals == [(_at(10), _at(11))]

    def test_uncovered_intervals_are_sorted(self, window, hourly):
        late = _slot(14, CONSULT, BookingStatus.CONFIRMED)
        early = _slot(10, CONSULT, BookingStatus.CONFIRMED)
        with pytest.raises(WouldExcludeBookingError) as exc_info:
            plan_update([late, early], [_occ(_at(16), _at(18))], hourly, window)
        assert [s for s, _ in exc_info.value.intervals] == [_at(10), _at(14)]
        assert "and 1 more" in exc_info.value.message

    def test_exception_occurrence_does_not_cover_booking(self, window, hourly):
        booked = _slot(10, CONSULT, BookingStatus.CONFIRMED)
        with pytest.raises(WouldExcludeBookingError):
            plan_update([booked], [_occ(_at(9), _at(12), is_exception=True)], hourly, window)

    def test_dropping_booked_service_is_refused(self, window):
        booked = _slot(10, CONSULT, BookingStatus.CONFIRMED)
        services = [ServiceOffering(service_id=FOLLOW_UP, duration=60)]
        with pytest.raises(WouldRemoveBookedServiceError) as exc_info:
            plan_update([booked], [_occ(_at(9), _at(12))], services, window)
        assert exc_info.value.service_ids == [str(CONSULT)]

    def test_dropping_unbooked_service_is_allowed(self, window, hourly):
        free_follow_up = _slot(9, FOLLOW_UP)
        plan = plan_update([free_follow_up], [_occ(_at(9), _at(11))], hourly, window)
        assert plan.slots_to_delete == [free_follow_up.id]
        assert {d.service_id for d in plan.slots_to_insert} == {CONSULT}

    def test_other_service_may_reuse_booked_range(self, window):
        booked = _slot(10, CONSULT, BookingStatus.CONFIRMED)
        services = [
            ServiceOffering(service_id=CONSULT, duration=60),
            ServiceOffering(service_id=FOLLOW_UP, duration=60),
        ]
        plan = plan_update([booked], [_occ(_at(9), _at(12))], services, window)
        follow_up = [d.start_time for d in plan.slots_to_insert if d.service_id == FOLLOW_UP]
        consult = [d.start_time for d in plan.slots_to_insert if d.service_id == CONSULT]
        assert follow_up == [_at(9), _at(10), _at(11)]
        assert consult == [_at(9), _at(11)]

    def test_naive_slot_times_are_read_as_utc(self, window, hourly):
        booked = ExistingSlot(
            id=uuid.uuid4(),
            service_id=CONSULT,
            start_time=datetime(2030, 1, 7, 10),
            end_time=datetime(2030, 1, 7, 11),
            booking_statuses=[BookingStatus.CONFIRMED],
        )
        plan = plan_update([booked], [_occ(_at(9), _at(12))], hourly, window)
        assert plan.slots_to_retain == [booked.id]
        assert [d.start_time for d in plan.slots_to_insert] == [_at(9), _at(11)]
