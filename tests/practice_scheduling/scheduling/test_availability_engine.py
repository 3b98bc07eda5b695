import uuid
from datetime import date, time

import pytest

from practice_scheduling.core.errors import NotFoundError, ValidationError
from practice_scheduling.scheduling.availability import AvailabilityEngine
from practice_scheduling.scheduling.policy import SchedulingPolicy

MONDAY = date(2026, 3, 2)


@pytest.fixture
def booked_monday(factory):
    staff = factory.staff()
    factory.schedule(staff, break_start=time(12, 0), break_end=time(13, 0))
    patient = factory.patient()
    visit = factory.appointment_type()
    return staff, patient, visit


def test_compute_availability_returns_one_slot_per_free_window(scheduling_db, factory, booked_monday) -> None:
    staff, patient, visit = booked_monday
    factory.appointment(staff, patient, visit, MONDAY, time(10, 0), time(10, 30))

    slots = AvailabilityEngine(scheduling_db).compute_availability(staff.id, MONDAY, 30)

    assert [(slot.window_start, slot.window_end) for slot in slots] == [
        (time(9, 0), time(10, 0)),
        (time(10, 30), time(12, 0)),
        (time(13, 0), time(17, 0)),
    ]
    assert [(slot.start_time, slot.end_time) for slot in slots] == [
        (time(9, 0), time(9, 30)),
        (time(10, 30), time(11, 0)),
        (time(13, 0), time(13, 30)),
    ]
    assert all(slot.staff_id == staff.id and slot.duration_minutes == 30 for slot in slots)


def test_compute_availability_skips_windows_shorter_than_duration(scheduling_db, factory, booked_monday) -> None:
    staff, patient, visit = booked_monday
    factory.appointment(staff, patient, visit, MONDAY, time(10, 0), time(10, 30))

    slots = AvailabilityEngine(scheduling_db).compute_availability(staff.id, MONDAY, 91)

    assert [(slot.window_start, slot.window_end) for slot in slots] == [(time(13, 0), time(17, 0))]


def test_cancelled_and_rescheduled_appointments_free_their_time(scheduling_db, factory, booked_monday) -> None:
    staff, patient, visit = booked_monday
    factory.appointment(staff, patient, visit, MONDAY, time(9, 0), time(12, 0), status='cancelled')
    factory.appointment(staff, patient, visit, MONDAY, time(13, 0), time(17, 0), status='rescheduled')

    slots = AvailabilityEngine(scheduling_db).compute_availability(staff.id, MONDAY, 30)

    assert [(slot.window_start, slot.window_end) for slot in slots] == [
        (time(9, 0), time(12, 0)),
        (time(13, 0), time(17, 0)),
    ]


def test_no_show_still_occupies_its_slot(scheduling_db, factory, booked_monday) -> None:
    staff, patient, visit = booked_monday
    factory.appointment(staff, patient, visit, MONDAY, time(9, 0), time(12, 0), status='no_show')

    slots = AvailabilityEngine(scheduling_db).compute_availability(staff.id, MONDAY, 30)

    assert [slot.window_start for slot in slots] == [time(13, 0)]


def test_unscheduled_weekday_has_no_availability(scheduling_db, factory, booked_monday) -> None:
    staff, _, _ = booked_monday

    assert AvailabilityEngine(scheduling_db).compute_availability(staff.id, date(2026, 3, 3), 30) == []


def test_inactive_schedule_has_no_availability(scheduling_db, factory) -> None:
    staff = factory.staff()
    factory.schedule(staff, is_active=False)

    assert AvailabilityEngine(scheduling_db).compute_availability(staff.id, MONDAY, 30) == []


def test_all_day_time_off_removes_the_day(scheduling_db, factory, booked_monday) -> None:
    staff, _, _ = booked_monday
    factory.time_off(staff, date(2026, 2, 28), date(2026, 3, 4))

    assert AvailabilityEngine(scheduling_db).compute_availability(staff.id, MONDAY, 30) == []


def test_partial_time_off_subtracts_its_range(scheduling_db, factory, booked_monday) -> None:
    staff, _, _ = booked_monday
    factory.time_off(staff, MONDAY, start_time=time(14, 0), end_time=time(15, 30), reason='meeting')

    slots = AvailabilityEngine(scheduling_db).compute_availability(staff.id, MONDAY, 30)

    assert [(slot.window_start, slot.window_end) for slot in slots] == [
        (time(9, 0), time(12, 0)),
        (time(13, 0), time(14, 0)),
        (time(15, 30), time(17, 0)),
    ]


def test_pending_time_off_blocks_only_when_policy_says_so(scheduling_db, factory, booked_monday) -> None:
    staff, _, _ = booked_monday
    factory.time_off(staff, MONDAY, approval_status='pending')

    blocking = AvailabilityEngine(scheduling_db, SchedulingPolicy(pending_time_off_blocks=True))
    permissive = AvailabilityEngine(scheduling_db, SchedulingPolicy(pending_time_off_blocks=False))

    assert blocking.compute_availability(staff.id, MONDAY, 30) == []
    assert len(permissive.compute_availability(staff.id, MONDAY, 30)) == 2


def test_rejected_time_off_never_blocks(scheduling_db, factory, booked_monday) -> None:
    staff, _, _ = booked_monday
    factory.time_off(staff, MONDAY, approval_status='rejected')

    assert len(AvailabilityEngine(scheduling_db).compute_availability(staff.id, MONDAY, 30)) == 2


def test_latest_effective_schedule_wins(scheduling_db, factory) -> None:
    staff = factory.staff()
    factory.schedule(staff, effective_from=date(2026, 1, 1))
    factory.schedule(staff, start_time=time(7, 0), end_time=time(11, 0), effective_from=date(2026, 2, 1))

    slots = AvailabilityEngine(scheduling_db).compute_availability(staff.id, MONDAY, 30)

    assert [(slot.window_start, slot.window_end) for slot in slots] == [(time(7, 0), time(11, 0))]


def test_schedule_outside_effective_range_is_ignored(scheduling_db, factory) -> None:
    staff = factory.staff()
    factory.schedule(staff, effective_from=date(2026, 1, 1), effective_until=date(2026, 2, 28))

    assert AvailabilityEngine(scheduling_db).compute_availability(staff.id, MONDAY, 30) == []


def test_compute_availability_accepts_iso_date_strings(scheduling_db, factory, booked_monday) -> None:
    staff, _, _ = booked_monday

    slots = AvailabilityEngine(scheduling_db).compute_availability(str(staff.id), '2026-03-02', 60)

    assert len(slots) == 2


def test_unknown_staff_is_not_found(scheduling_db) -> None:
    with pytest.raises(NotFoundError) as exception_info:
        AvailabilityEngine(scheduling_db).compute_availability(uuid.uuid4(), MONDAY, 30)

    assert exception_info.value.message == 'Staff not found.'


@pytest.mark.parametrize('duration', [0, -30])
def test_non_positive_duration_is_rejected_before_lookup(scheduling_db, duration: int) -> None:
    with pytest.raises(ValidationError):
        AvailabilityEngine(scheduling_db).compute_availability(uuid.uuid4(), MONDAY, duration)


def test_is_interval_free_can_ignore_one_appointment(scheduling_db, factory, booked_monday) -> None:
    staff, patient, visit = booked_monday
    existing = factory.appointment(staff, patient, visit, MONDAY, time(10, 0), time(10, 30))
    engine = AvailabilityEngine(scheduling_db)

    assert not engine.is_interval_free(staff.id, MONDAY, time(10, 0), time(10, 30))
    assert engine.is_interval_free(staff.id, MONDAY, time(10, 0), time(10, 30), exclude_appointment_id=existing.id)
    assert not engine.is_interval_free(staff.id, MONDAY, time(11, 30), time(12, 30))


def test_daily_limit_closes_remaining_windows(scheduling_db, factory) -> None:
    staff = factory.staff()
    factory.schedule(staff, max_appointments_per_day=2)
    patient = factory.patient()
    visit = factory.appointment_type()
    factory.appointment(staff, patient, visit, MONDAY, time(9, 0), time(9, 30))
    last = factory.appointment(staff, patient, visit, MONDAY, time(10, 0), time(10, 30))
    engine = AvailabilityEngine(scheduling_db)

    assert engine.daily_limit_reached(staff.id, MONDAY)
    assert engine.compute_availability(staff.id, MONDAY, 30) == []
    assert not engine.daily_limit_reached(staff.id, MONDAY, exclude_appointment_id=last.id)
    assert engine.is_interval_free(staff.id, MONDAY, time(10, 0), time(10, 30), exclude_appointment_id=last.id)
