import uuid
from datetime import date, datetime, time

import pytest

from practice_scheduling.core.errors import NotFoundError
from practice_scheduling.models.enums import Urgency
from practice_scheduling.scheduling.optimizer import SlotOptimizer
from practice_scheduling.scheduling.policy import SchedulingPolicy
from practice_scheduling.scheduling.schemas import BookingCriteria

MONDAY = date(2026, 3, 2)


@pytest.fixture
def clinic(factory):
    first = factory.staff('Dr. Adams')
    second = factory.staff('Dr. Baker')
    factory.weekly_schedule(first)
    factory.weekly_schedule(second)
    return {
        'first': first,
        'second': second,
        'patient': factory.patient(),
        'visit': factory.appointment_type(default_duration=30),
    }


def make_criteria(clinic, **overrides) -> BookingCriteria:
    values = {'patient_id': clinic['patient'].id, 'appointment_type_id': clinic['visit'].id}
    values.update(overrides)
    return BookingCriteria(**values)


def test_results_are_capped_and_ranked(scheduling_db, clinic, fixed_clock) -> None:
    optimizer = SlotOptimizer(scheduling_db, clock=fixed_clock)

    results = optimizer.find_optimal_slot(make_criteria(clinic, preferred_date=MONDAY))

    assert len(results) == 10
    keys = [(-slot.score, slot.date, slot.start_time, str(slot.staff_id)) for slot in results]
    assert keys == sorted(keys)


def test_ranking_is_deterministic(scheduling_db, clinic, fixed_clock) -> None:
    optimizer = SlotOptimizer(scheduling_db, clock=fixed_clock)
    criteria = make_criteria(clinic, preferred_date=MONDAY, preferred_time=time(11, 0))

    assert optimizer.find_optimal_slot(criteria) == optimizer.find_optimal_slot(criteria)


def test_preferred_date_and_time_score_highest(scheduling_db, clinic, fixed_clock) -> None:
    optimizer = SlotOptimizer(scheduling_db, clock=fixed_clock)

    results = optimizer.find_optimal_slot(make_criteria(clinic, preferred_date=MONDAY, preferred_time=time(10, 0)))

    top_two = results[:2]
    assert {slot.staff_id for slot in top_two} == {clinic['first'].id, clinic['second'].id}
    for slot in top_two:
        assert slot.date == MONDAY
        assert slot.start_time == time(10, 0)
        assert slot.end_time == time(10, 30)
        assert slot.score == 110.0
        assert 'On your preferred date' in slot.reasons
        assert 'At your preferred time' in slot.reasons


def test_less_utilized_staff_ranks_first(scheduling_db, factory, clinic, fixed_clock) -> None:
    factory.appointment(clinic['first'], clinic['patient'], clinic['visit'], MONDAY, time(9, 0), time(13, 0))
    optimizer = SlotOptimizer(scheduling_db, clock=fixed_clock)

    results = optimizer.find_optimal_slot(make_criteria(clinic, preferred_date=MONDAY))

    assert results[0].staff_id == clinic['second'].id
    assert results[0].date == MONDAY
    assert results[0].score == 95.0
    busy_monday = next(slot for slot in results if slot.staff_id == clinic['first'].id and slot.date == MONDAY)
    assert busy_monday.start_time == time(13, 0)
    assert busy_monday.score == 80.0


def test_preferred_staff_restricts_candidates(scheduling_db, clinic, fixed_clock) -> None:
    optimizer = SlotOptimizer(scheduling_db, clock=fixed_clock)

    results = optimizer.find_optimal_slot(
        make_criteria(clinic, preferred_date=MONDAY, preferred_staff_id=clinic['second'].id)
    )

    assert results
    assert {slot.staff_id for slot in results} == {clinic['second'].id}
    assert 'Your preferred provider' in results[0].reasons


def test_inactive_preferred_staff_yields_no_slots(scheduling_db, factory, clinic, fixed_clock) -> None:
    retired = factory.staff('Dr. Retired', is_active=False)
    factory.weekly_schedule(retired)

    results = SlotOptimizer(scheduling_db, clock=fixed_clock).find_optimal_slot(
        make_criteria(clinic, preferred_staff_id=retired.id)
    )

    assert results == []


def test_required_roles_filter_staff(scheduling_db, factory, clinic, fixed_clock) -> None:
    technician = factory.staff('Sam Tech', role='sleep_technician')
    factory.weekly_schedule(technician)
    study = factory.appointment_type(default_duration=60, required_roles=['sleep_technician'])

    results = SlotOptimizer(scheduling_db, clock=fixed_clock).find_optimal_slot(
        BookingCriteria(patient_id=clinic['patient'].id, appointment_type_id=study.id, preferred_date=MONDAY)
    )

    assert results
    assert {slot.staff_id for slot in results} == {technician.id}
    assert all(slot.duration_minutes == 60 for slot in results)


def test_urgent_requests_search_a_short_window(scheduling_db, clinic, fixed_clock) -> None:
    results = SlotOptimizer(scheduling_db, clock=fixed_clock).find_optimal_slot(
        make_criteria(clinic, preferred_date=MONDAY, urgency=Urgency.URGENT)
    )

    assert {slot.date for slot in results} == {MONDAY, date(2026, 3, 3)}


def test_past_preferred_date_starts_search_today(scheduling_db, clinic, fixed_clock) -> None:
    results = SlotOptimizer(scheduling_db, clock=fixed_clock).find_optimal_slot(
        make_criteria(clinic, preferred_date=date(2026, 2, 1), urgency=Urgency.HIGH)
    )

    assert results
    assert all(date(2026, 3, 1) <= slot.date < date(2026, 3, 6) for slot in results)


def test_same_day_slots_start_after_now(scheduling_db, clinic) -> None:
    optimizer = SlotOptimizer(
        scheduling_db,
        policy=SchedulingPolicy(max_slot_results=50),
        clock=lambda: datetime(2026, 3, 2, 10, 7),
    )

    results = optimizer.find_optimal_slot(make_criteria(clinic, preferred_date=MONDAY))

    today = [slot for slot in results if slot.date == MONDAY]
    assert today
    assert all(slot.start_time == time(10, 15) for slot in today)


def test_explicit_duration_overrides_type_default(scheduling_db, clinic, fixed_clock) -> None:
    results = SlotOptimizer(scheduling_db, clock=fixed_clock).find_optimal_slot(
        make_criteria(clinic, preferred_date=MONDAY, duration_minutes=45)
    )

    assert all(slot.duration_minutes == 45 for slot in results)
    assert results[0].end_time == time(9, 45)


def test_unknown_references_are_not_found(scheduling_db, clinic, fixed_clock) -> None:
    optimizer = SlotOptimizer(scheduling_db, clock=fixed_clock)

    with pytest.raises(NotFoundError) as exception_info:
        optimizer.find_optimal_slot(make_criteria(clinic, patient_id=uuid.uuid4()))
    assert exception_info.value.entity == 'Patient'

    with pytest.raises(NotFoundError) as exception_info:
        optimizer.find_optimal_slot(make_criteria(clinic, appointment_type_id=uuid.uuid4()))
    assert exception_info.value.entity == 'Appointment type'

    with pytest.raises(NotFoundError) as exception_info:
        optimizer.find_optimal_slot(make_criteria(clinic, preferred_staff_id=uuid.uuid4()))
    assert exception_info.value.entity == 'Staff'
