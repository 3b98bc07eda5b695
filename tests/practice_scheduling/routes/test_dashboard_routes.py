import uuid
from datetime import date, time

import pytest
from fastapi import HTTPException

from practice_scheduling.core.errors import (
    BookingConflictError,
    NotFoundError,
    StateConflictError,
    StoreError,
    ValidationError,
)
from practice_scheduling.routes.capacity_routes import (
    forecast_staff_capacity,
    get_capacity_range,
    get_clinic_capacity,
    get_staff_capacity,
    get_underutilized_staff,
)
from practice_scheduling.routes.dependencies import to_http_exception
from practice_scheduling.routes.productivity_routes import (
    get_clinic_metrics,
    get_daily_summary,
    get_staff_metrics,
)

MONDAY = date(2026, 3, 2)


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('practice_scheduling.routes.capacity_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('practice_scheduling.routes.productivity_routes.ensure_database_ready', lambda: None)


@pytest.fixture
def working_staff(factory):
    staff = factory.staff()
    factory.schedule(staff)
    factory.appointment(staff, factory.patient(), factory.appointment_type(), MONDAY, time(9, 0), time(15, 0))
    return staff


@pytest.mark.parametrize(
    ('error', 'status_code'),
    [
        (ValidationError('Bad input.', field='date'), 422),
        (NotFoundError('Staff', 'abc'), 404),
        (StateConflictError('Nope.', 'completed', 'cancelled'), 409),
        (BookingConflictError('Taken.', {'start_time': '09:00:00'}), 409),
        (StoreError('Down.'), 503),
    ],
)
def test_to_http_exception_maps_error_kinds(error, status_code: int) -> None:
    assert to_http_exception(error).status_code == status_code


def test_staff_capacity_route(scheduling_db, working_staff) -> None:
    capacity = get_staff_capacity(working_staff.id, on_date=MONDAY, db=scheduling_db)

    assert capacity.utilization_percentage == 75.0


def test_capacity_range_with_reversed_dates_returns_422(scheduling_db, working_staff) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_capacity_range(
            staff_ids=[working_staff.id],
            start_date=date(2026, 3, 6),
            end_date=MONDAY,
            db=scheduling_db,
        )

    assert exception_info.value.status_code == 422


def test_underutilized_and_clinic_routes(scheduling_db, working_staff) -> None:
    assert get_underutilized_staff(on_date=MONDAY, threshold=80.0, db=scheduling_db)[0].staff_id == working_staff.id
    assert get_underutilized_staff(on_date=MONDAY, threshold=None, db=scheduling_db) == []
    assert get_clinic_capacity(on_date=MONDAY, db=scheduling_db).total_staff == 1


def test_forecast_route_for_unknown_staff_returns_404(scheduling_db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        forecast_staff_capacity(uuid.uuid4(), days=7, db=scheduling_db)

    assert exception_info.value.status_code == 404


def test_productivity_routes(scheduling_db, working_staff) -> None:
    metrics = get_staff_metrics(working_staff.id, start_date=MONDAY, end_date=MONDAY, db=scheduling_db)
    clinic = get_clinic_metrics(start_date=MONDAY, end_date=MONDAY, db=scheduling_db)
    summary = get_daily_summary(on_date=MONDAY, db=scheduling_db)

    assert metrics.utilization_rate == 75.0
    assert clinic.appointments_scheduled == 1
    assert summary.total_appointments == 1


def test_productivity_period_must_be_ordered(scheduling_db, working_staff) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_clinic_metrics(start_date=date(2026, 3, 6), end_date=MONDAY, db=scheduling_db)

    assert exception_info.value.status_code == 422
