import uuid
from datetime import date, time

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from practice_scheduling.routes.appointment_routes import (
    AppointmentResponse,
    CancelAppointmentRequest,
    CheckInRequest,
    ConfirmAppointmentRequest,
    CreateAppointmentRequest,
    RescheduleAppointmentRequest,
    cancel_appointment,
    check_in_appointment,
    confirm_appointment,
    create_appointment,
    get_appointment,
    reschedule_appointment,
)

MONDAY = date(2026, 3, 2)
FRONT_DESK = uuid.UUID('00000000-0000-0000-0000-00000000f00d')


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('practice_scheduling.routes.appointment_routes.ensure_database_ready', lambda: None)


@pytest.fixture
def booking(factory) -> CreateAppointmentRequest:
    staff = factory.staff()
    factory.schedule(staff)
    return CreateAppointmentRequest(
        patient_id=factory.patient().id,
        staff_id=staff.id,
        appointment_type_id=factory.appointment_type().id,
        appointment_date=MONDAY,
        start_time=time(9, 0),
        booked_by=FRONT_DESK,
    )


def test_create_appointment_request_normalizes_notes() -> None:
    request = CreateAppointmentRequest(
        patient_id=uuid.uuid4(),
        staff_id=uuid.uuid4(),
        appointment_type_id=uuid.uuid4(),
        appointment_date=MONDAY,
        start_time=time(9, 0),
        reason_for_visit='   ',
        special_instructions=' Bring CPAP machine ',
        booked_by=FRONT_DESK,
    )

    assert request.reason_for_visit is None
    assert request.special_instructions == 'Bring CPAP machine'


def test_create_appointment_request_rejects_long_notes() -> None:
    with pytest.raises(ValidationError):
        CreateAppointmentRequest(
            patient_id=uuid.uuid4(),
            staff_id=uuid.uuid4(),
            appointment_type_id=uuid.uuid4(),
            appointment_date=MONDAY,
            start_time=time(9, 0),
            reason_for_visit='x' * 601,
            booked_by=FRONT_DESK,
        )


def test_create_appointment_returns_requested_appointment(scheduling_db, booking) -> None:
    appointment = create_appointment(booking, db=scheduling_db)
    response = AppointmentResponse.model_validate(appointment)

    assert response.status == 'requested'
    assert response.end_time == time(9, 30)
    assert response.booked_by == FRONT_DESK


def test_create_appointment_conflict_returns_409(scheduling_db, booking) -> None:
    create_appointment(booking, db=scheduling_db)

    with pytest.raises(HTTPException) as exception_info:
        create_appointment(booking, db=scheduling_db)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail['message'] == 'Time slot is already booked.'
    assert exception_info.value.detail['slot']['start_time'] == '09:00:00'


def test_create_appointment_outside_hours_returns_409(scheduling_db, booking) -> None:
    request = booking.model_copy(update={'start_time': time(7, 0)})

    with pytest.raises(HTTPException) as exception_info:
        create_appointment(request, db=scheduling_db)

    assert exception_info.value.status_code == 409


def test_get_appointment_returns_not_found(scheduling_db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_appointment(appointment_id=uuid.uuid4(), db=scheduling_db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Appointment not found.'


def test_confirm_after_cancel_reports_current_status(scheduling_db, booking) -> None:
    appointment = create_appointment(booking, db=scheduling_db)
    cancel_appointment(
        appointment.id,
        CancelAppointmentRequest(actor_id=FRONT_DESK, reason='Insurance issue'),
        db=scheduling_db,
    )

    with pytest.raises(HTTPException) as exception_info:
        confirm_appointment(
            appointment.id,
            ConfirmAppointmentRequest(confirmed_by='staff', actor_id=FRONT_DESK),
            db=scheduling_db,
        )

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail['current_status'] == 'cancelled'
    assert exception_info.value.detail['requested_status'] == 'confirmed'


def test_cancel_without_reason_returns_422(scheduling_db, booking) -> None:
    appointment = create_appointment(booking, db=scheduling_db)

    with pytest.raises(HTTPException) as exception_info:
        cancel_appointment(appointment.id, CancelAppointmentRequest(actor_id=FRONT_DESK, reason=' '), db=scheduling_db)

    assert exception_info.value.status_code == 422
    assert exception_info.value.detail['errors'] == [
        {'field': 'reason', 'message': 'A cancellation reason is required.'}
    ]


def test_check_in_on_wrong_day_returns_409(scheduling_db, booking) -> None:
    appointment = create_appointment(booking, db=scheduling_db)
    confirm_appointment(
        appointment.id,
        ConfirmAppointmentRequest(confirmed_by='automated', actor_id=FRONT_DESK),
        db=scheduling_db,
    )

    with pytest.raises(HTTPException) as exception_info:
        check_in_appointment(
            appointment.id,
            CheckInRequest(actor_id=FRONT_DESK, on_date=date(2026, 3, 3)),
            db=scheduling_db,
        )

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail['message'].startswith('Check-in date mismatch')


def test_reschedule_returns_linked_replacement(scheduling_db, booking) -> None:
    appointment = create_appointment(booking, db=scheduling_db)

    replacement = reschedule_appointment(
        appointment.id,
        RescheduleAppointmentRequest(new_date=MONDAY, new_start_time=time(14, 0), actor_id=FRONT_DESK),
        db=scheduling_db,
    )

    assert replacement.rescheduled_from_id == appointment.id
    assert get_appointment(appointment.id, db=scheduling_db).status == 'rescheduled'
