from datetime import date, datetime, time
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from practice_scheduling.models.enums import ConfirmationSource
from practice_scheduling.routes.dependencies import ensure_database_ready, get_db, get_policy, service_errors
from practice_scheduling.scheduling.booking import BookingService
from practice_scheduling.scheduling.schemas import BookingRequest, RescheduleRequest

router = APIRouter(tags=['appointments'])


class CreateAppointmentRequest(BookingRequest):
    booked_by: UUID


class ConfirmAppointmentRequest(BaseModel):
    confirmed_by: ConfirmationSource
    actor_id: UUID


class CheckInRequest(BaseModel):
    actor_id: UUID
    on_date: date | None = None


class CompleteAppointmentRequest(BaseModel):
    actor_id: UUID
    actual_revenue: float | None = Field(default=None, ge=0)
    notes: str | None = None


class CancelAppointmentRequest(BaseModel):
    actor_id: UUID
    reason: str


class NoShowRequest(BaseModel):
    actor_id: UUID
    reason: str | None = None


class RescheduleAppointmentRequest(RescheduleRequest):
    actor_id: UUID


class AppointmentResponse(BaseModel):
    id: UUID
    appointment_number: str
    patient_id: UUID
    staff_id: UUID
    appointment_type_id: UUID
    appointment_date: date
    start_time: time
    end_time: time
    duration_minutes: int
    status: str
    priority: str
    booked_by: UUID | None = None
    confirmation_source: str | None = None
    confirmed_at: datetime | None = None
    checked_in_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    no_show_at: datetime | None = None
    no_show_reason: str | None = None
    rescheduled_from_id: UUID | None = None
    rescheduled_to_id: UUID | None = None
    related_record_kind: str | None = None
    related_record_id: UUID | None = None
    reason_for_visit: str | None = None
    special_instructions: str | None = None
    notes: str | None = None
    expected_revenue: float | None = None
    actual_revenue: float | None = None

    class Config:
        from_attributes = True


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(data: CreateAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        request = BookingRequest.model_validate(data.model_dump(exclude={'booked_by'}))
        return BookingService(db, get_policy()).create_booking(request, data.booked_by)


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(appointment_id: UUID, db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return BookingService(db, get_policy()).get_appointment(appointment_id)


@router.post('/{appointment_id}/confirm', response_model=AppointmentResponse)
def confirm_appointment(appointment_id: UUID, data: ConfirmAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return BookingService(db, get_policy()).confirm_appointment(appointment_id, data.confirmed_by, data.actor_id)


@router.post('/{appointment_id}/check-in', response_model=AppointmentResponse)
def check_in_appointment(appointment_id: UUID, data: CheckInRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return BookingService(db, get_policy()).check_in_patient(appointment_id, data.actor_id, data.on_date)


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(appointment_id: UUID, data: CompleteAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return BookingService(db, get_policy()).complete_appointment(
            appointment_id,
            data.actor_id,
            actual_revenue=data.actual_revenue,
            notes=data.notes,
        )


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(appointment_id: UUID, data: CancelAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return BookingService(db, get_policy()).cancel_appointment(appointment_id, data.actor_id, data.reason)


@router.post('/{appointment_id}/no-show', response_model=AppointmentResponse)
def mark_no_show(appointment_id: UUID, data: NoShowRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return BookingService(db, get_policy()).mark_no_show(appointment_id, data.actor_id, data.reason)


@router.post(
    '/{appointment_id}/reschedule',
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
)
def reschedule_appointment(appointment_id: UUID, data: RescheduleAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        request = RescheduleRequest.model_validate(data.model_dump(exclude={'actor_id'}))
        return BookingService(db, get_policy()).reschedule_appointment(appointment_id, request, data.actor_id)
