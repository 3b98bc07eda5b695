from datetime import date, datetime, time
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from practice_scheduling.routes.dependencies import ensure_database_ready, get_db, service_errors
from practice_scheduling.scheduling.schedules import ScheduleService
from practice_scheduling.scheduling.schemas import ScheduleEntryRequest, TimeOffRequest

router = APIRouter(tags=['schedules'])


class UpdateScheduleRequest(BaseModel):
    entries: list[ScheduleEntryRequest]


class TimeOffDecisionRequest(BaseModel):
    approver_id: UUID


class ScheduleResponse(BaseModel):
    id: UUID
    staff_id: UUID
    day_of_week: str
    start_time: time
    end_time: time
    break_start: time | None = None
    break_end: time | None = None
    max_appointments_per_day: int | None = None
    default_appointment_duration: int
    is_active: bool
    effective_from: date
    effective_until: date | None = None
    notes: str | None = None
    superseded_at: datetime | None = None

    class Config:
        from_attributes = True


class TimeOffResponse(BaseModel):
    id: UUID
    staff_id: UUID
    start_date: date
    end_date: date
    start_time: time | None = None
    end_time: time | None = None
    all_day: bool
    reason: str
    approval_status: str
    approved_by: UUID | None = None
    decided_at: datetime | None = None
    notes: str | None = None

    class Config:
        from_attributes = True


@router.get('/staff/{staff_id}/schedule', response_model=list[ScheduleResponse])
def get_staff_schedule(
    staff_id: UUID,
    include_superseded: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return ScheduleService(db).list_schedule(staff_id, include_superseded=include_superseded)


@router.put('/staff/{staff_id}/schedule', response_model=list[ScheduleResponse])
def update_staff_schedule(staff_id: UUID, data: UpdateScheduleRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return ScheduleService(db).update_schedule(staff_id, data.entries)


@router.get('/staff/{staff_id}/time-off', response_model=list[TimeOffResponse])
def list_staff_time_off(
    staff_id: UUID,
    start_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return ScheduleService(db).list_time_off(staff_id, start_date)


@router.post('/staff/{staff_id}/time-off', response_model=TimeOffResponse, status_code=status.HTTP_201_CREATED)
def request_staff_time_off(staff_id: UUID, data: TimeOffRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return ScheduleService(db).request_time_off(staff_id, data)


@router.post('/time-off/{time_off_id}/approve', response_model=TimeOffResponse)
def approve_time_off(time_off_id: UUID, data: TimeOffDecisionRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return ScheduleService(db).approve_time_off(time_off_id, data.approver_id)


@router.post('/time-off/{time_off_id}/reject', response_model=TimeOffResponse)
def reject_time_off(time_off_id: UUID, data: TimeOffDecisionRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return ScheduleService(db).reject_time_off(time_off_id, data.approver_id)
