from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from practice_scheduling.routes.dependencies import ensure_database_ready, get_db, get_policy, service_errors
from practice_scheduling.scheduling.booking import BookingService
from practice_scheduling.scheduling.schemas import AvailableSlot, BookingCriteria, TimeSlot

router = APIRouter(tags=['availability'])


@router.get('/staff/{staff_id}', response_model=list[AvailableSlot])
def get_staff_availability(
    staff_id: UUID,
    on_date: date = Query(..., alias='date'),
    duration_minutes: int | None = Query(default=None, gt=0),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return BookingService(db, get_policy()).check_availability(staff_id, on_date, duration_minutes)


@router.post('/optimal-slots', response_model=list[TimeSlot])
def find_optimal_slots(data: BookingCriteria, db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return BookingService(db, get_policy()).find_optimal_slot(data)
