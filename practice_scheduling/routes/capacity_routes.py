from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from practice_scheduling.routes.dependencies import ensure_database_ready, get_db, get_policy, service_errors
from practice_scheduling.scheduling.capacity import MAX_FORECAST_DAYS, CapacityManager
from practice_scheduling.scheduling.schemas import (
    CapacityAlert,
    CapacityForecast,
    CapacitySnapshot,
    ClinicCapacity,
    ScheduleOptimization,
    UnderutilizedStaff,
)

router = APIRouter(tags=['capacity'])


@router.get('/staff/{staff_id}', response_model=CapacitySnapshot)
def get_staff_capacity(
    staff_id: UUID,
    on_date: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return CapacityManager(db, get_policy()).get_capacity_for_date(staff_id, on_date)


@router.get('/range', response_model=list[CapacitySnapshot])
def get_capacity_range(
    staff_ids: list[UUID] = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return CapacityManager(db, get_policy()).get_capacity_range(staff_ids, start_date, end_date)


@router.get('/underutilized', response_model=list[UnderutilizedStaff])
def get_underutilized_staff(
    on_date: date = Query(..., alias='date'),
    threshold: float | None = Query(default=None, ge=0, le=100),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return CapacityManager(db, get_policy()).get_underutilized_staff(on_date, threshold)


@router.get('/staff/{staff_id}/forecast', response_model=CapacityForecast)
def forecast_staff_capacity(
    staff_id: UUID,
    days: int = Query(default=30, ge=1, le=MAX_FORECAST_DAYS),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return CapacityManager(db, get_policy()).forecast_capacity(staff_id, days)


@router.get('/clinic', response_model=ClinicCapacity)
def get_clinic_capacity(on_date: date = Query(..., alias='date'), db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return CapacityManager(db, get_policy()).get_clinic_capacity(on_date)


@router.get('/alerts', response_model=list[CapacityAlert])
def get_capacity_alerts(on_date: date | None = Query(default=None, alias='date'), db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return CapacityManager(db, get_policy()).get_capacity_alerts(on_date)


@router.get('/optimize', response_model=ScheduleOptimization)
def optimize_schedule(on_date: date = Query(..., alias='date'), db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return CapacityManager(db, get_policy()).optimize_schedule(on_date)
