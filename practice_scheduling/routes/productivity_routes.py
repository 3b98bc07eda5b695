from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from practice_scheduling.routes.dependencies import ensure_database_ready, get_db, get_policy, service_errors
from practice_scheduling.scheduling.productivity import ProductivityTracker
from practice_scheduling.scheduling.schemas import (
    Bottleneck,
    ClinicMetrics,
    DailySummary,
    Period,
    ProductivityReport,
    StaffMetrics,
    coerce_payload,
)

router = APIRouter(tags=['productivity'])


def build_period(start_date: date, end_date: date) -> Period:
    return coerce_payload(Period, {'start': start_date, 'end': end_date})


@router.get('/staff/{staff_id}', response_model=StaffMetrics)
def get_staff_metrics(
    staff_id: UUID,
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return ProductivityTracker(db, get_policy()).get_staff_metrics(staff_id, build_period(start_date, end_date))


@router.get('/clinic', response_model=ClinicMetrics)
def get_clinic_metrics(start_date: date = Query(...), end_date: date = Query(...), db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return ProductivityTracker(db, get_policy()).get_clinic_metrics(build_period(start_date, end_date))


@router.get('/bottlenecks', response_model=list[Bottleneck])
def get_bottlenecks(start_date: date = Query(...), end_date: date = Query(...), db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return ProductivityTracker(db, get_policy()).identify_bottlenecks(build_period(start_date, end_date))


@router.get('/daily', response_model=DailySummary)
def get_daily_summary(on_date: date = Query(..., alias='date'), db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return ProductivityTracker(db, get_policy()).get_daily_summary(on_date)


@router.get('/report', response_model=ProductivityReport)
def get_productivity_report(start_date: date = Query(...), end_date: date = Query(...), db: Session = Depends(get_db)):
    ensure_database_ready()

    with service_errors(db):
        return ProductivityTracker(db, get_policy()).generate_productivity_report(build_period(start_date, end_date))
