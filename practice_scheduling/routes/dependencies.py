from contextlib import contextmanager

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from practice_scheduling.core.errors import (
    BookingConflictError,
    NotFoundError,
    SchedulingError,
    SlotUnavailableError,
    StateConflictError,
    StoreError,
    ValidationError,
)
from practice_scheduling.database import SessionLocal, ensure_appointment_schema, ensure_schedule_schema
from practice_scheduling.scheduling.policy import SchedulingPolicy

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_policy() -> SchedulingPolicy:
    return SchedulingPolicy.from_config()


def ensure_database_ready() -> None:
    try:
        ensure_schedule_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def to_http_exception(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=422,
            detail={'message': exc.message, 'errors': exc.errors},
        )

    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)

    if isinstance(exc, StateConflictError):
        detail = {
            'message': exc.message,
            'current_status': exc.current_status,
            'requested_status': exc.requested_status,
        }
        if isinstance(exc, (BookingConflictError, SlotUnavailableError)):
            detail['slot'] = exc.slot
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)

    if isinstance(exc, StoreError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=DATABASE_UNAVAILABLE_DETAIL)

    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)


@contextmanager
def service_errors(db=None):
    """Translate service failures raised inside the block into HTTP errors."""
    try:
        yield
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        if db is not None:
            db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
