"""Scheduling repository - database operations for schedules and appointments"""

from datetime import date, time
from typing import Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from practice_scheduling.models.appointment import Appointment, AppointmentType
from practice_scheduling.models.availability import StaffSchedule, TimeOff
from practice_scheduling.models.enums import INACTIVE_STATUSES, DayOfWeek
from practice_scheduling.models.patient import Patient
from practice_scheduling.models.staff import Staff


class SchedulingRepository:
    """Repository for scheduling database operations"""

    @staticmethod
    def get_staff(db: Session, staff_id: UUID) -> Optional[Staff]:
        return db.query(Staff).filter(Staff.id == staff_id).first()

    @staticmethod
    def list_active_staff(db: Session, roles: Optional[list[str]] = None) -> list[Staff]:
        """Active staff, optionally restricted to the given roles"""
        query = db.query(Staff).filter(Staff.is_active.is_(True))
        if roles:
            query = query.filter(Staff.role.in_(roles))
        return query.order_by(Staff.id.asc()).all()

    @staticmethod
    def lock_staff(db: Session, staff_id: UUID) -> bool:
        """Take the per-staff booking lock for the current transaction.

        Returns False when the staff member does not exist.
        """
        updated = (
            db.query(Staff)
            .filter(Staff.id == staff_id)
            .update({Staff.booking_version: Staff.booking_version + 1}, synchronize_session=False)
        )
        return updated > 0

    @staticmethod
    def get_patient(db: Session, patient_id: UUID) -> Optional[Patient]:
        return db.query(Patient).filter(Patient.id == patient_id).first()

    @staticmethod
    def get_appointment_type(db: Session, appointment_type_id: UUID) -> Optional[AppointmentType]:
        return db.query(AppointmentType).filter(AppointmentType.id == appointment_type_id).first()

    @staticmethod
    def get_appointment(db: Session, appointment_id: UUID) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def list_schedules(db: Session, staff_id: UUID, include_superseded: bool = False) -> list[StaffSchedule]:
        query = db.query(StaffSchedule).filter(StaffSchedule.staff_id == staff_id)
        if not include_superseded:
            query = query.filter(StaffSchedule.superseded_at.is_(None))
        return query.order_by(StaffSchedule.day_of_week.asc(), StaffSchedule.effective_from.asc()).all()

    @staticmethod
    def schedules_for_day(db: Session, staff_id: UUID, day_of_week: DayOfWeek) -> list[StaffSchedule]:
        return (
            db.query(StaffSchedule)
            .filter(
                StaffSchedule.staff_id == staff_id,
                StaffSchedule.day_of_week == day_of_week.value,
                StaffSchedule.superseded_at.is_(None),
            )
            .order_by(StaffSchedule.effective_from.asc())
            .all()
        )

    @staticmethod
    def resolve_schedule(db: Session, staff_id: UUID, on_date: date) -> Optional[StaffSchedule]:
        """The schedule row in effect for the staff member on a date"""
        return (
            db.query(StaffSchedule)
            .filter(
                StaffSchedule.staff_id == staff_id,
                StaffSchedule.day_of_week == DayOfWeek.from_date(on_date).value,
                StaffSchedule.superseded_at.is_(None),
                StaffSchedule.effective_from <= on_date,
                or_(StaffSchedule.effective_until.is_(None), StaffSchedule.effective_until >= on_date),
            )
            .order_by(StaffSchedule.effective_from.desc(), StaffSchedule.created_at.desc())
            .first()
        )

    @staticmethod
    def get_time_off(db: Session, time_off_id: UUID) -> Optional[TimeOff]:
        return db.query(TimeOff).filter(TimeOff.id == time_off_id).first()

    @staticmethod
    def time_off_for_date(db: Session, staff_id: UUID, on_date: date, statuses: list[str]) -> list[TimeOff]:
        return (
            db.query(TimeOff)
            .filter(
                TimeOff.staff_id == staff_id,
                TimeOff.start_date <= on_date,
                TimeOff.end_date >= on_date,
                TimeOff.approval_status.in_(statuses),
            )
            .all()
        )

    @staticmethod
    def list_time_off(db: Session, staff_id: UUID, start_date: Optional[date] = None) -> list[TimeOff]:
        query = db.query(TimeOff).filter(TimeOff.staff_id == staff_id)
        if start_date:
            query = query.filter(TimeOff.end_date >= start_date)
        return query.order_by(TimeOff.start_date.asc()).all()

    @staticmethod
    def appointments_for_date(
        db: Session,
        staff_id: UUID,
        on_date: date,
        active_only: bool = True,
    ) -> list[Appointment]:
        query = db.query(Appointment).filter(
            Appointment.staff_id == staff_id,
            Appointment.appointment_date == on_date,
        )
        if active_only:
            query = query.filter(Appointment.status.notin_(INACTIVE_STATUSES))
        return query.order_by(Appointment.start_time.asc()).all()

    @staticmethod
    def appointments_in_period(
        db: Session,
        start_date: date,
        end_date: date,
        staff_id: Optional[UUID] = None,
    ) -> list[Appointment]:
        query = db.query(Appointment).filter(
            Appointment.appointment_date >= start_date,
            Appointment.appointment_date <= end_date,
        )
        if staff_id is not None:
            query = query.filter(Appointment.staff_id == staff_id)
        return query.order_by(Appointment.appointment_date.asc(), Appointment.start_time.asc()).all()

    @staticmethod
    def find_overlapping_appointment(
        db: Session,
        staff_id: UUID,
        on_date: date,
        start_time: time,
        end_time: time,
        exclude_appointment_id: Optional[UUID] = None,
    ) -> Optional[Appointment]:
        query = db.query(Appointment).filter(
            Appointment.staff_id == staff_id,
            Appointment.appointment_date == on_date,
            Appointment.status.notin_(INACTIVE_STATUSES),
            Appointment.start_time < end_time,
            Appointment.end_time > start_time,
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return query.first()

    @staticmethod
    def transition_status(db: Session, appointment_id: UUID, expected_status: str, **values) -> bool:
        """Conditionally move an appointment out of ``expected_status``.

        Returns False when another writer changed the status first.
        """
        updated = (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id, Appointment.status == expected_status)
            .update(values, synchronize_session=False)
        )
        return updated > 0

    @staticmethod
    def update_appointment(db: Session, appointment_id: UUID, **values) -> None:
        db.query(Appointment).filter(Appointment.id == appointment_id).update(values, synchronize_session=False)
