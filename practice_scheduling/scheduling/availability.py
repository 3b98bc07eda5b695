"""Availability engine: open time windows for one staff member on one date."""

import logging
from datetime import date, time
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from practice_scheduling.core.errors import NotFoundError
from practice_scheduling.models.appointment import Appointment
from practice_scheduling.models.availability import StaffSchedule, TimeOff
from practice_scheduling.models.enums import ApprovalStatus
from practice_scheduling.scheduling.policy import SchedulingPolicy
from practice_scheduling.scheduling.repository import SchedulingRepository
from practice_scheduling.scheduling.schemas import AvailableSlot
from practice_scheduling.scheduling.timeutils import (
    Interval,
    contains,
    from_minutes,
    parse_date,
    parse_uuid,
    require_positive_duration,
    subtract_interval,
    subtract_intervals,
    to_minutes,
)

logger = logging.getLogger(__name__)


def schedule_intervals(schedule: StaffSchedule) -> list[Interval]:
    """Working hours of a schedule row with its break removed."""
    intervals = [(to_minutes(schedule.start_time), to_minutes(schedule.end_time))]
    if schedule.break_start is not None and schedule.break_end is not None:
        intervals = subtract_interval(intervals, (to_minutes(schedule.break_start), to_minutes(schedule.break_end)))
    return intervals


def time_off_interval(entry: TimeOff) -> Optional[Interval]:
    """The part of the day an entry blocks, or None for the whole day."""
    if entry.all_day or entry.start_time is None or entry.end_time is None:
        return None
    return to_minutes(entry.start_time), to_minutes(entry.end_time)


class AvailabilityEngine:
    """Computes open intervals from schedules, time-off and bookings. Read-only."""

    def __init__(self, db: Session, policy: Optional[SchedulingPolicy] = None):
        self.db = db
        self.policy = policy or SchedulingPolicy()
        self.repo = SchedulingRepository()

    def blocking_time_off_statuses(self) -> list[str]:
        statuses = [ApprovalStatus.APPROVED.value]
        if self.policy.pending_time_off_blocks:
            statuses.append(ApprovalStatus.PENDING.value)
        return statuses

    def require_staff(self, staff_id) -> UUID:
        staff_id = parse_uuid(staff_id, 'staff_id')
        if self.repo.get_staff(self.db, staff_id) is None:
            raise NotFoundError('Staff', staff_id)
        return staff_id

    def resolve_schedule(self, staff_id: UUID, on_date: date) -> Optional[StaffSchedule]:
        schedule = self.repo.resolve_schedule(self.db, staff_id, on_date)
        if schedule is None or not schedule.is_active:
            return None
        return schedule

    def working_intervals(self, staff_id: UUID, on_date: date) -> list[Interval]:
        """Scheduled hours minus the break and blocking time-off."""
        schedule = self.resolve_schedule(staff_id, on_date)
        if schedule is None:
            return []

        intervals = schedule_intervals(schedule)
        for entry in self.repo.time_off_for_date(self.db, staff_id, on_date, self.blocking_time_off_statuses()):
            blocked = time_off_interval(entry)
            if blocked is None:
                return []
            intervals = subtract_interval(intervals, blocked)

        return sorted(intervals)

    def booked_appointments(
        self,
        staff_id: UUID,
        on_date: date,
        exclude_appointment_id: Optional[UUID] = None,
    ) -> list[Appointment]:
        return [
            appointment
            for appointment in self.repo.appointments_for_date(self.db, staff_id, on_date)
            if appointment.id != exclude_appointment_id
        ]

    def daily_limit_reached(
        self,
        staff_id: UUID,
        on_date: date,
        exclude_appointment_id: Optional[UUID] = None,
        booked: Optional[list[Appointment]] = None,
    ) -> bool:
        schedule = self.resolve_schedule(staff_id, on_date)
        if schedule is None or schedule.max_appointments_per_day is None:
            return False
        if booked is None:
            booked = self.booked_appointments(staff_id, on_date, exclude_appointment_id)
        return len(booked) >= schedule.max_appointments_per_day

    def free_intervals(
        self,
        staff_id: UUID,
        on_date: date,
        exclude_appointment_id: Optional[UUID] = None,
    ) -> list[Interval]:
        """Working intervals minus active bookings; empty once the daily limit is reached."""
        working = self.working_intervals(staff_id, on_date)
        if not working:
            return []

        booked = self.booked_appointments(staff_id, on_date, exclude_appointment_id)
        if self.daily_limit_reached(staff_id, on_date, booked=booked):
            return []

        return subtract_intervals(
            working,
            [(to_minutes(appointment.start_time), to_minutes(appointment.end_time)) for appointment in booked],
        )

    def is_interval_free(
        self,
        staff_id: UUID,
        on_date: date,
        start_time: time,
        end_time: time,
        exclude_appointment_id: Optional[UUID] = None,
    ) -> bool:
        requested = (to_minutes(start_time), to_minutes(end_time))
        return any(
            contains(window, requested)
            for window in self.free_intervals(staff_id, on_date, exclude_appointment_id)
        )

    def compute_availability(self, staff_id, on_date, duration_minutes: int) -> list[AvailableSlot]:
        """One slot per free window long enough for the duration, anchored at the window start."""
        duration_minutes = require_positive_duration(duration_minutes)
        on_date = parse_date(on_date, 'date')
        staff_id = self.require_staff(staff_id)

        slots = [
            AvailableSlot(
                staff_id=staff_id,
                date=on_date,
                start_time=from_minutes(window_start),
                end_time=from_minutes(window_start + duration_minutes),
                duration_minutes=duration_minutes,
                window_start=from_minutes(window_start),
                window_end=from_minutes(window_end),
            )
            for window_start, window_end in self.free_intervals(staff_id, on_date)
            if window_end - window_start >= duration_minutes
        ]
        logger.debug('Staff %s has %d open windows on %s', staff_id, len(slots), on_date)
        return slots
