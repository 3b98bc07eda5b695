"""Slot optimizer: ranks open slots across staff and dates for a booking request."""

import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from practice_scheduling.core.errors import NotFoundError, ValidationError
from practice_scheduling.models.appointment import AppointmentType
from practice_scheduling.models.staff import Staff
from practice_scheduling.scheduling.availability import AvailabilityEngine
from practice_scheduling.scheduling.capacity import CapacityManager
from practice_scheduling.scheduling.policy import SchedulingPolicy
from practice_scheduling.scheduling.repository import SchedulingRepository
from practice_scheduling.scheduling.schemas import AvailableSlot, BookingCriteria, TimeSlot
from practice_scheduling.scheduling.timeutils import from_minutes, to_minutes

logger = logging.getLogger(__name__)

BASE_SCORE = 50.0
PREFERRED_STAFF_BONUS = 20.0
UTILIZATION_WEIGHT = 0.3
PREFERRED_DATE_BONUS = 15.0
PREFERRED_TIME_BONUS = 15.0
PREFERRED_TIME_DECAY_MINUTES = 120
LOW_UTILIZATION_REASON_THRESHOLD = 75.0
SAME_DAY_ROUNDING_MINUTES = 15


class SlotOptimizer:
    """Searches a bounded window of dates and ranks every open slot"""

    def __init__(
        self,
        db: Session,
        policy: Optional[SchedulingPolicy] = None,
        availability: Optional[AvailabilityEngine] = None,
        capacity: Optional[CapacityManager] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.policy = policy or SchedulingPolicy()
        self.clock = clock or datetime.now
        self.availability = availability or AvailabilityEngine(db, self.policy)
        self.capacity = capacity or CapacityManager(db, self.policy, self.availability, self.clock)
        self.repo = SchedulingRepository()

    def candidate_staff(self, criteria: BookingCriteria, appointment_type: AppointmentType) -> list[Staff]:
        if criteria.preferred_staff_id is not None:
            staff = self.repo.get_staff(self.db, criteria.preferred_staff_id)
            if staff is None:
                raise NotFoundError('Staff', criteria.preferred_staff_id)
            return [staff] if staff.is_active else []

        return self.repo.list_active_staff(self.db, roles=list(appointment_type.required_roles or []))

    def search_dates(self, criteria: BookingCriteria, today: date) -> list[date]:
        start = criteria.preferred_date or today
        if start < today:
            start = today
        horizon = self.policy.search_horizon_days[criteria.urgency]
        return [start + timedelta(days=offset) for offset in range(horizon)]

    def anchor_slot(self, slot: AvailableSlot, preferred_time: Optional[time]) -> AvailableSlot:
        """Move the proposal to the preferred time when it fits inside the free window."""
        if preferred_time is None:
            return slot

        preferred = to_minutes(preferred_time)
        window_start = to_minutes(slot.window_start)
        window_end = to_minutes(slot.window_end)
        if not window_start <= preferred <= window_end - slot.duration_minutes:
            return slot

        return slot.model_copy(
            update={
                'start_time': from_minutes(preferred),
                'end_time': from_minutes(preferred + slot.duration_minutes),
            }
        )

    def skip_elapsed(self, slot: AvailableSlot, now: time) -> Optional[AvailableSlot]:
        """Push a same-day proposal past the current time, or drop it."""
        if slot.start_time > now:
            return slot

        current = to_minutes(now) + 1
        start = current + (-current % SAME_DAY_ROUNDING_MINUTES)
        if start + slot.duration_minutes > to_minutes(slot.window_end):
            return None

        return slot.model_copy(
            update={
                'start_time': from_minutes(start),
                'end_time': from_minutes(start + slot.duration_minutes),
            }
        )

    def score_slot(
        self,
        slot: AvailableSlot,
        staff: Staff,
        criteria: BookingCriteria,
        utilization_so_far: float,
        days_out: int,
    ) -> tuple[float, list[str]]:
        score = BASE_SCORE
        reasons: list[str] = []

        if criteria.preferred_staff_id is not None and staff.id == criteria.preferred_staff_id:
            score += PREFERRED_STAFF_BONUS
            reasons.append('Your preferred provider')

        # Favor filling staff with spare capacity first.
        score += max(0.0, 100.0 - utilization_so_far) * UTILIZATION_WEIGHT
        if utilization_so_far < LOW_UTILIZATION_REASON_THRESHOLD:
            reasons.append(
                f"Helps improve {staff.full_name}'s utilization (currently {utilization_so_far:.0f}%)"
            )

        if criteria.preferred_date is not None:
            distance = abs((slot.date - criteria.preferred_date).days)
            score += PREFERRED_DATE_BONUS / (1 + distance)
            if distance == 0:
                reasons.append('On your preferred date')

        if criteria.preferred_time is not None:
            distance = abs(to_minutes(slot.start_time) - to_minutes(criteria.preferred_time))
            score += PREFERRED_TIME_BONUS * max(0.0, 1 - distance / PREFERRED_TIME_DECAY_MINUTES)
            if distance == 0:
                reasons.append('At your preferred time')

        score -= days_out * self.policy.distance_penalty_per_day[criteria.urgency]

        reasons.append('Available slot')
        return round(score, 4), reasons

    def find_optimal_slot(self, criteria: BookingCriteria) -> list[TimeSlot]:
        """Ranked candidate slots; advisory only, booking re-validates"""
        if self.repo.get_patient(self.db, criteria.patient_id) is None:
            raise NotFoundError('Patient', criteria.patient_id)

        appointment_type = self.repo.get_appointment_type(self.db, criteria.appointment_type_id)
        if appointment_type is None:
            raise NotFoundError('Appointment type', criteria.appointment_type_id)
        if not appointment_type.is_active:
            raise ValidationError('Appointment type is no longer offered.', field='appointment_type_id')

        duration = criteria.duration_minutes or appointment_type.default_duration
        now = self.clock()
        today = now.date()
        search_dates = self.search_dates(criteria, today)
        search_start = search_dates[0]

        candidates: list[TimeSlot] = []
        for staff in self.candidate_staff(criteria, appointment_type):
            for on_date in search_dates:
                slots = self.availability.compute_availability(staff.id, on_date, duration)
                if not slots:
                    continue

                utilization_so_far = self.capacity.snapshot(staff.id, on_date).utilization_percentage
                days_out = (on_date - search_start).days

                for slot in slots:
                    slot = self.anchor_slot(slot, criteria.preferred_time)
                    if on_date == today:
                        slot = self.skip_elapsed(slot, now.time())
                        if slot is None:
                            continue

                    score, reasons = self.score_slot(slot, staff, criteria, utilization_so_far, days_out)
                    candidates.append(
                        TimeSlot(
                            staff_id=staff.id,
                            staff_name=staff.full_name,
                            staff_role=staff.role,
                            date=slot.date,
                            start_time=slot.start_time,
                            end_time=slot.end_time,
                            duration_minutes=duration,
                            score=score,
                            reasons=reasons,
                        )
                    )

        candidates.sort(key=lambda item: (-item.score, item.date, item.start_time, str(item.staff_id)))
        logger.info(
            'Ranked %d candidate slots for patient %s (%s urgency)',
            len(candidates),
            criteria.patient_id,
            criteria.urgency.value,
        )
        return candidates[: self.policy.max_slot_results]
