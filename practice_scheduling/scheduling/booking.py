"""Booking service: appointment creation, rescheduling and status transitions."""

import logging
import secrets
import string
from contextlib import contextmanager
from datetime import date, datetime, time
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from practice_scheduling.core.errors import (
    BookingConflictError,
    NotFoundError,
    SchedulingError,
    SlotUnavailableError,
    StateConflictError,
    StoreError,
    ValidationError,
)
from practice_scheduling.models.appointment import Appointment
from practice_scheduling.models.enums import AppointmentStatus, ConfirmationSource
from practice_scheduling.scheduling.availability import AvailabilityEngine
from practice_scheduling.scheduling.capacity import CapacityManager
from practice_scheduling.scheduling.optimizer import SlotOptimizer
from practice_scheduling.scheduling.policy import SchedulingPolicy
from practice_scheduling.scheduling.repository import SchedulingRepository
from practice_scheduling.scheduling.schemas import (
    AvailableSlot,
    BookingCriteria,
    BookingRequest,
    RescheduleRequest,
    TimeSlot,
    coerce_payload,
    normalize_notes,
)
from practice_scheduling.scheduling.timeutils import contains, from_minutes, parse_date, parse_uuid, to_minutes

logger = logging.getLogger(__name__)

APPOINTMENT_NUMBER_ALPHABET = string.ascii_uppercase + string.digits

ALLOWED_TRANSITIONS = {
    AppointmentStatus.REQUESTED: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.RESCHEDULED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.CHECKED_IN,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.RESCHEDULED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.CHECKED_IN: {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    },
}


def generate_appointment_number(on_date: date) -> str:
    suffix = ''.join(secrets.choice(APPOINTMENT_NUMBER_ALPHABET) for _ in range(6))
    return f'APT{on_date:%y%m}{suffix}'


def check_transition(current_status: str, requested: AppointmentStatus) -> None:
    allowed = ALLOWED_TRANSITIONS.get(AppointmentStatus(current_status), set())
    if requested not in allowed:
        raise StateConflictError(
            f'Cannot move appointment from {current_status} to {requested.value}.',
            current_status=current_status,
            requested_status=requested.value,
        )


class BookingService:
    """Service layer for booking and managing appointments.

    Every mutation runs in one transaction on the injected session. Inserts
    and reschedules first bump the staff member's ``booking_version`` row so
    concurrent writers for the same staff are serialized before the overlap
    check; status changes are conditional updates on the expected status.
    """

    def __init__(
        self,
        db: Session,
        policy: Optional[SchedulingPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.policy = policy or SchedulingPolicy()
        self.clock = clock or datetime.now
        self.repo = SchedulingRepository()
        self.availability = AvailabilityEngine(db, self.policy)
        self.capacity = CapacityManager(db, self.policy, self.availability, self.clock)
        self.optimizer = SlotOptimizer(db, self.policy, self.availability, self.capacity, self.clock)

    @contextmanager
    def _transaction(self):
        try:
            yield
            self.db.commit()
        except SchedulingError:
            self.db.rollback()
            raise
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning('Booking rejected by store constraint: %s', exc.orig)
            raise BookingConflictError('Time slot was just booked by another request.') from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Scheduling store failure')
            raise StoreError('Unable to save the appointment right now.') from exc

    # Reads

    def check_availability(self, staff_id, on_date, duration_minutes: Optional[int] = None) -> list[AvailableSlot]:
        if duration_minutes is None:
            duration_minutes = self.policy.default_duration_minutes
        return self.availability.compute_availability(staff_id, on_date, duration_minutes)

    def find_optimal_slot(self, criteria) -> list[TimeSlot]:
        return self.optimizer.find_optimal_slot(coerce_payload(BookingCriteria, criteria))

    def get_appointment(self, appointment_id) -> Appointment:
        appointment_id = parse_uuid(appointment_id, 'appointment_id')
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if appointment is None:
            raise NotFoundError('Appointment', appointment_id)
        return appointment

    # Booking

    def _require_bookable_staff(self, staff_id: UUID):
        staff = self.repo.get_staff(self.db, staff_id)
        if staff is None:
            raise NotFoundError('Staff', staff_id)
        if not staff.is_active:
            raise ValidationError('Staff member is not accepting appointments.', field='staff_id')
        return staff

    def _ensure_slot_bookable(
        self,
        staff_id: UUID,
        on_date: date,
        start_time: time,
        end_time: time,
        override_schedule: bool = False,
        exclude_appointment_id: Optional[UUID] = None,
    ) -> None:
        """Run inside the booking transaction, after the staff lock is held."""
        slot = {
            'staff_id': str(staff_id),
            'date': on_date.isoformat(),
            'start_time': start_time.isoformat(),
            'end_time': end_time.isoformat(),
        }

        conflict = self.repo.find_overlapping_appointment(
            self.db, staff_id, on_date, start_time, end_time, exclude_appointment_id
        )
        if conflict is not None:
            logger.warning('Booking conflict for staff %s on %s at %s', staff_id, on_date, start_time)
            raise BookingConflictError('Time slot is already booked.', slot)

        if override_schedule:
            return

        requested = (to_minutes(start_time), to_minutes(end_time))
        if not any(contains(window, requested) for window in self.availability.working_intervals(staff_id, on_date)):
            raise SlotUnavailableError("Requested time is outside the staff member's working hours.", slot)

        if self.availability.daily_limit_reached(staff_id, on_date, exclude_appointment_id):
            raise SlotUnavailableError('Daily appointment limit reached for this staff member.', slot)

    def _lock_staff(self, staff_id: UUID) -> None:
        if not self.repo.lock_staff(self.db, staff_id):
            raise NotFoundError('Staff', staff_id)

    @staticmethod
    def _resolve_end(start_time: time, end_time: Optional[time], duration_minutes: int) -> tuple[time, int]:
        if end_time is not None:
            return end_time, to_minutes(end_time) - to_minutes(start_time)
        return from_minutes(to_minutes(start_time) + duration_minutes), duration_minutes

    def create_booking(self, request, booked_by) -> Appointment:
        request = coerce_payload(BookingRequest, request)
        booked_by = parse_uuid(booked_by, 'booked_by')

        if self.repo.get_patient(self.db, request.patient_id) is None:
            raise NotFoundError('Patient', request.patient_id)

        appointment_type = self.repo.get_appointment_type(self.db, request.appointment_type_id)
        if appointment_type is None:
            raise NotFoundError('Appointment type', request.appointment_type_id)
        if not appointment_type.is_active:
            raise ValidationError('Appointment type is no longer offered.', field='appointment_type_id')

        self._require_bookable_staff(request.staff_id)

        end_time, duration = self._resolve_end(
            request.start_time,
            request.end_time,
            request.duration_minutes or appointment_type.default_duration,
        )

        appointment = Appointment(
            appointment_number=generate_appointment_number(request.appointment_date),
            patient_id=request.patient_id,
            staff_id=request.staff_id,
            appointment_type_id=appointment_type.id,
            appointment_date=request.appointment_date,
            start_time=request.start_time,
            end_time=end_time,
            duration_minutes=duration,
            status=AppointmentStatus.REQUESTED.value,
            priority=request.priority.value,
            booked_by=booked_by,
            reason_for_visit=request.reason_for_visit,
            special_instructions=request.special_instructions,
            related_record_kind=request.related_record.kind.value if request.related_record else None,
            related_record_id=request.related_record.record_id if request.related_record else None,
            expected_revenue=float(appointment_type.expected_revenue or 0),
        )

        with self._transaction():
            self._lock_staff(request.staff_id)
            self._ensure_slot_bookable(
                request.staff_id,
                request.appointment_date,
                request.start_time,
                end_time,
                override_schedule=request.override_schedule,
            )
            self.db.add(appointment)
            self.db.flush()

        logger.info(
            'Booked appointment %s for staff %s on %s %s-%s',
            appointment.appointment_number,
            request.staff_id,
            request.appointment_date,
            request.start_time,
            end_time,
        )
        self.db.refresh(appointment)
        return appointment

    # Transitions

    def _transition(self, appointment_id, requested: AppointmentStatus, guard=None, **values) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        current_status = appointment.status
        check_transition(current_status, requested)
        if guard is not None:
            guard(appointment)

        with self._transaction():
            if not self.repo.transition_status(
                self.db, appointment.id, current_status, status=requested.value, **values
            ):
                raise StateConflictError(
                    'Appointment status changed while the request was processed.',
                    current_status=current_status,
                    requested_status=requested.value,
                )

        logger.info('Appointment %s moved from %s to %s', appointment.id, current_status, requested.value)
        self.db.refresh(appointment)
        return appointment

    def confirm_appointment(self, appointment_id, confirmed_by, actor_id) -> Appointment:
        try:
            source = ConfirmationSource(confirmed_by)
        except ValueError as exc:
            raise ValidationError(
                'confirmed_by must be one of patient, staff, automated.', field='confirmed_by'
            ) from exc

        return self._transition(
            appointment_id,
            AppointmentStatus.CONFIRMED,
            confirmation_source=source.value,
            confirmed_by=parse_uuid(actor_id, 'actor_id'),
            confirmed_at=self.clock(),
        )

    def check_in_patient(self, appointment_id, actor_id, on_date=None) -> Appointment:
        actor_id = parse_uuid(actor_id, 'actor_id')
        on_date = parse_date(on_date, 'date') if on_date is not None else self.clock().date()

        def same_day(appointment: Appointment) -> None:
            if appointment.appointment_date != on_date:
                raise StateConflictError(
                    f'Check-in date mismatch: appointment is on {appointment.appointment_date.isoformat()}.',
                    current_status=appointment.status,
                    requested_status=AppointmentStatus.CHECKED_IN.value,
                )

        return self._transition(
            appointment_id,
            AppointmentStatus.CHECKED_IN,
            guard=same_day,
            checked_in_by=actor_id,
            checked_in_at=self.clock(),
        )

    def complete_appointment(self, appointment_id, actor_id, actual_revenue=None, notes: Optional[str] = None) -> Appointment:
        actor_id = parse_uuid(actor_id, 'actor_id')
        if actual_revenue is not None:
            if isinstance(actual_revenue, bool) or not isinstance(actual_revenue, (int, float)) or actual_revenue < 0:
                raise ValidationError('actual_revenue must be a non-negative amount.', field='actual_revenue')
            actual_revenue = float(actual_revenue)

        try:
            notes = normalize_notes(notes)
        except ValueError as exc:
            raise ValidationError(str(exc), field='notes') from exc

        values = {'completed_by': actor_id, 'completed_at': self.clock(), 'actual_revenue': actual_revenue}
        if notes is not None:
            values['notes'] = notes
        return self._transition(appointment_id, AppointmentStatus.COMPLETED, **values)

    def cancel_appointment(self, appointment_id, actor_id, reason: str) -> Appointment:
        actor_id = parse_uuid(actor_id, 'actor_id')
        try:
            reason = normalize_notes(reason)
        except ValueError as exc:
            raise ValidationError(str(exc), field='reason') from exc
        if reason is None:
            raise ValidationError('A cancellation reason is required.', field='reason')

        return self._transition(
            appointment_id,
            AppointmentStatus.CANCELLED,
            cancelled_by=actor_id,
            cancelled_at=self.clock(),
            cancellation_reason=reason,
        )

    def mark_no_show(self, appointment_id, actor_id, reason: Optional[str] = None) -> Appointment:
        actor_id = parse_uuid(actor_id, 'actor_id')
        try:
            reason = normalize_notes(reason)
        except ValueError as exc:
            raise ValidationError(str(exc), field='reason') from exc

        return self._transition(
            appointment_id,
            AppointmentStatus.NO_SHOW,
            no_show_by=actor_id,
            no_show_at=self.clock(),
            no_show_reason=reason,
        )

    def reschedule_appointment(self, appointment_id, request, actor_id) -> Appointment:
        """Move an appointment to a new slot; returns the replacement.

        The original is marked rescheduled and linked to a new appointment in
        the original's status. Both writes commit together or not at all.
        """
        request = coerce_payload(RescheduleRequest, request)
        actor_id = parse_uuid(actor_id, 'actor_id')

        original = self.get_appointment(appointment_id)
        current_status = original.status
        check_transition(current_status, AppointmentStatus.RESCHEDULED)

        staff_id = request.new_staff_id or original.staff_id
        self._require_bookable_staff(staff_id)
        end_time, duration = self._resolve_end(request.new_start_time, request.new_end_time, original.duration_minutes)

        replacement = Appointment(
            appointment_number=generate_appointment_number(request.new_date),
            patient_id=original.patient_id,
            staff_id=staff_id,
            appointment_type_id=original.appointment_type_id,
            appointment_date=request.new_date,
            start_time=request.new_start_time,
            end_time=end_time,
            duration_minutes=duration,
            status=current_status,
            priority=original.priority,
            booked_by=actor_id,
            confirmation_source=original.confirmation_source,
            confirmed_by=original.confirmed_by,
            confirmed_at=original.confirmed_at,
            rescheduled_from_id=original.id,
            related_record_kind=original.related_record_kind,
            related_record_id=original.related_record_id,
            reason_for_visit=original.reason_for_visit,
            special_instructions=original.special_instructions,
            notes=request.reason,
            expected_revenue=original.expected_revenue,
        )

        with self._transaction():
            self._lock_staff(staff_id)
            # Release the old slot first so a same-staff move may overlap it.
            if not self.repo.transition_status(
                self.db, original.id, current_status, status=AppointmentStatus.RESCHEDULED.value
            ):
                raise StateConflictError(
                    'Appointment status changed while the request was processed.',
                    current_status=current_status,
                    requested_status=AppointmentStatus.RESCHEDULED.value,
                )
            self._ensure_slot_bookable(
                staff_id,
                request.new_date,
                request.new_start_time,
                end_time,
                exclude_appointment_id=original.id,
            )
            self.db.add(replacement)
            self.db.flush()
            self.repo.update_appointment(self.db, original.id, rescheduled_to_id=replacement.id)

        logger.info(
            'Rescheduled appointment %s to %s (staff %s, %s %s)',
            original.id,
            replacement.id,
            staff_id,
            request.new_date,
            request.new_start_time,
        )
        self.db.refresh(replacement)
        return replacement
