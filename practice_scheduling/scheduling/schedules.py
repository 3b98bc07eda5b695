"""Schedule service: weekly working patterns and time-off requests."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from practice_scheduling.core.errors import NotFoundError, StateConflictError, StoreError, ValidationError
from practice_scheduling.models.availability import StaffSchedule, TimeOff
from practice_scheduling.models.enums import ApprovalStatus
from practice_scheduling.scheduling.repository import SchedulingRepository
from practice_scheduling.scheduling.schemas import ScheduleEntryRequest, TimeOffRequest, coerce_payload
from practice_scheduling.scheduling.timeutils import parse_date, parse_uuid

logger = logging.getLogger(__name__)


class ScheduleService:
    """Service layer for staff schedules and time off"""

    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.clock = clock or datetime.now
        self.repo = SchedulingRepository()

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Failed to save schedule changes')
            raise StoreError('Unable to save schedule changes right now.') from exc

    def _require_staff(self, staff_id):
        staff_id = parse_uuid(staff_id, 'staff_id')
        if self.repo.get_staff(self.db, staff_id) is None:
            raise NotFoundError('Staff', staff_id)
        return staff_id

    def list_schedule(self, staff_id, include_superseded: bool = False) -> list[StaffSchedule]:
        staff_id = self._require_staff(staff_id)
        return self.repo.list_schedules(self.db, staff_id, include_superseded=include_superseded)

    def _supersede(self, staff_id, entry: ScheduleEntryRequest, now: datetime) -> None:
        """Retire the rows a new pattern replaces for its weekday.

        Rows starting before the new effective date end the day before it;
        rows starting on or after it stop taking part in resolution.
        """
        cutoff = entry.effective_from
        for row in self.repo.schedules_for_day(self.db, staff_id, entry.day_of_week):
            if row.effective_from >= cutoff:
                row.superseded_at = now
            elif row.effective_until is None or row.effective_until >= cutoff:
                row.effective_until = cutoff - timedelta(days=1)

    def update_schedule(self, staff_id, entries) -> list[StaffSchedule]:
        """Replace the working pattern for each weekday named in ``entries``."""
        staff_id = self._require_staff(staff_id)
        if not isinstance(entries, list) or not entries:
            raise ValidationError('At least one schedule entry is required.', field='entries')

        entries = [coerce_payload(ScheduleEntryRequest, entry) for entry in entries]
        days = [entry.day_of_week for entry in entries]
        if len(set(days)) != len(days):
            raise ValidationError('Each weekday may appear only once per update.', field='entries')

        now = self.clock()
        created: list[StaffSchedule] = []
        try:
            for entry in entries:
                self._supersede(staff_id, entry, now)
                row = StaffSchedule(
                    staff_id=staff_id,
                    day_of_week=entry.day_of_week.value,
                    start_time=entry.start_time,
                    end_time=entry.end_time,
                    break_start=entry.break_start,
                    break_end=entry.break_end,
                    max_appointments_per_day=entry.max_appointments_per_day,
                    default_appointment_duration=entry.default_appointment_duration,
                    is_active=entry.is_active,
                    effective_from=entry.effective_from,
                    effective_until=entry.effective_until,
                    notes=entry.notes,
                )
                self.db.add(row)
                created.append(row)
            self.db.flush()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Failed to update schedule for staff %s', staff_id)
            raise StoreError('Unable to save schedule changes right now.') from exc

        self._commit()
        for row in created:
            self.db.refresh(row)

        logger.info('Updated %d schedule day(s) for staff %s', len(created), staff_id)
        return created

    def request_time_off(self, staff_id, request) -> TimeOff:
        staff_id = self._require_staff(staff_id)
        request = coerce_payload(TimeOffRequest, request)

        entry = TimeOff(
            staff_id=staff_id,
            start_date=request.start_date,
            end_date=request.end_date,
            start_time=None if request.all_day else request.start_time,
            end_time=None if request.all_day else request.end_time,
            all_day=request.all_day,
            reason=request.reason.value,
            approval_status=ApprovalStatus.PENDING.value,
            notes=request.notes,
        )
        self.db.add(entry)
        self._commit()
        self.db.refresh(entry)

        logger.info('Time off requested for staff %s: %s to %s', staff_id, request.start_date, request.end_date)
        return entry

    def _decide_time_off(self, time_off_id, approver_id, decision: ApprovalStatus) -> TimeOff:
        time_off_id = parse_uuid(time_off_id, 'time_off_id')
        approver_id = parse_uuid(approver_id, 'approver_id')

        entry = self.repo.get_time_off(self.db, time_off_id)
        if entry is None:
            raise NotFoundError('Time off', time_off_id)
        if entry.approval_status != ApprovalStatus.PENDING.value:
            raise StateConflictError(
                f'Time off is already {entry.approval_status}.',
                current_status=entry.approval_status,
                requested_status=decision.value,
            )

        entry.approval_status = decision.value
        entry.approved_by = approver_id
        entry.decided_at = self.clock()
        self._commit()
        self.db.refresh(entry)

        logger.info('Time off %s %s by %s', time_off_id, decision.value, approver_id)
        return entry

    def approve_time_off(self, time_off_id, approver_id) -> TimeOff:
        return self._decide_time_off(time_off_id, approver_id, ApprovalStatus.APPROVED)

    def reject_time_off(self, time_off_id, approver_id) -> TimeOff:
        return self._decide_time_off(time_off_id, approver_id, ApprovalStatus.REJECTED)

    def list_time_off(self, staff_id, start_date=None) -> list[TimeOff]:
        staff_id = self._require_staff(staff_id)
        if start_date is not None:
            start_date = parse_date(start_date, 'start_date')
        return self.repo.list_time_off(self.db, staff_id, start_date)
