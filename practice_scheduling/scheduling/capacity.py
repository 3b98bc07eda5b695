"""Capacity manager: per-staff utilization, clinic roll-ups and forecasts."""

import logging
import math
from datetime import date, datetime, timedelta
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from practice_scheduling.core.errors import ValidationError
from practice_scheduling.models.appointment import Appointment
from practice_scheduling.models.enums import INACTIVE_STATUSES, AppointmentStatus
from practice_scheduling.scheduling.availability import AvailabilityEngine
from practice_scheduling.scheduling.policy import SchedulingPolicy
from practice_scheduling.scheduling.repository import SchedulingRepository
from practice_scheduling.scheduling.schemas import (
    CapacityAlert,
    CapacityForecast,
    CapacitySnapshot,
    ClinicCapacity,
    ForecastDay,
    ScheduleOptimization,
    ScheduleSuggestion,
    UnderutilizedStaff,
)
from practice_scheduling.scheduling.timeutils import daterange, parse_date, parse_uuid, to_minutes, total_minutes

logger = logging.getLogger(__name__)

MAX_FORECAST_DAYS = 366
SEVERITY_ORDER = {'high': 3, 'medium': 2, 'low': 1}


def appointment_minutes(appointment: Appointment) -> int:
    return to_minutes(appointment.end_time) - to_minutes(appointment.start_time)


def is_active(appointment: Appointment) -> bool:
    return appointment.status not in INACTIVE_STATUSES


def utilization(booked_minutes: int, available_minutes: int) -> float:
    if available_minutes <= 0:
        return 0.0
    return booked_minutes / available_minutes * 100


class RevenueCalculator:
    """Expected and realized revenue for appointments, per policy."""

    def __init__(self, db: Session, policy: SchedulingPolicy):
        self.db = db
        self.policy = policy
        self.repo = SchedulingRepository()
        self._type_revenue: dict[UUID, float] = {}

    def expected(self, appointment: Appointment) -> float:
        if appointment.expected_revenue is not None:
            return float(appointment.expected_revenue)

        type_id = appointment.appointment_type_id
        if type_id not in self._type_revenue:
            appointment_type = self.repo.get_appointment_type(self.db, type_id)
            self._type_revenue[type_id] = float(appointment_type.expected_revenue or 0) if appointment_type else 0.0
        return self._type_revenue[type_id]

    def realized(self, appointment: Appointment) -> float:
        """Revenue credited for a completed appointment."""
        if appointment.status != AppointmentStatus.COMPLETED.value:
            return 0.0
        if appointment.actual_revenue is not None:
            return float(appointment.actual_revenue)
        if self.policy.revenue_falls_back_to_expected:
            return self.expected(appointment)
        return 0.0


class CapacityManager:
    """Service layer for staff capacity calculations"""

    def __init__(
        self,
        db: Session,
        policy: Optional[SchedulingPolicy] = None,
        availability: Optional[AvailabilityEngine] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.policy = policy or SchedulingPolicy()
        self.availability = availability or AvailabilityEngine(db, self.policy)
        self.repo = SchedulingRepository()
        self.revenue = RevenueCalculator(db, self.policy)
        self.clock = clock or datetime.now

    def snapshot(self, staff_id: UUID, on_date: date) -> CapacitySnapshot:
        """Capacity for an already-validated staff id and date"""
        available_minutes = total_minutes(self.availability.working_intervals(staff_id, on_date))
        appointments = self.repo.appointments_for_date(self.db, staff_id, on_date, active_only=False)
        active = [appointment for appointment in appointments if is_active(appointment)]
        completed = [appointment for appointment in appointments if appointment.status == AppointmentStatus.COMPLETED.value]

        booked_minutes = sum(appointment_minutes(appointment) for appointment in active)

        return CapacitySnapshot(
            staff_id=staff_id,
            date=on_date,
            is_scheduled=available_minutes > 0,
            available_minutes=available_minutes,
            booked_minutes=booked_minutes,
            completed_minutes=sum(appointment_minutes(appointment) for appointment in completed),
            appointments_scheduled=len(active),
            appointments_completed=len(completed),
            appointments_cancelled=sum(
                1 for appointment in appointments if appointment.status == AppointmentStatus.CANCELLED.value
            ),
            no_shows=sum(1 for appointment in appointments if appointment.status == AppointmentStatus.NO_SHOW.value),
            utilization_percentage=utilization(booked_minutes, available_minutes),
            revenue_expected=sum(self.revenue.expected(appointment) for appointment in active),
            revenue_actual=sum(self.revenue.realized(appointment) for appointment in completed),
        )

    def get_capacity_for_date(self, staff_id, on_date) -> CapacitySnapshot:
        on_date = parse_date(on_date, 'date')
        staff_id = self.availability.require_staff(staff_id)
        return self.snapshot(staff_id, on_date)

    def get_capacity_range(self, staff_ids, start_date, end_date) -> list[CapacitySnapshot]:
        """One record per (staff, date) across the inclusive range"""
        start_date = parse_date(start_date, 'start_date')
        end_date = parse_date(end_date, 'end_date')
        if start_date > end_date:
            raise ValidationError('start_date must not be after end_date.', field='start_date')

        validated_ids = [self.availability.require_staff(staff_id) for staff_id in staff_ids]

        return [
            self.snapshot(staff_id, on_date)
            for on_date in daterange(start_date, end_date)
            for staff_id in validated_ids
        ]

    def get_underutilized_staff(self, on_date, threshold: Optional[float] = None) -> list[UnderutilizedStaff]:
        """Scheduled staff below the utilization threshold; staff who are off are excluded"""
        on_date = parse_date(on_date, 'date')
        if threshold is None:
            threshold = self.policy.underutilization_threshold

        underutilized: list[UnderutilizedStaff] = []
        for staff in self.repo.list_active_staff(self.db):
            capacity = self.snapshot(staff.id, on_date)
            if capacity.available_minutes <= 0 or capacity.utilization_percentage >= threshold:
                continue

            unbooked = max(0, capacity.available_minutes - capacity.booked_minutes)
            underutilized.append(
                UnderutilizedStaff(
                    staff_id=staff.id,
                    staff_name=staff.full_name,
                    role=staff.role,
                    utilization_percentage=capacity.utilization_percentage,
                    available_minutes=unbooked,
                    revenue_potential=unbooked * self.policy.average_revenue_per_minute,
                )
            )

        return sorted(
            underutilized,
            key=lambda item: (item.utilization_percentage, -item.revenue_potential, str(item.staff_id)),
        )

    def _history_dates(self, target: date, today: date) -> list[date]:
        history: list[date] = []
        weeks_back = 1
        while len(history) < self.policy.forecast_lookback_weeks:
            candidate = target - timedelta(weeks=weeks_back)
            if candidate < today:
                history.append(candidate)
            weeks_back += 1
        return history

    def forecast_capacity(self, staff_id, days: int = 30, today=None) -> CapacityForecast:
        """Project utilization from the same weekday over the trailing weeks.

        Each projected day averages the utilization of the matching weekday on
        up to ``forecast_lookback_weeks`` past dates the staff member worked.
        """
        if isinstance(days, bool) or not isinstance(days, int) or not 1 <= days <= MAX_FORECAST_DAYS:
            raise ValidationError(f'days must be between 1 and {MAX_FORECAST_DAYS}.', field='days')
        staff_id = self.availability.require_staff(staff_id)
        today = parse_date(today, 'today') if today is not None else self.clock().date()

        history_cache: dict[date, CapacitySnapshot] = {}
        forecast_days: list[ForecastDay] = []

        for offset in range(1, days + 1):
            target = today + timedelta(days=offset)
            if not self.availability.working_intervals(staff_id, target):
                forecast_days.append(
                    ForecastDay(
                        date=target,
                        is_scheduled=False,
                        projected_utilization=0.0,
                        predicted_appointments=0.0,
                        recommended_slots=0,
                        sample_size=0,
                    )
                )
                continue

            samples = []
            for past in self._history_dates(target, today):
                if past not in history_cache:
                    history_cache[past] = self.snapshot(staff_id, past)
                if history_cache[past].available_minutes > 0:
                    samples.append(history_cache[past])

            if samples:
                projected = sum(sample.utilization_percentage for sample in samples) / len(samples)
                predicted = sum(sample.appointments_scheduled for sample in samples) / len(samples)
            else:
                projected = 0.0
                predicted = 0.0

            forecast_days.append(
                ForecastDay(
                    date=target,
                    is_scheduled=True,
                    projected_utilization=round(min(100.0, max(0.0, projected)), 2),
                    predicted_appointments=round(predicted, 2),
                    recommended_slots=math.ceil(round(predicted * 1.1, 6)),
                    sample_size=len(samples),
                )
            )

        scheduled_days = [day for day in forecast_days if day.is_scheduled]
        if scheduled_days:
            average_utilization = sum(day.projected_utilization for day in scheduled_days) / len(scheduled_days)
            average_demand = sum(day.predicted_appointments for day in scheduled_days) / len(scheduled_days)
        else:
            average_utilization = 0.0
            average_demand = 0.0

        return CapacityForecast(
            staff_id=staff_id,
            generated_on=today,
            lookback_weeks=self.policy.forecast_lookback_weeks,
            average_utilization=round(average_utilization, 2),
            predicted_demand=round(average_demand),
            recommended_slots=math.ceil(round(average_demand * 1.1, 6)),
            days=forecast_days,
        )

    def get_clinic_capacity(self, on_date) -> ClinicCapacity:
        on_date = parse_date(on_date, 'date')
        snapshots = [
            capacity
            for capacity in (self.snapshot(staff.id, on_date) for staff in self.repo.list_active_staff(self.db))
            if capacity.is_scheduled
        ]

        if not snapshots:
            return ClinicCapacity(
                date=on_date,
                total_staff=0,
                average_utilization=0.0,
                total_appointments=0,
                total_revenue=0.0,
                available_capacity=0,
            )

        unbooked = sum(max(0, capacity.available_minutes - capacity.booked_minutes) for capacity in snapshots)
        return ClinicCapacity(
            date=on_date,
            total_staff=len(snapshots),
            average_utilization=sum(capacity.utilization_percentage for capacity in snapshots) / len(snapshots),
            total_appointments=sum(capacity.appointments_scheduled for capacity in snapshots),
            total_revenue=sum(capacity.revenue_expected for capacity in snapshots),
            available_capacity=unbooked // self.policy.default_duration_minutes,
        )

    def has_capacity(self, staff_id, on_date, required_minutes: Optional[int] = None) -> bool:
        """Whether a single free window can hold the required minutes"""
        required_minutes = required_minutes or self.policy.default_duration_minutes
        return bool(self.availability.compute_availability(staff_id, on_date, required_minutes))

    def optimize_schedule(self, on_date) -> ScheduleOptimization:
        on_date = parse_date(on_date, 'date')
        underutilized = self.get_underutilized_staff(on_date)

        suggestions = [
            ScheduleSuggestion(
                staff_id=staff.staff_id,
                staff_name=staff.staff_name,
                action=f'Fill {staff.available_minutes // self.policy.default_duration_minutes} appointment slots',
                impact=(
                    f'Raise utilization from {staff.utilization_percentage:.0f}% toward 100%, '
                    f'potential revenue: ${staff.revenue_potential:.2f}'
                ),
                priority=1 if staff.utilization_percentage < 50 else 2,
            )
            for staff in underutilized
        ]

        return ScheduleOptimization(
            date=on_date,
            underutilized=underutilized,
            suggestions=sorted(suggestions, key=lambda suggestion: suggestion.priority),
        )

    def get_capacity_alerts(self, on_date=None) -> list[CapacityAlert]:
        on_date = parse_date(on_date, 'date') if on_date is not None else self.clock().date()
        alerts: list[CapacityAlert] = []

        for staff in self.repo.list_active_staff(self.db):
            capacity = self.snapshot(staff.id, on_date)
            if not capacity.is_scheduled:
                continue

            unbooked_slots = max(0, capacity.available_minutes - capacity.booked_minutes) // self.policy.default_duration_minutes
            if capacity.utilization_percentage < 50:
                alerts.append(
                    CapacityAlert(
                        type='low_utilization',
                        staff_id=staff.id,
                        staff_name=staff.full_name,
                        message=(
                            f'Only {capacity.utilization_percentage:.0f}% utilized '
                            f'with {unbooked_slots} open slots'
                        ),
                        severity='high',
                    )
                )
            elif capacity.utilization_percentage < 75:
                alerts.append(
                    CapacityAlert(
                        type='low_utilization',
                        staff_id=staff.id,
                        staff_name=staff.full_name,
                        message=f'{capacity.utilization_percentage:.0f}% utilized - could schedule more appointments',
                        severity='medium',
                    )
                )

            scheduled = capacity.appointments_scheduled + capacity.appointments_cancelled
            if scheduled > 0:
                no_show_rate = capacity.no_shows / scheduled * 100
                if no_show_rate > 15:
                    alerts.append(
                        CapacityAlert(
                            type='no_shows',
                            staff_id=staff.id,
                            staff_name=staff.full_name,
                            message=f'High no-show rate: {no_show_rate:.0f}% ({capacity.no_shows} of {scheduled})',
                            severity='high',
                        )
                    )

            if capacity.utilization_percentage > 100:
                alerts.append(
                    CapacityAlert(
                        type='high_utilization',
                        staff_id=staff.id,
                        staff_name=staff.full_name,
                        message=f'Overbooked at {capacity.utilization_percentage:.0f}% utilization',
                        severity='high',
                    )
                )

        if alerts:
            logger.info('Raised %d capacity alerts for %s', len(alerts), on_date)
        return sorted(alerts, key=lambda alert: -SEVERITY_ORDER[alert.severity])
