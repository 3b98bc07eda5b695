"""Productivity tracker: appointment outcome and revenue metrics over a period."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from practice_scheduling.models.appointment import Appointment
from practice_scheduling.models.enums import AppointmentStatus
from practice_scheduling.scheduling.availability import AvailabilityEngine
from practice_scheduling.scheduling.capacity import (
    RevenueCalculator,
    appointment_minutes,
    is_active,
    utilization,
)
from practice_scheduling.scheduling.policy import SchedulingPolicy
from practice_scheduling.scheduling.repository import SchedulingRepository
from practice_scheduling.scheduling.schemas import (
    Bottleneck,
    ClinicMetrics,
    DailyAlert,
    DailySummary,
    Period,
    ProductivityReport,
    StaffMetrics,
)
from practice_scheduling.scheduling.timeutils import daterange, parse_date, to_minutes, total_minutes

logger = logging.getLogger(__name__)

RANKING_SIZE = 5


def rate(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return part / whole * 100


@dataclass
class AppointmentTotals:
    scheduled: int = 0
    completed: int = 0
    cancelled: int = 0
    no_shows: int = 0
    booked_minutes: int = 0
    completed_minutes: int = 0
    revenue_expected: float = 0.0
    revenue_actual: float = 0.0
    avg_gap_minutes: float = 0.0

    @property
    def revenue_per_hour(self) -> float:
        if self.booked_minutes <= 0:
            return 0.0
        return self.revenue_actual / (self.booked_minutes / 60)


def average_gap_minutes(appointments: list[Appointment]) -> float:
    """Mean idle time between consecutive active appointments of the same staff and day"""
    by_day: dict[tuple, list[Appointment]] = defaultdict(list)
    for appointment in appointments:
        if is_active(appointment):
            by_day[(appointment.staff_id, appointment.appointment_date)].append(appointment)

    gaps: list[int] = []
    for day_appointments in by_day.values():
        day_appointments.sort(key=lambda appointment: appointment.start_time)
        for previous, following in zip(day_appointments, day_appointments[1:]):
            gap = to_minutes(following.start_time) - to_minutes(previous.end_time)
            if gap > 0:
                gaps.append(gap)

    return sum(gaps) / len(gaps) if gaps else 0.0


class ProductivityTracker:
    """Service layer for staff and clinic productivity metrics"""

    def __init__(
        self,
        db: Session,
        policy: Optional[SchedulingPolicy] = None,
        availability: Optional[AvailabilityEngine] = None,
    ):
        self.db = db
        self.policy = policy or SchedulingPolicy()
        self.availability = availability or AvailabilityEngine(db, self.policy)
        self.repo = SchedulingRepository()
        self.revenue = RevenueCalculator(db, self.policy)

    def totals(self, appointments: list[Appointment]) -> AppointmentTotals:
        totals = AppointmentTotals()
        for appointment in appointments:
            if appointment.status == AppointmentStatus.RESCHEDULED.value:
                # The replacement appointment carries the visit.
                continue

            totals.scheduled += 1
            if appointment.status == AppointmentStatus.CANCELLED.value:
                totals.cancelled += 1
                continue

            minutes = appointment_minutes(appointment)
            totals.booked_minutes += minutes
            totals.revenue_expected += self.revenue.expected(appointment)

            if appointment.status == AppointmentStatus.COMPLETED.value:
                totals.completed += 1
                totals.completed_minutes += minutes
                totals.revenue_actual += self.revenue.realized(appointment)
            elif appointment.status == AppointmentStatus.NO_SHOW.value:
                totals.no_shows += 1

        totals.avg_gap_minutes = average_gap_minutes(appointments)
        return totals

    def _available_minutes_by_day(self, staff_id: UUID, period: Period) -> list[int]:
        return [
            total_minutes(self.availability.working_intervals(staff_id, on_date))
            for on_date in daterange(period.start, period.end)
        ]

    def get_staff_metrics(self, staff_id, period: Period) -> StaffMetrics:
        staff_id = self.availability.require_staff(staff_id)
        staff = self.repo.get_staff(self.db, staff_id)

        totals = self.totals(self.repo.appointments_in_period(self.db, period.start, period.end, staff_id))
        available_by_day = self._available_minutes_by_day(staff_id, period)
        available_minutes = sum(available_by_day)
        working_days = sum(1 for minutes in available_by_day if minutes > 0)

        return StaffMetrics(
            staff_id=staff_id,
            staff_name=staff.full_name,
            role=staff.role,
            period=period,
            available_hours=available_minutes / 60,
            booked_hours=totals.booked_minutes / 60,
            completed_hours=totals.completed_minutes / 60,
            utilization_rate=utilization(totals.booked_minutes, available_minutes),
            appointments_scheduled=totals.scheduled,
            appointments_completed=totals.completed,
            appointments_cancelled=totals.cancelled,
            no_shows=totals.no_shows,
            completion_rate=rate(totals.completed, totals.scheduled),
            no_show_rate=rate(totals.no_shows, totals.scheduled),
            revenue_expected=totals.revenue_expected,
            revenue_actual=totals.revenue_actual,
            revenue_per_hour=totals.revenue_per_hour,
            avg_appointment_duration=totals.completed_minutes / totals.completed if totals.completed else 0.0,
            appointments_per_day=totals.scheduled / working_days if working_days else 0.0,
            avg_gap_between_appointments=totals.avg_gap_minutes,
        )

    @staticmethod
    def previous_period(period: Period) -> Period:
        end = period.start - timedelta(days=1)
        return Period(start=end - timedelta(days=period.days - 1), end=end)

    def get_clinic_metrics(self, period: Period) -> ClinicMetrics:
        totals = self.totals(self.repo.appointments_in_period(self.db, period.start, period.end))
        staff_list = self.repo.list_active_staff(self.db)
        staff_metrics = [self.get_staff_metrics(staff.id, period) for staff in staff_list]
        available_minutes = sum(metrics.available_hours for metrics in staff_metrics) * 60

        ranked = sorted(staff_metrics, key=lambda metrics: (-metrics.utilization_rate, str(metrics.staff_id)))
        underutilized = sorted(
            (
                metrics
                for metrics in staff_metrics
                if metrics.available_hours > 0 and metrics.utilization_rate < self.policy.underutilization_threshold
            ),
            key=lambda metrics: (metrics.utilization_rate, str(metrics.staff_id)),
        )

        previous = self.previous_period(period)
        previous_totals = self.totals(self.repo.appointments_in_period(self.db, previous.start, previous.end))
        growth = (
            (totals.scheduled - previous_totals.scheduled) / previous_totals.scheduled * 100
            if previous_totals.scheduled > 0
            else 0.0
        )

        return ClinicMetrics(
            period=period,
            total_staff_hours=available_minutes / 60,
            total_booked_hours=totals.booked_minutes / 60,
            total_completed_hours=totals.completed_minutes / 60,
            clinic_utilization_rate=utilization(totals.booked_minutes, available_minutes),
            appointments_scheduled=totals.scheduled,
            appointments_completed=totals.completed,
            appointments_cancelled=totals.cancelled,
            no_shows=totals.no_shows,
            completion_rate=rate(totals.completed, totals.scheduled),
            no_show_rate=rate(totals.no_shows, totals.scheduled),
            total_revenue_expected=totals.revenue_expected,
            total_revenue_actual=totals.revenue_actual,
            revenue_per_hour=totals.revenue_per_hour,
            revenue_per_staff_member=totals.revenue_actual / len(staff_list) if staff_list else 0.0,
            top_performers=ranked[:RANKING_SIZE],
            underutilized_staff=underutilized[:RANKING_SIZE],
            previous_period_appointments=previous_totals.scheduled,
            period_over_period_growth=growth,
            trending_up=growth > 0,
        )

    def identify_bottlenecks(self, period: Period, clinic_metrics: Optional[ClinicMetrics] = None) -> list[Bottleneck]:
        metrics = clinic_metrics or self.get_clinic_metrics(period)
        bottlenecks: list[Bottleneck] = []

        if metrics.total_staff_hours > 0 and metrics.clinic_utilization_rate < 70:
            open_slots = int(
                (metrics.total_staff_hours - metrics.total_booked_hours) * 60 // self.policy.default_duration_minutes
            )
            bottlenecks.append(
                Bottleneck(
                    type='capacity',
                    description=f'Clinic utilization at {metrics.clinic_utilization_rate:.0f}%',
                    impact=f'{open_slots} potential appointments not booked',
                    recommendation='Fill open slots from the waitlist or adjust staff schedules',
                    priority=1,
                )
            )

        if metrics.no_show_rate > 10:
            bottlenecks.append(
                Bottleneck(
                    type='no_shows',
                    description=f'High no-show rate: {metrics.no_show_rate:.0f}%',
                    impact='Lost revenue and wasted capacity',
                    recommendation='Require confirmation 24h before the visit and tighten reminders',
                    priority=2,
                )
            )

        cancellation_rate = rate(metrics.appointments_cancelled, metrics.appointments_scheduled)
        if cancellation_rate > 15:
            bottlenecks.append(
                Bottleneck(
                    type='cancellations',
                    description=f'High cancellation rate: {cancellation_rate:.0f}%',
                    impact='Late openings that are hard to refill',
                    recommendation='Offer rescheduling before cancellation and keep a waitlist',
                    priority=2,
                )
            )

        if metrics.underutilized_staff:
            potential = sum(
                max(0.0, staff.available_hours - staff.booked_hours) * 60 * self.policy.average_revenue_per_minute
                for staff in metrics.underutilized_staff
            )
            bottlenecks.append(
                Bottleneck(
                    type='scheduling',
                    description=f'{len(metrics.underutilized_staff)} staff members underutilized',
                    impact=f'Potential additional revenue: ${potential:.2f}',
                    recommendation='Redistribute appointments or adjust staff hours',
                    priority=1,
                )
            )

        if metrics.period_over_period_growth < -5:
            bottlenecks.append(
                Bottleneck(
                    type='scheduling',
                    description=f'Appointment volume declining: {metrics.period_over_period_growth:.0f}% decrease',
                    impact='Revenue decline and potential staff underutilization',
                    recommendation='Review referral sources, patient satisfaction and scheduling convenience',
                    priority=1,
                )
            )

        return sorted(bottlenecks, key=lambda bottleneck: bottleneck.priority)

    def get_daily_summary(self, on_date) -> DailySummary:
        on_date = parse_date(on_date, 'date')
        totals = self.totals(self.repo.appointments_in_period(self.db, on_date, on_date))
        available_minutes = sum(
            total_minutes(self.availability.working_intervals(staff.id, on_date))
            for staff in self.repo.list_active_staff(self.db)
        )
        utilization_rate = utilization(totals.booked_minutes, available_minutes)

        alerts: list[DailyAlert] = []
        if available_minutes > 0 and utilization_rate < 60:
            alerts.append(DailyAlert(message='Low utilization - many empty slots available', severity='high'))
        if totals.no_shows > totals.scheduled * 0.1:
            alerts.append(DailyAlert(message='High no-show rate today', severity='medium'))

        return DailySummary(
            date=on_date,
            total_appointments=totals.scheduled,
            completed_appointments=totals.completed,
            cancelled_appointments=totals.cancelled,
            no_shows=totals.no_shows,
            utilization_rate=utilization_rate,
            revenue=totals.revenue_actual,
            alerts=alerts,
        )

    def generate_productivity_report(self, period: Period) -> ProductivityReport:
        clinic_metrics = self.get_clinic_metrics(period)
        bottlenecks = self.identify_bottlenecks(period, clinic_metrics)

        recommendations: list[str] = []
        if clinic_metrics.total_staff_hours > 0 and clinic_metrics.clinic_utilization_rate < self.policy.underutilization_threshold:
            recommendations.append('Increase clinic utilization by filling empty slots from the waitlist')
        if clinic_metrics.underutilized_staff:
            recommendations.append(
                f'Focus on booking appointments for {clinic_metrics.underutilized_staff[0].staff_name}'
            )
        if clinic_metrics.trending_up:
            recommendations.append('Positive trend - consider adding staff capacity to meet growing demand')
        else:
            recommendations.append('Review and improve patient acquisition strategies')

        staff_metrics: list[StaffMetrics] = []
        seen: set[UUID] = set()
        for metrics in [*clinic_metrics.top_performers, *clinic_metrics.underutilized_staff]:
            if metrics.staff_id not in seen:
                seen.add(metrics.staff_id)
                staff_metrics.append(metrics)

        logger.info('Generated productivity report for %s..%s', period.start, period.end)
        return ProductivityReport(
            clinic_metrics=clinic_metrics,
            staff_metrics=staff_metrics,
            bottlenecks=bottlenecks,
            recommendations=recommendations,
        )
