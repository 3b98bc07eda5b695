"""Request and result shapes for the scheduling services."""

from datetime import date, time
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from practice_scheduling.core.errors import ValidationError
from practice_scheduling.models.enums import (
    DayOfWeek,
    RelatedRecordKind,
    TimeOffReason,
    Urgency,
)

MAX_NOTES_LENGTH = 600


def normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_NOTES_LENGTH:
        raise ValueError(f'Notes must be {MAX_NOTES_LENGTH} characters or fewer.')

    return normalized


def require_whole_minute(value: time | None) -> time | None:
    if value is not None and (value.second or value.microsecond):
        raise ValueError('Times must fall on a whole minute.')
    return value


class Period(BaseModel):
    start: date
    end: date

    @model_validator(mode='after')
    def check_order(self) -> 'Period':
        if self.start > self.end:
            raise ValueError('Period start must not be after its end.')
        return self

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


class AvailableSlot(BaseModel):
    """One bookable proposal inside a free window of a staff member's day."""

    staff_id: UUID
    date: date
    start_time: time
    end_time: time
    duration_minutes: int
    window_start: time
    window_end: time


class BookingCriteria(BaseModel):
    patient_id: UUID
    appointment_type_id: UUID
    preferred_date: date | None = None
    preferred_time: time | None = None
    preferred_staff_id: UUID | None = None
    urgency: Urgency = Urgency.NORMAL
    duration_minutes: int | None = Field(default=None, gt=0)


class TimeSlot(BaseModel):
    staff_id: UUID
    staff_name: str
    staff_role: str
    date: date
    start_time: time
    end_time: time
    duration_minutes: int
    score: float
    reasons: list[str] = Field(default_factory=list)


class RelatedRecord(BaseModel):
    kind: RelatedRecordKind
    record_id: UUID


class BookingRequest(BaseModel):
    patient_id: UUID
    staff_id: UUID
    appointment_type_id: UUID
    appointment_date: date
    start_time: time
    end_time: time | None = None
    duration_minutes: int | None = Field(default=None, gt=0)
    priority: Urgency = Urgency.NORMAL
    reason_for_visit: str | None = None
    special_instructions: str | None = None
    related_record: RelatedRecord | None = None
    override_schedule: bool = False

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_times(cls, value: time | None) -> time | None:
        return require_whole_minute(value)

    @field_validator('reason_for_visit', 'special_instructions')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)

    @model_validator(mode='after')
    def check_interval(self) -> 'BookingRequest':
        if self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError('End time must be after start time.')
        return self


class RescheduleRequest(BaseModel):
    new_date: date
    new_start_time: time
    new_end_time: time | None = None
    new_staff_id: UUID | None = None
    reason: str | None = None

    @field_validator('new_start_time', 'new_end_time')
    @classmethod
    def validate_times(cls, value: time | None) -> time | None:
        return require_whole_minute(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return normalize_notes(value)

    @model_validator(mode='after')
    def check_interval(self) -> 'RescheduleRequest':
        if self.new_end_time is not None and self.new_end_time <= self.new_start_time:
            raise ValueError('End time must be after start time.')
        return self


class ScheduleEntryRequest(BaseModel):
    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    break_start: time | None = None
    break_end: time | None = None
    max_appointments_per_day: int | None = Field(default=None, gt=0)
    default_appointment_duration: int = Field(default=30, gt=0)
    is_active: bool = True
    effective_from: date
    effective_until: date | None = None
    notes: str | None = None

    @field_validator('start_time', 'end_time', 'break_start', 'break_end')
    @classmethod
    def validate_times(cls, value: time | None) -> time | None:
        return require_whole_minute(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)

    @model_validator(mode='after')
    def check_invariants(self) -> 'ScheduleEntryRequest':
        if self.start_time >= self.end_time:
            raise ValueError('Schedule start must be before its end.')
        if (self.break_start is None) != (self.break_end is None):
            raise ValueError('Break start and end must be given together.')
        if self.break_start is not None:
            if not (self.start_time <= self.break_start < self.break_end <= self.end_time):
                raise ValueError('Break must lie within the working hours.')
        if self.effective_until is not None and self.effective_until < self.effective_from:
            raise ValueError('effective_until must not be before effective_from.')
        return self


class TimeOffRequest(BaseModel):
    start_date: date
    end_date: date
    start_time: time | None = None
    end_time: time | None = None
    all_day: bool = True
    reason: TimeOffReason
    notes: str | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_times(cls, value: time | None) -> time | None:
        return require_whole_minute(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)

    @model_validator(mode='after')
    def check_invariants(self) -> 'TimeOffRequest':
        if self.start_date > self.end_date:
            raise ValueError('Time-off start date must not be after its end date.')
        if not self.all_day:
            if self.start_time is None or self.end_time is None:
                raise ValueError('Partial-day time off needs a start and end time.')
            if self.start_time >= self.end_time:
                raise ValueError('Time-off start time must be before its end time.')
        return self


class CapacitySnapshot(BaseModel):
    staff_id: UUID
    date: date
    is_scheduled: bool
    available_minutes: int
    booked_minutes: int
    completed_minutes: int
    appointments_scheduled: int
    appointments_completed: int
    appointments_cancelled: int
    no_shows: int
    utilization_percentage: float
    revenue_expected: float
    revenue_actual: float


class UnderutilizedStaff(BaseModel):
    staff_id: UUID
    staff_name: str
    role: str
    utilization_percentage: float
    available_minutes: int
    revenue_potential: float


class ForecastDay(BaseModel):
    date: date
    is_scheduled: bool
    projected_utilization: float
    predicted_appointments: float
    recommended_slots: int
    sample_size: int


class CapacityForecast(BaseModel):
    staff_id: UUID
    generated_on: date
    lookback_weeks: int
    average_utilization: float
    predicted_demand: int
    recommended_slots: int
    days: list[ForecastDay] = Field(default_factory=list)


class ClinicCapacity(BaseModel):
    date: date
    total_staff: int
    average_utilization: float
    total_appointments: int
    total_revenue: float
    available_capacity: int


class ScheduleSuggestion(BaseModel):
    staff_id: UUID
    staff_name: str
    action: str
    impact: str
    priority: int


class ScheduleOptimization(BaseModel):
    date: date
    underutilized: list[UnderutilizedStaff] = Field(default_factory=list)
    suggestions: list[ScheduleSuggestion] = Field(default_factory=list)


class CapacityAlert(BaseModel):
    type: str  # low_utilization / high_utilization / no_shows
    staff_id: UUID
    staff_name: str
    message: str
    severity: str  # low / medium / high


class StaffMetrics(BaseModel):
    staff_id: UUID
    staff_name: str
    role: str
    period: Period

    available_hours: float
    booked_hours: float
    completed_hours: float
    utilization_rate: float

    appointments_scheduled: int
    appointments_completed: int
    appointments_cancelled: int
    no_shows: int
    completion_rate: float
    no_show_rate: float

    revenue_expected: float
    revenue_actual: float
    revenue_per_hour: float

    avg_appointment_duration: float
    appointments_per_day: float
    avg_gap_between_appointments: float


class ClinicMetrics(BaseModel):
    period: Period

    total_staff_hours: float
    total_booked_hours: float
    total_completed_hours: float
    clinic_utilization_rate: float

    appointments_scheduled: int
    appointments_completed: int
    appointments_cancelled: int
    no_shows: int
    completion_rate: float
    no_show_rate: float

    total_revenue_expected: float
    total_revenue_actual: float
    revenue_per_hour: float
    revenue_per_staff_member: float

    top_performers: list[StaffMetrics] = Field(default_factory=list)
    underutilized_staff: list[StaffMetrics] = Field(default_factory=list)

    previous_period_appointments: int
    period_over_period_growth: float
    trending_up: bool


class Bottleneck(BaseModel):
    type: str  # scheduling / capacity / no_shows / cancellations
    description: str
    impact: str
    recommendation: str
    priority: int


class DailyAlert(BaseModel):
    message: str
    severity: str


class DailySummary(BaseModel):
    date: date
    total_appointments: int
    completed_appointments: int
    cancelled_appointments: int
    no_shows: int
    utilization_rate: float
    revenue: float
    alerts: list[DailyAlert] = Field(default_factory=list)


class ProductivityReport(BaseModel):
    clinic_metrics: ClinicMetrics
    staff_metrics: list[StaffMetrics] = Field(default_factory=list)
    bottlenecks: list[Bottleneck] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


def coerce_payload(model: type[BaseModel], payload):
    """Accept either a built model or raw data, reporting field errors in our own terms."""
    if isinstance(payload, model):
        return payload

    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        errors = [
            {'field': '.'.join(str(part) for part in error['loc']) or None, 'message': error['msg']}
            for error in exc.errors()
        ]
        raise ValidationError('Invalid request.', errors=errors) from exc
