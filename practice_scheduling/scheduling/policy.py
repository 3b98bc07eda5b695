from pydantic import BaseModel, Field, model_validator

from practice_scheduling.core import config
from practice_scheduling.models.enums import Urgency

URGENCY_ORDER = (Urgency.URGENT, Urgency.HIGH, Urgency.NORMAL, Urgency.LOW)


class SchedulingPolicy(BaseModel):
    """Tunable constants shared by the scheduling services."""

    default_duration_minutes: int = Field(default=30, gt=0)
    max_slot_results: int = Field(default=10, gt=0)
    search_horizon_days: dict[Urgency, int] = Field(
        default_factory=lambda: {
            Urgency.URGENT: 2,
            Urgency.HIGH: 5,
            Urgency.NORMAL: 14,
            Urgency.LOW: 30,
        }
    )
    distance_penalty_per_day: dict[Urgency, float] = Field(
        default_factory=lambda: {
            Urgency.URGENT: 10.0,
            Urgency.HIGH: 4.0,
            Urgency.NORMAL: 1.0,
            Urgency.LOW: 0.25,
        }
    )
    pending_time_off_blocks: bool = True
    revenue_falls_back_to_expected: bool = True
    average_revenue_per_minute: float = Field(default=2.0, ge=0)
    underutilization_threshold: float = Field(default=75.0, ge=0, le=100)
    forecast_lookback_weeks: int = Field(default=4, ge=1)

    @model_validator(mode='after')
    def check_urgency_tables(self) -> 'SchedulingPolicy':
        for table_name in ('search_horizon_days', 'distance_penalty_per_day'):
            missing = [urgency.value for urgency in URGENCY_ORDER if urgency not in getattr(self, table_name)]
            if missing:
                raise ValueError(f'{table_name} is missing {", ".join(missing)}.')

        horizons = [self.search_horizon_days[urgency] for urgency in URGENCY_ORDER]
        if horizons[0] < 1 or horizons != sorted(horizons):
            raise ValueError('Search horizons must be at least one day and grow as urgency decreases.')

        penalties = [self.distance_penalty_per_day[urgency] for urgency in URGENCY_ORDER]
        if penalties != sorted(penalties, reverse=True):
            raise ValueError('Distance penalties must shrink as urgency decreases.')
        return self

    @classmethod
    def from_config(cls) -> 'SchedulingPolicy':
        return cls(
            default_duration_minutes=config.DEFAULT_APPOINTMENT_DURATION,
            max_slot_results=config.MAX_SLOT_RESULTS,
            search_horizon_days={
                Urgency.URGENT: config.SEARCH_HORIZON_URGENT_DAYS,
                Urgency.HIGH: config.SEARCH_HORIZON_HIGH_DAYS,
                Urgency.NORMAL: config.SEARCH_HORIZON_NORMAL_DAYS,
                Urgency.LOW: config.SEARCH_HORIZON_LOW_DAYS,
            },
            pending_time_off_blocks=config.PENDING_TIME_OFF_BLOCKS,
            revenue_falls_back_to_expected=config.REVENUE_FALLBACK_TO_EXPECTED,
            average_revenue_per_minute=config.AVERAGE_REVENUE_PER_MINUTE,
            underutilization_threshold=config.UNDERUTILIZATION_THRESHOLD,
            forecast_lookback_weeks=config.FORECAST_LOOKBACK_WEEKS,
        )
