import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_float(value: str | None, default: float) -> float:
    if value is None or not value.strip():
        return default
    return float(value)


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./practice_scheduling.db")
DB_POOL_SIZE = _get_int(os.getenv("DB_POOL_SIZE"), 10)
DB_MAX_OVERFLOW = _get_int(os.getenv("DB_MAX_OVERFLOW"), 20)

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:4200").split(",")
    if origin.strip()
]

DEFAULT_APPOINTMENT_DURATION = _get_int(os.getenv("DEFAULT_APPOINTMENT_DURATION"), 30)
MAX_SLOT_RESULTS = _get_int(os.getenv("MAX_SLOT_RESULTS"), 10)

SEARCH_HORIZON_URGENT_DAYS = _get_int(os.getenv("SEARCH_HORIZON_URGENT_DAYS"), 2)
SEARCH_HORIZON_HIGH_DAYS = _get_int(os.getenv("SEARCH_HORIZON_HIGH_DAYS"), 5)
SEARCH_HORIZON_NORMAL_DAYS = _get_int(os.getenv("SEARCH_HORIZON_NORMAL_DAYS"), 14)
SEARCH_HORIZON_LOW_DAYS = _get_int(os.getenv("SEARCH_HORIZON_LOW_DAYS"), 30)

# Pending time-off blocks booking until a manager rejects it.
PENDING_TIME_OFF_BLOCKS = _get_bool(os.getenv("PENDING_TIME_OFF_BLOCKS"), default=True)
REVENUE_FALLBACK_TO_EXPECTED = _get_bool(os.getenv("REVENUE_FALLBACK_TO_EXPECTED"), default=True)

AVERAGE_REVENUE_PER_MINUTE = _get_float(os.getenv("AVERAGE_REVENUE_PER_MINUTE"), 2.0)
UNDERUTILIZATION_THRESHOLD = _get_float(os.getenv("UNDERUTILIZATION_THRESHOLD"), 75.0)
FORECAST_LOOKBACK_WEEKS = _get_int(os.getenv("FORECAST_LOOKBACK_WEEKS"), 4)


def validate_runtime_config() -> None:
    horizons = [
        SEARCH_HORIZON_URGENT_DAYS,
        SEARCH_HORIZON_HIGH_DAYS,
        SEARCH_HORIZON_NORMAL_DAYS,
        SEARCH_HORIZON_LOW_DAYS,
    ]
    if any(days < 1 for days in horizons):
        raise RuntimeError("Search horizons must be at least one day.")
    if horizons != sorted(horizons):
        raise RuntimeError("Search horizons must grow as urgency decreases.")
    if APP_ENV.lower() == "production" and DATABASE_URL.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must point at Postgres in production.")
