from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from practice_scheduling.core import config


def build_engine(database_url: str):
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False, "timeout": 30})

    return create_engine(
        database_url,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
    )


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

ACTIVE_STATUS_PREDICATE = "status NOT IN ('cancelled', 'rescheduled')"

_schema_lock = Lock()
_schedule_schema_checked = False
_appointment_schema_checked = False


def ensure_schedule_schema(bind=None) -> None:
    global _schedule_schema_checked

    if _schedule_schema_checked:
        return

    bind = bind or engine

    with _schema_lock:
        if _schedule_schema_checked:
            return

        inspector = inspect(bind)
        table_names = inspector.get_table_names()

        with bind.begin() as connection:
            if 'staff_schedules' in table_names:
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_staff_schedules_lookup '
                        'ON staff_schedules(staff_id, day_of_week, effective_from)'
                    )
                )
            if 'time_off' in table_names:
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_time_off_range ON time_off(staff_id, start_date, end_date)')
                )

        _schedule_schema_checked = True


def ensure_appointment_schema(bind=None) -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    bind = bind or engine

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(bind)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        appointment_columns = {column['name'] for column in inspector.get_columns('appointments')}
        timestamp_type = 'TIMESTAMP' if bind.dialect.name == 'postgresql' else 'DATETIME'
        uuid_type = 'UUID' if bind.dialect.name == 'postgresql' else 'CHAR(32)'

        with bind.begin() as connection:
            if 'no_show_by' not in appointment_columns:
                connection.execute(text(f'ALTER TABLE appointments ADD COLUMN no_show_by {uuid_type}'))
            if 'no_show_at' not in appointment_columns:
                connection.execute(text(f'ALTER TABLE appointments ADD COLUMN no_show_at {timestamp_type}'))

            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_staff_date ON appointments(staff_id, appointment_date)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_status_date ON appointments(status, appointment_date)')
            )

            if bind.dialect.name == 'postgresql':
                # Second guard behind the booking lock: Postgres itself refuses
                # overlapping active rows for one staff member.
                connection.execute(text('CREATE EXTENSION IF NOT EXISTS btree_gist'))
                existing = connection.execute(
                    text("SELECT 1 FROM pg_constraint WHERE conname = 'appointments_no_overlap'")
                ).first()
                if existing is None:
                    connection.execute(
                        text(
                            'ALTER TABLE appointments ADD CONSTRAINT appointments_no_overlap '
                            'EXCLUDE USING gist ('
                            'staff_id WITH =, '
                            'tsrange(appointment_date + start_time, appointment_date + end_time) WITH &&'
                            f') WHERE ({ACTIVE_STATUS_PREDICATE})'
                        )
                    )

        _appointment_schema_checked = True
