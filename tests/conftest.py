import os
from datetime import date, datetime, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from practice_scheduling.database import Base  # noqa: E402
from practice_scheduling.models.appointment import Appointment, AppointmentType  # noqa: E402
from practice_scheduling.models.availability import StaffSchedule, TimeOff  # noqa: E402
from practice_scheduling.models.enums import DayOfWeek  # noqa: E402
from practice_scheduling.models.patient import Patient  # noqa: E402
from practice_scheduling.models.staff import Staff  # noqa: E402

SCHEDULING_TABLES = [
    Staff.__table__,
    Patient.__table__,
    AppointmentType.__table__,
    Appointment.__table__,
    StaffSchedule.__table__,
    TimeOff.__table__,
]

# 2026-03-02 is a Monday.
MONDAY = date(2026, 3, 2)
SCHEDULE_START = date(2026, 1, 1)


class SchedulingFactory:
    """Builds committed reference rows for service and route tests."""

    def __init__(self, db):
        self.db = db
        self._counter = 0

    def _save(self, instance):
        self.db.add(instance)
        self.db.commit()
        self.db.refresh(instance)
        return instance

    def staff(self, full_name: str = 'Dr. Rivera', role: str = 'physician', is_active: bool = True) -> Staff:
        self._counter += 1
        return self._save(
            Staff(
                full_name=full_name,
                email=f'staff{self._counter}@clinic.test',
                role=role,
                is_active=is_active,
            )
        )

    def patient(self, full_name: str = 'Pat Doe') -> Patient:
        return self._save(Patient(full_name=full_name, date_of_birth=date(1980, 5, 17)))

    def appointment_type(
        self,
        name: str | None = None,
        default_duration: int = 30,
        expected_revenue: float = 150.0,
        required_roles: list[str] | None = None,
        is_active: bool = True,
    ) -> AppointmentType:
        self._counter += 1
        return self._save(
            AppointmentType(
                name=name or f'Follow-up {self._counter}',
                default_duration=default_duration,
                expected_revenue=expected_revenue,
                required_roles=required_roles or [],
                is_active=is_active,
            )
        )

    def schedule(
        self,
        staff: Staff,
        day_of_week: DayOfWeek = DayOfWeek.MONDAY,
        start_time: time = time(9, 0),
        end_time: time = time(17, 0),
        break_start: time | None = None,
        break_end: time | None = None,
        effective_from: date = SCHEDULE_START,
        effective_until: date | None = None,
        max_appointments_per_day: int | None = None,
        is_active: bool = True,
    ) -> StaffSchedule:
        return self._save(
            StaffSchedule(
                staff_id=staff.id,
                day_of_week=day_of_week.value,
                start_time=start_time,
                end_time=end_time,
                break_start=break_start,
                break_end=break_end,
                effective_from=effective_from,
                effective_until=effective_until,
                max_appointments_per_day=max_appointments_per_day,
                is_active=is_active,
            )
        )

    def weekly_schedule(self, staff: Staff, **kwargs) -> list[StaffSchedule]:
        return [self.schedule(staff, day_of_week=day, **kwargs) for day in list(DayOfWeek)[:5]]

    def time_off(
        self,
        staff: Staff,
        start_date: date,
        end_date: date | None = None,
        start_time: time | None = None,
        end_time: time | None = None,
        approval_status: str = 'approved',
        reason: str = 'vacation',
    ) -> TimeOff:
        return self._save(
            TimeOff(
                staff_id=staff.id,
                start_date=start_date,
                end_date=end_date or start_date,
                start_time=start_time,
                end_time=end_time,
                all_day=start_time is None,
                reason=reason,
                approval_status=approval_status,
            )
        )

    def appointment(
        self,
        staff: Staff,
        patient: Patient,
        appointment_type: AppointmentType,
        on_date: date,
        start_time: time,
        end_time: time,
        status: str = 'confirmed',
        expected_revenue: float | None = None,
        actual_revenue: float | None = None,
    ) -> Appointment:
        self._counter += 1
        duration = (end_time.hour * 60 + end_time.minute) - (start_time.hour * 60 + start_time.minute)
        return self._save(
            Appointment(
                appointment_number=f'APT2603T{self._counter:05d}',
                patient_id=patient.id,
                staff_id=staff.id,
                appointment_type_id=appointment_type.id,
                appointment_date=on_date,
                start_time=start_time,
                end_time=end_time,
                duration_minutes=duration,
                status=status,
                priority='normal',
                expected_revenue=expected_revenue,
                actual_revenue=actual_revenue,
            )
        )


@pytest.fixture
def scheduling_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=SCHEDULING_TABLES)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(SCHEDULING_TABLES)))


@pytest.fixture
def factory(scheduling_db) -> SchedulingFactory:
    return SchedulingFactory(scheduling_db)


@pytest.fixture
def fixed_clock():
    """Sunday morning before the MONDAY used throughout the tests."""
    return lambda: datetime(2026, 3, 1, 8, 0)
