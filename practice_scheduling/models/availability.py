"""Staff schedule and time-off model definitions."""

import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text, Time, Uuid
from sqlalchemy.sql import func

from practice_scheduling.database import Base


class StaffSchedule(Base):
    """Weekly recurring working hours for one staff member and weekday."""
    __tablename__ = "staff_schedules"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    staff_id = Column(Uuid, ForeignKey("staff.id"), nullable=False)
    day_of_week = Column(String, nullable=False)  # monday..sunday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    break_start = Column(Time, nullable=True)
    break_end = Column(Time, nullable=True)
    max_appointments_per_day = Column(Integer, nullable=True)
    default_appointment_duration = Column(Integer, nullable=False, default=30)
    is_active = Column(Boolean, nullable=False, default=True)
    effective_from = Column(Date, nullable=False)
    effective_until = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    superseded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class TimeOff(Base):
    """A full or partial-day absence for a staff member."""
    __tablename__ = "time_off"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    staff_id = Column(Uuid, ForeignKey("staff.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    all_day = Column(Boolean, nullable=False, default=True)
    reason = Column(String, nullable=False)  # vacation/sick/meeting/training/personal/blocked
    approval_status = Column(String, nullable=False, default="pending")
    approved_by = Column(Uuid, nullable=True)
    decided_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
