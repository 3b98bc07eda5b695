"""Appointment model definitions."""

import uuid

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text, Time, Uuid
from sqlalchemy.sql import func

from practice_scheduling.database import Base


class AppointmentType(Base):
    """Reference data for a kind of visit."""
    __tablename__ = "appointment_types"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True)
    default_duration = Column(Integer, nullable=False)
    expected_revenue = Column(Float, nullable=False, default=0.0)
    required_roles = Column(JSON, nullable=False, default=list)  # empty means any role
    is_active = Column(Boolean, nullable=False, default=True)


class Appointment(Base):
    """Represents a scheduled appointment."""
    __tablename__ = "appointments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    appointment_number = Column(String, nullable=False, unique=True)
    patient_id = Column(Uuid, ForeignKey("patients.id"), nullable=False)
    staff_id = Column(Uuid, ForeignKey("staff.id"), nullable=False)
    appointment_type_id = Column(Uuid, ForeignKey("appointment_types.id"), nullable=False)

    appointment_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="requested")
    priority = Column(String, nullable=False, default="normal")

    booked_by = Column(Uuid, nullable=True)
    confirmation_source = Column(String, nullable=True)  # patient/staff/automated
    confirmed_by = Column(Uuid, nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    checked_in_by = Column(Uuid, nullable=True)
    checked_in_at = Column(DateTime, nullable=True)
    completed_by = Column(Uuid, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_by = Column(Uuid, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    no_show_by = Column(Uuid, nullable=True)
    no_show_at = Column(DateTime, nullable=True)
    no_show_reason = Column(Text, nullable=True)

    rescheduled_from_id = Column(Uuid, ForeignKey("appointments.id"), nullable=True)
    rescheduled_to_id = Column(Uuid, ForeignKey("appointments.id"), nullable=True)

    related_record_kind = Column(String, nullable=True)
    related_record_id = Column(Uuid, nullable=True)

    reason_for_visit = Column(Text, nullable=True)
    special_instructions = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    expected_revenue = Column(Float, nullable=True)
    actual_revenue = Column(Float, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
