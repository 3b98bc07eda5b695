"""Staff model definitions."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Uuid
from sqlalchemy.sql import func

from practice_scheduling.database import Base


class Staff(Base):
    """Represents a clinician or staff member who can be booked."""
    __tablename__ = "staff"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True)
    role = Column(String, nullable=False)  # see StaffRole
    is_active = Column(Boolean, nullable=False, default=True)
    # Bumped at the start of every booking transaction to serialize writers per staff member.
    booking_version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())
