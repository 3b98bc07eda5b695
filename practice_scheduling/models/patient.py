"""Patient model definitions."""

import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, String, Uuid
from sqlalchemy.sql import func

from practice_scheduling.database import Base


class Patient(Base):
    """Minimal patient record referenced by appointments."""
    __tablename__ = "patients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name = Column(String, nullable=False)
    date_of_birth = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
