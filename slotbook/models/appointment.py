"""Appointment model definitions."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, String
from slotbook.database import Base

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"
APPOINTMENT_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_CANCELLED)


class Appointment(Base):
    """Represents an individual's booking of one organization slot."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_org_date", "organization_id", "date"),
        Index("idx_appointments_individual", "individual_id"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String, ForeignKey("users.id"), nullable=False)
    organization_name = Column(String, default="")
    individual_id = Column(String, ForeignKey("users.id"), nullable=False)
    individual_name = Column(String, default="")
    date = Column(Date, nullable=False)
    slot_start = Column(String(5), nullable=False)
    slot_end = Column(String(5), nullable=False)
    status = Column(String, default=STATUS_PENDING, nullable=False)
    notes = Column(String, nullable=True)
    number = Column(String(6), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
