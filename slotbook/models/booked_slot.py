"""Booked slot index model definitions."""

from sqlalchemy import Column, Date, ForeignKey, Integer, String, UniqueConstraint
from slotbook.database import Base


class BookedSlot(Base):
    """Secondary index of occupied slots, one row per non-cancelled appointment."""
    __tablename__ = "booked_slots"
    __table_args__ = (
        UniqueConstraint("organization_id", "date", "start", "end", name="uq_booked_slots_org_date_range"),
    )

    id = Column(Integer, primary_key=True)
    organization_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    appointment_id = Column(String, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False, unique=True)
    date = Column(Date, nullable=False)
    start = Column(String(5), nullable=False)
    end = Column(String(5), nullable=False)
