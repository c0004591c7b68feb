"""Locked day model definitions."""

from sqlalchemy import Column, Date, ForeignKey, String
from slotbook.database import Base


class LockedDay(Base):
    """A date on which an organization accepts no bookings."""
    __tablename__ = "locked_days"

    organization_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    date = Column(Date, primary_key=True)
