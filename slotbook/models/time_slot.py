"""Cached time slot model definitions."""

import uuid

from sqlalchemy import Boolean, Column, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from slotbook.database import Base


class TimeSlot(Base):
    """A generated slot cached per organization and date.

    ``is_available`` is the organization's own flag for the slot. Bookings
    are merged in on read and never written here. ``id`` is the client-facing
    slot id; it is only unique within one organization's day.
    """
    __tablename__ = "time_slots"
    __table_args__ = (
        Index("idx_time_slots_org_date", "organization_id", "date"),
        UniqueConstraint("organization_id", "date", "id", name="uq_time_slots_org_date_id"),
    )

    row_id = Column(Integer, primary_key=True)
    id = Column(String, nullable=False, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    start = Column(String(5), nullable=False)
    end = Column(String(5), nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)


class CachedDay(Base):
    """Marks an organization's day as materialized, even when it holds no slots."""
    __tablename__ = "cached_days"

    organization_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    date = Column(Date, primary_key=True)
