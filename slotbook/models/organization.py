"""Organization settings model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, JSON, String
from slotbook.database import Base


class OrganizationSettings(Base):
    """Business hours and slot configuration for one organization.

    ``business_hours`` holds seven ``{"day", "start", "end", "isOpen"}``
    entries keyed by English weekday name, times as ``HH:mm``.
    """
    __tablename__ = "organization_settings"

    organization_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    description = Column(String, default="")
    business_hours = Column(JSON, nullable=False)
    slot_duration = Column(Integer, nullable=False)
    break_between_slots = Column(Integer, nullable=False, default=0)
