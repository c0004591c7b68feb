"""Profile model definitions."""

from sqlalchemy import Column, ForeignKey, JSON, String
from slotbook.database import Base


class Profile(Base):
    """Editable contact details and notification preferences of a user."""
    __tablename__ = "profiles"

    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    notification_preferences = Column(JSON, nullable=True)
    description = Column(String, nullable=True)
    address = Column(String, nullable=True)
