"""User model definitions."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String
from slotbook.database import Base

ROLE_ORGANIZATION = "organization"
ROLE_INDIVIDUAL = "individual"
USER_ROLES = (ROLE_ORGANIZATION, ROLE_INDIVIDUAL)


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Represents an application user, either an organization or an individual."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False)  # organization/individual
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    @property
    def is_organization(self) -> bool:
        return self.role == ROLE_ORGANIZATION

    @property
    def is_individual(self) -> bool:
        return self.role == ROLE_INDIVIDUAL
