import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from slotbook.auth.passwords import hash_password  # noqa: E402
from slotbook.database import Base  # noqa: E402
from slotbook.models import (  # noqa: E402,F401
    appointment,
    booked_slot,
    locked_day,
    organization,
    profile,
    time_slot,
    user,
)
from slotbook.models.user import ROLE_INDIVIDUAL, ROLE_ORGANIZATION, User  # noqa: E402
from slotbook.services.calendar import initialize_settings  # noqa: E402


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def skip_schema_check(monkeypatch: pytest.MonkeyPatch) -> None:
    for module in ('auth_routes', 'appointment_routes', 'organization_routes', 'profile_routes'):
        monkeypatch.setattr(f'slotbook.routes.{module}.ensure_database_ready', lambda: None)


def _make_user(db, name: str, email: str, role: str) -> User:
    created = User(name=name, email=email, hashed_password=hash_password('secret123'), role=role)
    db.add(created)
    db.flush()
    if role == ROLE_ORGANIZATION:
        initialize_settings(db, created.id)
    db.commit()
    db.refresh(created)
    return created


@pytest.fixture
def organization_user(db) -> User:
    return _make_user(db, 'Harbor Clinic', 'clinic@example.com', ROLE_ORGANIZATION)


@pytest.fixture
def other_organization_user(db) -> User:
    return _make_user(db, 'Northside Dental', 'dental@example.com', ROLE_ORGANIZATION)


@pytest.fixture
def individual_user(db) -> User:
    return _make_user(db, 'Jamie Rivera', 'jamie@example.com', ROLE_INDIVIDUAL)


@pytest.fixture
def other_individual_user(db) -> User:
    return _make_user(db, 'Sam Okafor', 'sam@example.com', ROLE_INDIVIDUAL)
