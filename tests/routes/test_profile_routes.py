import pytest
from pydantic import ValidationError

from slotbook.auth.passwords import hash_password
from slotbook.models.user import ROLE_INDIVIDUAL, User
from slotbook.routes.organization_routes import list_organizations
from slotbook.routes.profile_routes import ProfilePayload, get_profile, update_profile


def test_get_profile_defaults_to_user_record(db, individual_user) -> None:
    profile = get_profile(current_user=individual_user, db=db)

    assert profile.name == 'Jamie Rivera'
    assert profile.email == 'jamie@example.com'
    assert profile.notification_preferences.model_dump() == {'email': True, 'sms': False, 'reminders': True}


def test_get_profile_returns_short_stored_names(db) -> None:
    short_named = User(name='A', email='a@example.com', hashed_password=hash_password('secret123'), role=ROLE_INDIVIDUAL)
    db.add(short_named)
    db.commit()

    profile = get_profile(current_user=short_named, db=db)

    assert profile.name == 'A'
    assert profile.email == 'a@example.com'


@pytest.mark.parametrize(
    'overrides',
    [{'name': 'J'}, {'email': 'jamie'}, {'description': 'x' * 501}],
)
def test_profile_payload_rejects_invalid_fields(overrides: dict) -> None:
    payload = {'name': 'Jamie', 'email': 'jamie@example.com'}
    payload.update(overrides)

    with pytest.raises(ValidationError):
        ProfilePayload.model_validate(payload)


def test_update_profile_merges_fields(db, individual_user) -> None:
    update_profile(
        data=ProfilePayload.model_validate({
            'name': 'Jamie R.',
            'email': 'jamie@example.com',
            'phone': '555-0100',
            'notificationPreferences': {'email': False, 'sms': True, 'reminders': True},
        }),
        current_user=individual_user,
        db=db,
    )

    updated = update_profile(
        data=ProfilePayload(name='Jamie Rivera', email='jamie@example.com'),
        current_user=individual_user,
        db=db,
    )

    assert updated.name == 'Jamie Rivera'
    assert updated.phone == '555-0100'
    assert updated.notification_preferences.sms is True
    assert get_profile(current_user=individual_user, db=db).phone == '555-0100'


def test_organization_description_is_public(db, organization_user) -> None:
    update_profile(
        data=ProfilePayload(name='Harbor Clinic', email='clinic@example.com', description='Walk-in care'),
        current_user=organization_user,
        db=db,
    )

    assert [org.description for org in list_organizations(db=db)] == ['Walk-in care']
