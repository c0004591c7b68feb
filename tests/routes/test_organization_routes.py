import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from slotbook.routes.organization_routes import (
    LockedDayRequest,
    SettingsPayload,
    get_analytics,
    get_day_slots,
    get_settings,
    get_slot_status,
    list_organizations,
    parse_date_range,
    set_locked_day,
    update_day_slots,
    update_settings,
)
from slotbook.services.slots import Slot, default_business_hours


def _settings_payload(slot_duration: int = 30, break_between_slots: int = 0, **overrides) -> SettingsPayload:
    payload = {
        'businessHours': default_business_hours(),
        'slotDuration': slot_duration,
        'breakBetweenSlots': break_between_slots,
    }
    payload.update(overrides)
    return SettingsPayload.model_validate(payload)


def _status(organization_user, db, start: str = '2026-01-05', end: str = '2026-01-05'):
    return get_slot_status(start=start, end=end, organization_id=None, current_user=organization_user, db=db)


def test_list_organizations_returns_public_fields(db, organization_user, individual_user) -> None:
    organizations = list_organizations(db=db)

    assert [(org.id, org.name, org.description) for org in organizations] == [
        (organization_user.id, 'Harbor Clinic', ''),
    ]


def test_get_settings_returns_defaults(db, organization_user) -> None:
    settings = get_settings(current_user=organization_user, db=db)

    assert settings.slot_duration == 30
    assert settings.break_between_slots == 0
    assert [entry.day for entry in settings.business_hours if entry.is_open] == [
        'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday',
    ]


@pytest.mark.parametrize(
    'overrides',
    [
        {'slotDuration': 10},
        {'slotDuration': 121},
        {'breakBetweenSlots': 61},
        {'businessHours': [{'day': 'Monday', 'start': '9am', 'end': '17:00', 'isOpen': True}]},
        {'businessHours': [{'day': 'Monday', 'start': '17:00', 'end': '09:00', 'isOpen': True}]},
        {'businessHours': [{'day': 'Funday', 'start': '09:00', 'end': '17:00', 'isOpen': True}]},
    ],
)
def test_settings_payload_rejects_invalid_values(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        _settings_payload(**overrides)


def test_settings_payload_normalizes_single_digit_hours() -> None:
    payload = _settings_payload(businessHours=[{'day': 'monday', 'start': '9:00', 'end': '17:00', 'isOpen': True}])

    assert payload.business_hours[0].day == 'Monday'
    assert payload.business_hours[0].start == '09:00'


def test_update_settings_invalidates_cached_slots(db, organization_user) -> None:
    before = _status(organization_user, db)
    assert before['2026-01-05'].total_slots == 16

    update_settings(data=_settings_payload(slot_duration=60), current_user=organization_user, db=db)

    after = _status(organization_user, db)
    assert after['2026-01-05'].total_slots == 8
    day = get_day_slots(slot_date='2026-01-05', organization_id=None, current_user=organization_user, db=db)
    assert (day.slots[0].start, day.slots[0].end) == ('09:00', '10:00')


def test_slot_status_requires_organization_id_for_individuals(db, organization_user, individual_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_slot_status(start='2026-01-05', end='2026-01-06', organization_id=None, current_user=individual_user, db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Organization ID is required'


def test_slot_status_for_individual_reads_requested_organization(db, organization_user, individual_user) -> None:
    statuses = get_slot_status(
        start='2026-01-09',
        end='2026-01-10',
        organization_id=organization_user.id,
        current_user=individual_user,
        db=db,
    )

    assert statuses['2026-01-09'].total_slots == 16
    assert statuses['2026-01-10'].total_slots == 0


def test_slot_status_rejects_unknown_organization(db, individual_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_slot_status(start='2026-01-05', end='2026-01-05', organization_id='missing', current_user=individual_user, db=db)

    assert exception_info.value.status_code == 404


@pytest.mark.parametrize(
    ('start', 'end', 'detail'),
    [
        ('2026-01-06', '2026-01-05', 'Invalid date range'),
        ('not-a-date', '2026-01-05', 'Invalid date range'),
        ('2026-01-01', '2026-06-01', 'Date range cannot exceed 62 days'),
    ],
)
def test_parse_date_range_rejects_invalid_ranges(start: str, end: str, detail: str) -> None:
    with pytest.raises(HTTPException) as exception_info:
        parse_date_range(start, end)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == detail


def test_locking_day_reports_locked_without_changing_counts(db, organization_user) -> None:
    response = set_locked_day(
        locked_date='2026-01-05',
        data=LockedDayRequest(is_locked=True),
        current_user=organization_user,
        db=db,
    )
    assert response.is_locked is True

    statuses = _status(organization_user, db)
    assert statuses['2026-01-05'].is_locked is True
    assert statuses['2026-01-05'].available_slots == 16

    set_locked_day(
        locked_date='2026-01-05',
        data=LockedDayRequest.model_validate({'isLocked': False}),
        current_user=organization_user,
        db=db,
    )
    assert _status(organization_user, db)['2026-01-05'].is_locked is False


def test_locked_day_hides_slots_from_individuals(db, organization_user, individual_user) -> None:
    set_locked_day(locked_date='2026-01-05', data=LockedDayRequest(is_locked=True), current_user=organization_user, db=db)

    day = get_day_slots(slot_date='2026-01-05', organization_id=organization_user.id, current_user=individual_user, db=db)

    assert day.is_locked is True
    assert len(day.slots) == 16
    assert not any(slot.is_available for slot in day.slots)


def test_get_day_slots_rejects_bad_date(db, organization_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_day_slots(slot_date='2026-13-01', organization_id=None, current_user=organization_user, db=db)

    assert exception_info.value.status_code == 400


def test_update_day_slots_replaces_day(db, organization_user) -> None:
    response = update_day_slots(
        slot_date='2026-01-05',
        slots=[
            Slot(id='b', start='13:00', end='14:00', is_available=False),
            Slot(id='a', start='09:00', end='10:00'),
        ],
        current_user=organization_user,
        db=db,
    )

    assert [(slot.id, slot.is_available) for slot in response.slots] == [('a', True), ('b', False)]
    assert _status(organization_user, db)['2026-01-05'].available_slots == 1


def test_update_day_slots_with_empty_list_closes_day(db, organization_user) -> None:
    response = update_day_slots(slot_date='2026-01-05', slots=[], current_user=organization_user, db=db)

    assert response.slots == []
    day = get_day_slots(slot_date='2026-01-05', organization_id=None, current_user=organization_user, db=db)
    assert day.slots == []
    assert _status(organization_user, db)['2026-01-05'].total_slots == 0

    update_settings(data=_settings_payload(), current_user=organization_user, db=db)

    assert _status(organization_user, db)['2026-01-05'].total_slots == 16


def test_update_day_slots_allows_same_ids_across_organizations(db, organization_user, other_organization_user) -> None:
    for owner, start, end in ((organization_user, '09:00', '10:00'), (other_organization_user, '10:00', '11:00')):
        update_day_slots(
            slot_date='2026-01-05',
            slots=[Slot(id='x', start=start, end=end)],
            current_user=owner,
            db=db,
        )

    own = get_day_slots(slot_date='2026-01-05', organization_id=None, current_user=organization_user, db=db)
    other = get_day_slots(slot_date='2026-01-05', organization_id=None, current_user=other_organization_user, db=db)
    assert [(slot.id, slot.start) for slot in own.slots] == [('x', '09:00')]
    assert [(slot.id, slot.start) for slot in other.slots] == [('x', '10:00')]


def test_update_day_slots_reports_id_conflicts_as_bad_request(db, organization_user, monkeypatch) -> None:
    def conflicting_replace(*args, **kwargs):
        raise IntegrityError('INSERT INTO time_slots', {}, Exception('UNIQUE constraint failed'))

    monkeypatch.setattr('slotbook.services.calendar.replace_day_slots', conflicting_replace)

    with pytest.raises(HTTPException) as exception_info:
        update_day_slots(
            slot_date='2026-01-05',
            slots=[Slot(id='x', start='09:00', end='10:00')],
            current_user=organization_user,
            db=db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Slot ids conflict with stored slots'


def test_update_day_slots_rejects_bad_times(db, organization_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_day_slots(
            slot_date='2026-01-05',
            slots=[Slot(id='a', start='10:00', end='09:00')],
            current_user=organization_user,
            db=db,
        )

    assert exception_info.value.status_code == 400


def test_analytics_without_appointments(db, organization_user) -> None:
    analytics = get_analytics(start='2026-01-05', end='2026-01-09', current_user=organization_user, db=db)

    assert analytics.total_appointments == 0
    assert analytics.popular_time_slot == 'N/A'
    assert analytics.metrics.booking_rate == 0
    assert [(entry.month, entry.appointments) for entry in analytics.monthly_data] == [('Jan', 0)]
    assert analytics.model_dump(by_alias=True)['metrics'] == {'bookingRate': 0, 'cancellationRate': 0}


def test_settings_endpoints_serialize_camel_case(db, organization_user) -> None:
    dumped = get_settings(current_user=organization_user, db=db).model_dump(by_alias=True)

    assert set(dumped) == {'businessHours', 'slotDuration', 'breakBetweenSlots', 'description'}
    assert dumped['businessHours'][0] == {'day': 'Monday', 'start': '09:00', 'end': '17:00', 'isOpen': True}
