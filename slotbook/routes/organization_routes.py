import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.auth.dependencies import get_current_user, require_organization
from slotbook.core import config
from slotbook.database import get_db
from slotbook.models.appointment import STATUS_CANCELLED, STATUS_CONFIRMED, Appointment
from slotbook.models.organization import OrganizationSettings
from slotbook.models.user import ROLE_ORGANIZATION, User
from slotbook.routes.common import (
    SLOT_TIME_PATTERN,
    CamelModel,
    database_unavailable,
    ensure_database_ready,
    normalize_time,
    parse_date,
)
from slotbook.services import calendar
from slotbook.services.slots import WEEKDAYS, DayStatus, Slot, iterate_days

router = APIRouter(tags=['organizations'])

logger = logging.getLogger(__name__)

MIN_SLOT_DURATION = 15
MAX_SLOT_DURATION = 120
MAX_BREAK_BETWEEN_SLOTS = 60


class BusinessHoursEntry(CamelModel):
    day: str
    start: str
    end: str
    is_open: bool

    @field_validator('day')
    @classmethod
    def validate_day(cls, value: str) -> str:
        normalized = value.strip().capitalize()
        if normalized not in WEEKDAYS:
            raise ValueError('Invalid day name.')
        return normalized

    @field_validator('start', 'end')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return normalize_time(value)

    @model_validator(mode='after')
    def validate_range(self):
        if self.is_open and self.start >= self.end:
            raise ValueError('Closing time must be after opening time.')
        return self


class SettingsPayload(CamelModel):
    business_hours: list[BusinessHoursEntry]
    slot_duration: int = Field(ge=MIN_SLOT_DURATION, le=MAX_SLOT_DURATION)
    break_between_slots: int = Field(ge=0, le=MAX_BREAK_BETWEEN_SLOTS)

    @field_validator('business_hours')
    @classmethod
    def validate_week(cls, value: list[BusinessHoursEntry]) -> list[BusinessHoursEntry]:
        days = [entry.day for entry in value]
        if len(days) != len(set(days)):
            raise ValueError('Each day may appear only once.')
        return value


class SettingsResponse(SettingsPayload):
    description: str = ''


class OrganizationSummary(BaseModel):
    id: str
    name: str
    description: str = ''


class DaySlotsResponse(CamelModel):
    date: date
    slots: list[Slot]
    is_locked: bool


class LockedDayRequest(CamelModel):
    is_locked: bool


class LockedDayResponse(CamelModel):
    date: date
    is_locked: bool


class MonthlyCount(BaseModel):
    month: str
    appointments: int


class AnalyticsMetrics(CamelModel):
    booking_rate: int
    cancellation_rate: int


class AnalyticsResponse(CamelModel):
    total_appointments: int
    completion_rate: int
    average_daily: int
    popular_time_slot: str
    monthly_data: list[MonthlyCount]
    metrics: AnalyticsMetrics


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return int(part * 100 / whole + 0.5)


def build_settings_response(settings: OrganizationSettings) -> SettingsResponse:
    return SettingsResponse(
        business_hours=settings.business_hours,
        slot_duration=settings.slot_duration,
        break_between_slots=settings.break_between_slots,
        description=settings.description or '',
    )


def parse_date_range(start: str, end: str) -> tuple[date, date]:
    start_date = parse_date(start, 'Invalid date range')
    end_date = parse_date(end, 'Invalid date range')
    if end_date < start_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid date range')
    if (end_date - start_date).days + 1 > config.MAX_STATUS_RANGE_DAYS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Date range cannot exceed {config.MAX_STATUS_RANGE_DAYS} days',
        )
    return start_date, end_date


def resolve_organization(current_user: User, organization_id: str | None, db: Session) -> OrganizationSettings:
    """Settings of the calendar being read: the given organization, else the caller's own."""
    if organization_id is None:
        if not current_user.is_organization:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Organization ID is required')
        organization_id = current_user.id

    organization = db.get(User, organization_id)
    if organization is None or not organization.is_organization:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Organization not found')

    return calendar.get_or_create_settings(db, organization_id)


@router.get('', response_model=list[OrganizationSummary])
def list_organizations(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        rows = db.query(User, OrganizationSettings.description).outerjoin(
            OrganizationSettings,
            OrganizationSettings.organization_id == User.id,
        ).filter(
            User.role == ROLE_ORGANIZATION,
        ).order_by(User.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return [
        OrganizationSummary(id=user.id, name=user.name, description=description or '')
        for user, description in rows
    ]


@router.get('/settings', response_model=SettingsResponse)
def get_settings(current_user: User = Depends(require_organization), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        settings = calendar.get_or_create_settings(db, current_user.id)
        db.commit()
        return build_settings_response(settings)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.put('/settings', response_model=SettingsResponse)
def update_settings(
    data: SettingsPayload,
    current_user: User = Depends(require_organization),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        settings = calendar.get_or_create_settings(db, current_user.id)
        settings.business_hours = [entry.model_dump(by_alias=True) for entry in data.business_hours]
        settings.slot_duration = data.slot_duration
        settings.break_between_slots = data.break_between_slots
        calendar.invalidate_slot_cache(db, current_user.id)
        db.commit()
        db.refresh(settings)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    logger.info(
        'Organization %s settings updated: duration=%s break=%s',
        current_user.id,
        data.slot_duration,
        data.break_between_slots,
    )
    return build_settings_response(settings)


@router.get('/slots/status', response_model=dict[str, DayStatus])
def get_slot_status(
    start: str = Query(...),
    end: str = Query(...),
    organization_id: str | None = Query(default=None, alias='organizationId'),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    start_date, end_date = parse_date_range(start, end)
    ensure_database_ready()

    try:
        settings = resolve_organization(current_user, organization_id, db)
        statuses = calendar.get_status_map(db, settings, start_date, end_date)
        db.commit()
        return statuses
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.get('/slots/{slot_date}', response_model=DaySlotsResponse)
def get_day_slots(
    slot_date: str,
    organization_id: str | None = Query(default=None, alias='organizationId'),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    day = parse_date(slot_date)
    ensure_database_ready()

    try:
        settings = resolve_organization(current_user, organization_id, db)
        if settings.organization_id == current_user.id:
            slots = calendar.get_day_slots(db, settings, day)
        else:
            slots = calendar.get_public_day_slots(db, settings, day)
        is_locked = calendar.is_day_locked(db, settings.organization_id, day)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return DaySlotsResponse(date=day, slots=slots, is_locked=is_locked)


@router.put('/slots/{slot_date}', response_model=DaySlotsResponse)
def update_day_slots(
    slot_date: str,
    slots: list[Slot],
    current_user: User = Depends(require_organization),
    db: Session = Depends(get_db),
):
    day = parse_date(slot_date)
    for slot in slots:
        if not SLOT_TIME_PATTERN.match(slot.start) or not SLOT_TIME_PATTERN.match(slot.end) or slot.start >= slot.end:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid time format')
    if len({slot.id for slot in slots}) != len(slots):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Slot ids must be unique')

    ensure_database_ready()

    try:
        settings = calendar.get_or_create_settings(db, current_user.id)
        calendar.replace_day_slots(db, current_user.id, day, slots)
        merged = calendar.get_day_slots(db, settings, day)
        is_locked = calendar.is_day_locked(db, current_user.id, day)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Slot ids conflict with stored slots',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    logger.info('Organization %s replaced %s slots on %s', current_user.id, len(slots), day.isoformat())
    return DaySlotsResponse(date=day, slots=merged, is_locked=is_locked)


@router.put('/locked-days/{locked_date}', response_model=LockedDayResponse)
def set_locked_day(
    locked_date: str,
    data: LockedDayRequest,
    current_user: User = Depends(require_organization),
    db: Session = Depends(get_db),
):
    day = parse_date(locked_date)
    ensure_database_ready()

    try:
        calendar.set_day_locked(db, current_user.id, day, data.is_locked)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    logger.info('Organization %s %s %s', current_user.id, 'locked' if data.is_locked else 'unlocked', day.isoformat())
    return LockedDayResponse(date=day, is_locked=data.is_locked)


@router.get('/analytics', response_model=AnalyticsResponse)
def get_analytics(
    start: str = Query(...),
    end: str = Query(...),
    current_user: User = Depends(require_organization),
    db: Session = Depends(get_db),
):
    start_date, end_date = parse_date_range(start, end)
    ensure_database_ready()

    try:
        appointments = db.query(Appointment).filter(
            Appointment.organization_id == current_user.id,
            Appointment.date >= start_date,
            Appointment.date <= end_date,
        ).all()

        settings = calendar.get_or_create_settings(db, current_user.id)
        days = iterate_days(start_date, end_date)
        total_slots = sum(len(calendar.get_cached_slots(db, settings, day)) for day in days)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    total = len(appointments)
    confirmed = sum(1 for appointment in appointments if appointment.status == STATUS_CONFIRMED)
    cancelled = sum(1 for appointment in appointments if appointment.status == STATUS_CANCELLED)

    start_counts: dict[str, int] = {}
    for appointment in appointments:
        start_counts[appointment.slot_start] = start_counts.get(appointment.slot_start, 0) + 1
    popular_time_slot = max(sorted(start_counts), key=start_counts.get) if start_counts else 'N/A'

    monthly: dict[tuple[int, int], int] = {}
    for day in days:
        monthly.setdefault((day.year, day.month), 0)
    for appointment in appointments:
        monthly[(appointment.date.year, appointment.date.month)] += 1

    return AnalyticsResponse(
        total_appointments=total,
        completion_rate=_percent(confirmed, total),
        average_daily=int(total / len(days) + 0.5) if total else 0,
        popular_time_slot=popular_time_slot,
        monthly_data=[
            MonthlyCount(month=date(year, month, 1).strftime('%b'), appointments=count)
            for (year, month), count in monthly.items()
        ],
        metrics=AnalyticsMetrics(
            booking_rate=_percent(total, total_slots),
            cancellation_rate=_percent(cancelled, total),
        ),
    )
