import logging
import random
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.auth.dependencies import get_current_user, require_individual, require_organization
from slotbook.database import get_db
from slotbook.models.appointment import (
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    STATUS_PENDING,
    Appointment,
)
from slotbook.models.user import User
from slotbook.routes.common import (
    CamelModel,
    database_unavailable,
    ensure_database_ready,
    normalize_time,
    parse_date,
)
from slotbook.services import calendar

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

MAX_APPOINTMENT_NOTES_LENGTH = 500
FILTER_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_CANCELLED, 'all')
ORGANIZATION_STATUS_UPDATES = (STATUS_CONFIRMED, STATUS_CANCELLED)


class TimeRange(BaseModel):
    start: str
    end: str

    @field_validator('start', 'end')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return normalize_time(value)


class CreateAppointmentRequest(CamelModel):
    organization_id: str = Field(min_length=1)
    date: date
    time_slot: TimeRange
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes cannot exceed {MAX_APPOINTMENT_NOTES_LENGTH} characters')

        return normalized


class UpdateStatusRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in ORGANIZATION_STATUS_UPDATES:
            raise ValueError('Status must be confirmed or cancelled.')
        return normalized


class AppointmentResponse(CamelModel):
    id: str
    organization_id: str
    organization_name: str
    individual_id: str
    individual_name: str
    date: date
    time_slot: TimeRange
    status: str
    notes: str | None = None
    number: str
    created_at: datetime | None = None


class AppointmentStatsResponse(BaseModel):
    total: int
    confirmed: int
    cancelled: int
    pending: int


def to_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        organization_id=appointment.organization_id,
        organization_name=appointment.organization_name or '',
        individual_id=appointment.individual_id,
        individual_name=appointment.individual_name or '',
        date=appointment.date,
        time_slot=TimeRange(start=appointment.slot_start, end=appointment.slot_end),
        status=appointment.status,
        notes=appointment.notes,
        number=appointment.number,
        created_at=appointment.created_at,
    )


def generate_appointment_number() -> str:
    return str(random.randint(100000, 999999))


def owned_appointments(db: Session, user: User):
    query = db.query(Appointment)
    if user.is_organization:
        return query.filter(Appointment.organization_id == user.id)
    return query.filter(Appointment.individual_id == user.id)


def cancel_appointment(db: Session, appointment: Appointment) -> None:
    appointment.status = STATUS_CANCELLED
    calendar.release_booking(db, appointment)


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointments = owned_appointments(db, current_user).order_by(
            Appointment.date.asc(),
            Appointment.slot_start.asc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return [to_response(appointment) for appointment in appointments]


@router.get('/stats', response_model=AppointmentStatsResponse)
def get_appointment_stats(current_user: User = Depends(require_organization), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        statuses = [
            row[0]
            for row in db.query(Appointment.status).filter(
                Appointment.organization_id == current_user.id,
            ).all()
        ]
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return AppointmentStatsResponse(
        total=len(statuses),
        confirmed=statuses.count(STATUS_CONFIRMED),
        cancelled=statuses.count(STATUS_CANCELLED),
        pending=statuses.count(STATUS_PENDING),
    )


@router.get('/filter', response_model=list[AppointmentResponse])
def filter_appointments(
    status_filter: str | None = Query(default=None, alias='status'),
    date_filter: str | None = Query(default=None, alias='date'),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if status_filter is not None and status_filter not in FILTER_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid parameters')
    day = parse_date(date_filter, 'Invalid date format') if date_filter else None

    ensure_database_ready()

    try:
        query = owned_appointments(db, current_user)
        if status_filter and status_filter != 'all':
            query = query.filter(Appointment.status == status_filter)
        if day is not None:
            query = query.filter(Appointment.date == day)
        appointments = query.order_by(Appointment.date.asc(), Appointment.slot_start.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return [to_response(appointment) for appointment in appointments]


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(require_individual),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    start = data.time_slot.start
    end = data.time_slot.end

    try:
        organization = db.get(User, data.organization_id)
        if organization is None or not organization.is_organization:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Organization not found')

        if calendar.is_day_locked(db, organization.id, data.date):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='This day is not available for booking',
            )

        settings = calendar.get_or_create_settings(db, organization.id)
        offered = {
            (slot.start, slot.end): slot
            for slot in calendar.get_cached_slots(db, settings, data.date)
        }
        slot = offered.get((start, end))
        if slot is None or not slot.is_available:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='This time slot is not offered by the organization',
            )

        if calendar.is_slot_booked(db, organization.id, data.date, start, end):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='This time slot is already booked',
            )

        appointment = Appointment(
            organization_id=organization.id,
            organization_name=organization.name,
            individual_id=current_user.id,
            individual_name=current_user.name,
            date=data.date,
            slot_start=start,
            slot_end=end,
            status=STATUS_PENDING,
            notes=data.notes,
            number=generate_appointment_number(),
        )
        db.add(appointment)
        db.flush()
        calendar.record_booking(db, appointment)
        db.commit()
        db.refresh(appointment)
    except IntegrityError as exc:
        # A concurrent booking claimed the slot between the check and the insert.
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='This time slot is already booked',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    logger.info(
        'Appointment %s booked with organization %s on %s %s-%s',
        appointment.id,
        appointment.organization_id,
        appointment.date.isoformat(),
        start,
        end,
    )
    return to_response(appointment)


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = owned_appointments(db, current_user).filter(Appointment.id == appointment_id).first()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    if appointment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Appointment not found')

    return to_response(appointment)


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: str,
    data: UpdateStatusRequest,
    current_user: User = Depends(require_organization),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.organization_id == current_user.id,
        ).first()

        if appointment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Appointment not found')

        if appointment.status == STATUS_CANCELLED and data.status == STATUS_CONFIRMED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Cancelled appointments cannot be confirmed',
            )

        if data.status == STATUS_CANCELLED:
            cancel_appointment(db, appointment)
        else:
            appointment.status = data.status

        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    logger.info('Appointment %s marked %s by organization %s', appointment.id, appointment.status, current_user.id)
    return to_response(appointment)


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_my_appointment(
    appointment_id: str,
    current_user: User = Depends(require_individual),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.individual_id == current_user.id,
        ).first()

        if appointment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Appointment not found')

        if appointment.status == STATUS_CANCELLED:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Appointment is already cancelled')

        cancel_appointment(db, appointment)
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    logger.info('Appointment %s cancelled by individual %s', appointment.id, current_user.id)
    return to_response(appointment)
