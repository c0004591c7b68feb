"""Database-backed slot cache, booked-slot index and locked days.

Functions here add, flush and delete but never commit; the calling route owns
the transaction.
"""

import logging
from datetime import date

from sqlalchemy.orm import Session

from slotbook.core import config
from slotbook.models.appointment import Appointment
from slotbook.models.booked_slot import BookedSlot
from slotbook.models.locked_day import LockedDay
from slotbook.models.organization import OrganizationSettings
from slotbook.models.time_slot import CachedDay, TimeSlot
from slotbook.services.slots import (
    DayStatus,
    Slot,
    aggregate_day_status,
    default_business_hours,
    generate_time_slots,
    iterate_days,
    lock_slots,
    reconcile_slots,
)

logger = logging.getLogger(__name__)


def initialize_settings(db: Session, organization_id: str) -> OrganizationSettings:
    settings = OrganizationSettings(
        organization_id=organization_id,
        description="",
        business_hours=default_business_hours(),
        slot_duration=config.DEFAULT_SLOT_DURATION,
        break_between_slots=config.DEFAULT_BREAK_BETWEEN_SLOTS,
    )
    db.add(settings)
    db.flush()
    return settings


def get_or_create_settings(db: Session, organization_id: str) -> OrganizationSettings:
    settings = db.get(OrganizationSettings, organization_id)
    if settings is None:
        settings = initialize_settings(db, organization_id)
    return settings


def invalidate_slot_cache(db: Session, organization_id: str) -> int:
    removed = db.query(TimeSlot).filter(
        TimeSlot.organization_id == organization_id,
    ).delete(synchronize_session=False)
    db.query(CachedDay).filter(
        CachedDay.organization_id == organization_id,
    ).delete(synchronize_session="fetch")
    logger.info("Invalidated %s cached slots for organization %s", removed, organization_id)
    return removed


def _to_slot(row: TimeSlot) -> Slot:
    return Slot(id=row.id, start=row.start, end=row.end, is_available=row.is_available)


def get_cached_slots(db: Session, settings: OrganizationSettings, day: date) -> list[Slot]:
    """Return the organization's slots for ``day``, generating and caching them on first read."""
    rows = db.query(TimeSlot).filter(
        TimeSlot.organization_id == settings.organization_id,
        TimeSlot.date == day,
    ).order_by(TimeSlot.start.asc()).all()
    if rows or db.get(CachedDay, (settings.organization_id, day)) is not None:
        return [_to_slot(row) for row in rows]

    generated = generate_time_slots(
        day,
        settings.business_hours,
        settings.slot_duration,
        settings.break_between_slots,
    )
    for slot in generated:
        db.add(
            TimeSlot(
                id=slot.id,
                organization_id=settings.organization_id,
                date=day,
                start=slot.start,
                end=slot.end,
                is_available=slot.is_available,
            )
        )
    db.add(CachedDay(organization_id=settings.organization_id, date=day))
    db.flush()
    return generated


def replace_day_slots(db: Session, organization_id: str, day: date, slots: list[Slot]) -> list[Slot]:
    # Deletes flush before inserts so re-sent ids clear the per-day unique constraint.
    for row in db.query(TimeSlot).filter(
        TimeSlot.organization_id == organization_id,
        TimeSlot.date == day,
    ).all():
        db.delete(row)
    db.flush()
    if db.get(CachedDay, (organization_id, day)) is None:
        db.add(CachedDay(organization_id=organization_id, date=day))

    for slot in slots:
        db.add(
            TimeSlot(
                id=slot.id,
                organization_id=organization_id,
                date=day,
                start=slot.start,
                end=slot.end,
                is_available=slot.is_available,
            )
        )
    db.flush()
    return sorted(slots, key=lambda slot: slot.start)


def get_booked_ranges(db: Session, organization_id: str, day: date) -> set[tuple[str, str]]:
    rows = db.query(BookedSlot.start, BookedSlot.end).filter(
        BookedSlot.organization_id == organization_id,
        BookedSlot.date == day,
    ).all()
    return {(start, end) for start, end in rows}


def is_slot_booked(db: Session, organization_id: str, day: date, start: str, end: str) -> bool:
    return db.query(BookedSlot.id).filter(
        BookedSlot.organization_id == organization_id,
        BookedSlot.date == day,
        BookedSlot.start == start,
        BookedSlot.end == end,
    ).first() is not None


def record_booking(db: Session, appointment: Appointment) -> BookedSlot:
    entry = BookedSlot(
        organization_id=appointment.organization_id,
        appointment_id=appointment.id,
        date=appointment.date,
        start=appointment.slot_start,
        end=appointment.slot_end,
    )
    db.add(entry)
    db.flush()
    return entry


def release_booking(db: Session, appointment: Appointment) -> bool:
    removed = db.query(BookedSlot).filter(
        BookedSlot.appointment_id == appointment.id,
    ).delete(synchronize_session=False)
    if removed:
        logger.info(
            "Released slot %s-%s on %s for appointment %s",
            appointment.slot_start,
            appointment.slot_end,
            appointment.date.isoformat(),
            appointment.id,
        )
    return bool(removed)


def is_day_locked(db: Session, organization_id: str, day: date) -> bool:
    return db.get(LockedDay, (organization_id, day)) is not None


def get_locked_days(db: Session, organization_id: str, start: date, end: date) -> set[date]:
    rows = db.query(LockedDay.date).filter(
        LockedDay.organization_id == organization_id,
        LockedDay.date >= start,
        LockedDay.date <= end,
    ).all()
    return {row[0] for row in rows}


def set_day_locked(db: Session, organization_id: str, day: date, locked: bool) -> bool:
    existing = db.get(LockedDay, (organization_id, day))
    if locked and existing is None:
        db.add(LockedDay(organization_id=organization_id, date=day))
        db.flush()
    elif not locked and existing is not None:
        db.delete(existing)
        db.flush()
    return locked


def get_day_slots(db: Session, settings: OrganizationSettings, day: date) -> list[Slot]:
    """Cached slots for ``day`` with bookings merged in."""
    slots = get_cached_slots(db, settings, day)
    return reconcile_slots(slots, get_booked_ranges(db, settings.organization_id, day))


def get_public_day_slots(db: Session, settings: OrganizationSettings, day: date) -> list[Slot]:
    """Slots as offered to individuals: a locked day offers nothing."""
    slots = get_day_slots(db, settings, day)
    if is_day_locked(db, settings.organization_id, day):
        return lock_slots(slots)
    return slots


def get_status_map(db: Session, settings: OrganizationSettings, start: date, end: date) -> dict[str, DayStatus]:
    locked_days = get_locked_days(db, settings.organization_id, start, end)
    return {
        day.isoformat(): aggregate_day_status(get_day_slots(db, settings, day), day in locked_days)
        for day in iterate_days(start, end)
    }
