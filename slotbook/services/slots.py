"""Slot generation, availability reconciliation and day status aggregation.

Everything here is pure: inputs are plain settings/slot values and the
functions never touch the database. ``slotbook.services.calendar`` wires
them to the stored cache and booking index.
"""

import uuid
from datetime import date, datetime, timedelta
from typing import Iterable

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

TIME_FORMAT = "%H:%M"
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class Slot(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    start: str
    end: str
    is_available: bool = True


class DayStatus(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_locked: bool
    available_slots: int
    total_slots: int


def default_business_hours() -> list[dict]:
    hours = []
    for day in WEEKDAYS:
        weekend = day in ("Saturday", "Sunday")
        hours.append({
            "day": day,
            "start": "09:00",
            "end": "13:00" if weekend else "17:00",
            "isOpen": not weekend,
        })
    return hours


def parse_time(value: str) -> datetime:
    """Parse ``HH:mm`` onto a fixed reference date; raises ValueError when malformed."""
    return datetime.strptime(value, TIME_FORMAT)


def format_time(value: datetime) -> str:
    return value.strftime(TIME_FORMAT)


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def find_business_hours(business_hours: Iterable[dict], day: date) -> dict | None:
    name = weekday_name(day)
    for entry in business_hours:
        if entry.get("day") == name:
            return entry
    return None


def generate_time_slots(
    day: date,
    business_hours: Iterable[dict],
    slot_duration: int,
    break_between_slots: int = 0,
) -> list[Slot]:
    entry = find_business_hours(business_hours, day)
    if entry is None or not entry.get("isOpen"):
        return []

    if slot_duration <= 0:
        raise ValueError("Slot duration must be positive.")

    open_time = parse_time(entry["start"])
    close_time = parse_time(entry["end"])
    duration = timedelta(minutes=slot_duration)
    step = duration + timedelta(minutes=max(break_between_slots, 0))

    slots: list[Slot] = []
    current = open_time
    while current + duration <= close_time:
        slots.append(
            Slot(
                id=str(uuid.uuid4()),
                start=format_time(current),
                end=format_time(current + duration),
            )
        )
        current += step

    return slots


def reconcile_slots(slots: Iterable[Slot], booked: Iterable[tuple[str, str]]) -> list[Slot]:
    """Return copies of ``slots`` with every booked ``(start, end)`` marked unavailable."""
    booked_ranges = set(booked)
    return [
        slot.model_copy(update={"is_available": False})
        if (slot.start, slot.end) in booked_ranges
        else slot.model_copy()
        for slot in slots
    ]


def lock_slots(slots: Iterable[Slot]) -> list[Slot]:
    return [slot.model_copy(update={"is_available": False}) for slot in slots]


def aggregate_day_status(slots: list[Slot], is_locked: bool) -> DayStatus:
    return DayStatus(
        is_locked=is_locked,
        available_slots=sum(1 for slot in slots if slot.is_available),
        total_slots=len(slots),
    )


def iterate_days(start: date, end: date) -> list[date]:
    days: list[date] = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days
