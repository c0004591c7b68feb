import logging
import re
from datetime import date

from fastapi import HTTPException, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError

from slotbook.database import ensure_schema

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

TIME_PATTERN = re.compile(r'^([01]?[0-9]|2[0-3]):[0-5][0-9]$')
SLOT_TIME_PATTERN = re.compile(r'^([01][0-9]|2[0-3]):[0-5][0-9]$')


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def normalize_time(value: str) -> str:
    """Validate ``H:mm``/``HH:mm`` and return it zero-padded as ``HH:mm``."""
    if not TIME_PATTERN.match(value):
        raise ValueError('Invalid time format')
    hours, minutes = value.split(':')
    return f'{int(hours):02d}:{minutes}'


def ensure_database_ready() -> None:
    try:
        ensure_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def database_unavailable(exc: SQLAlchemyError) -> HTTPException:
    logger.error("Database operation failed: %s", exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def parse_date(value: str, detail: str = 'Invalid date format') -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail) from exc
