from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.auth.dependencies import get_current_user
from slotbook.database import get_db
from slotbook.models.profile import Profile
from slotbook.models.user import User
from slotbook.routes.common import CamelModel, database_unavailable, ensure_database_ready
from slotbook.services import calendar

router = APIRouter(tags=['profile'])

MAX_DESCRIPTION_LENGTH = 500


class NotificationPreferences(BaseModel):
    email: bool = True
    sms: bool = False
    reminders: bool = True


class ProfilePayload(CamelModel):
    name: str = Field(min_length=2)
    email: EmailStr
    phone: str | None = None
    notification_preferences: NotificationPreferences | None = None
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    address: str | None = None


class ProfileResponse(CamelModel):
    """Stored profile as returned; input rules apply only to updates."""
    name: str
    email: str
    phone: str | None = None
    notification_preferences: NotificationPreferences | None = None
    description: str | None = None
    address: str | None = None


def build_profile(user: User, profile: Profile | None) -> ProfileResponse:
    if profile is None:
        return ProfileResponse(
            name=user.name,
            email=user.email,
            notification_preferences=NotificationPreferences(),
        )

    return ProfileResponse(
        name=profile.name,
        email=profile.email,
        phone=profile.phone,
        notification_preferences=profile.notification_preferences,
        description=profile.description,
        address=profile.address,
    )


@router.get('', response_model=ProfileResponse, response_model_exclude_none=True)
def get_profile(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        profile = db.get(Profile, current_user.id)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return build_profile(current_user, profile)


@router.put('', response_model=ProfileResponse, response_model_exclude_none=True)
def update_profile(
    data: ProfilePayload,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        profile = db.get(Profile, current_user.id)
        if profile is None:
            profile = Profile(user_id=current_user.id, name=data.name, email=data.email)
            db.add(profile)

        # Fields left out of the request keep their stored values.
        for field_name in data.model_fields_set:
            value = getattr(data, field_name)
            if field_name == 'notification_preferences' and value is not None:
                value = value.model_dump()
            setattr(profile, field_name, value)

        if current_user.is_organization and data.description is not None:
            settings = calendar.get_or_create_settings(db, current_user.id)
            settings.description = data.description

        db.commit()
        db.refresh(profile)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return build_profile(current_user, profile)
