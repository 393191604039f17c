from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.models.user import normalize_phone

LANGUAGE_PATTERN = r"^[a-z]{2}(-[A-Z]{2})?$"


class NotificationPreferences(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: bool = True
    whatsapp: bool = True
    dailyBriefing: bool = False
    briefingTime: str = Field(default="07:00", pattern=r"^\d{2}:\d{2}$")


class PhoneMixin(BaseModel):
    @field_validator("phone", mode="before", check_fields=False)
    @classmethod
    def normalize_phone_number(cls, value: object) -> Optional[str]:
        return normalize_phone(value)


class UserCreate(PhoneMixin):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    phone: Optional[str] = None
    role: str = Field(default="employee", pattern="^(admin|employee)$")
    position: Optional[str] = None
    department: Optional[str] = None
    team_id: Optional[str] = None
    default_location_id: Optional[str] = None
    preferred_language: str = Field(default="en", pattern=LANGUAGE_PATTERN)


class UserUpdate(PhoneMixin):
    name: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = None
    role: Optional[str] = Field(default=None, pattern="^(admin|employee)$")
    position: Optional[str] = None
    department: Optional[str] = None
    default_location_id: Optional[str] = None
    preferred_language: Optional[str] = Field(default=None, pattern=LANGUAGE_PATTERN)

    @field_validator("name", "role", "preferred_language")
    @classmethod
    def not_null(cls, value: Optional[str]) -> str:
        if value is None:
            raise ValueError("may not be null")
        return value


class ProfileUpdate(PhoneMixin):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    position: Optional[str] = None
    department: Optional[str] = None
    notification_preferences: Optional[NotificationPreferences] = Field(
        default=None, validation_alias=AliasChoices("notification_preferences", "notificationPreferences")
    )

    @field_validator("name", "email")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class PasswordChange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(min_length=1, validation_alias=AliasChoices("current_password", "currentPassword"))
    new_password: str = Field(min_length=6, validation_alias=AliasChoices("new_password", "newPassword"))


class DefaultLocationUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    location_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("location_id", "locationId"))


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    phone: Optional[str] = None
    role: str
    position: Optional[str] = None
    department: Optional[str] = None
    team_id: Optional[str] = None
    default_location_id: Optional[str] = None
    preferred_language: str
    voice_language: Optional[str] = None
    notification_preferences: dict
    created_at: datetime
