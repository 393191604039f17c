from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from app.schemas.user import PhoneMixin


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class TokenResponse(BaseModel):
    token: str


class RegisterRequest(PhoneMixin):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    phone: Optional[str] = None
    position: Optional[str] = None
    department: Optional[str] = None
    preferred_language: str = Field(default="en", validation_alias=AliasChoices("preferred_language", "preferredLanguage"))
    team_join_code: Optional[str] = Field(default=None, validation_alias=AliasChoices("team_join_code", "teamJoinCode"))
