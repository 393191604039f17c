from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class BriefingSendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("user_id", "userId"))
    channel: Optional[str] = Field(
        default=None,
        pattern="^(email|whatsapp|both)$",
        validation_alias=AliasChoices("channel", "notificationType"),
    )


class BriefingPreferencesUpdate(BaseModel):
    dailyBriefing: Optional[bool] = None
    briefingTime: Optional[str] = Field(default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
