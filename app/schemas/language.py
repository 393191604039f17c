from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class LanguageSettingsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    preferred_language: Optional[str] = Field(
        default=None,
        pattern=r"^[a-z]{2}(-[A-Z]{2})?$",
        validation_alias=AliasChoices("preferred_language", "preferredLanguage"),
    )
    voice_language: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("voice_language", "voiceRecognitionLanguage")
    )
