from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class MetaText(BaseModel):
    body: str = ""


class MetaAudio(BaseModel):
    id: str
    mime_type: Optional[str] = None
    voice: Optional[bool] = None


class MetaMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sender: str = Field(validation_alias=AliasChoices("from", "sender"))
    id: Optional[str] = None
    type: str = "text"
    timestamp: Optional[str] = None
    text: Optional[MetaText] = None
    audio: Optional[MetaAudio] = None


class MetaValue(BaseModel):
    model_config = ConfigDict(extra="ignore")

    messaging_product: Optional[str] = None
    messages: list[MetaMessage] = []
    statuses: list[dict[str, Any]] = []


class MetaChange(BaseModel):
    field: Optional[str] = None
    value: MetaValue = Field(default_factory=MetaValue)


class MetaEntry(BaseModel):
    id: Optional[str] = None
    changes: list[MetaChange] = []


class WebhookPayload(BaseModel):
    object: Optional[str] = None
    entry: list[MetaEntry] = []


@dataclass
class InboundMessage:
    phone: str
    kind: str  # text, audio, other
    text: str = ""
    media_id: Optional[str] = None
    message_id: Optional[str] = None
    raw_type: Optional[str] = None


class SendMessageRequest(BaseModel):
    phone: str = Field(min_length=5)
    message: str = Field(min_length=1)


class WhatsAppSettingsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: Optional[bool] = None
    auto_reply: Optional[bool] = Field(default=None, validation_alias=AliasChoices("auto_reply", "autoReplyEnabled", "autoReply"))
    ai_processing: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("ai_processing", "aiProcessingEnabled", "aiProcessing")
    )
    max_response_length: Optional[int] = Field(
        default=None, ge=20, le=4096, validation_alias=AliasChoices("max_response_length", "maxResponseLength")
    )
    welcome_message: Optional[str] = Field(default=None, validation_alias=AliasChoices("welcome_message", "welcomeMessage"))
    ai_system_instructions: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ai_system_instructions", "aiSystemInstructions")
    )
    templates: Optional[dict[str, Any]] = None
    text_templates: Optional[dict[str, str]] = Field(
        default=None, validation_alias=AliasChoices("text_templates", "notificationTemplates")
    )


class WhatsAppSettingsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    enabled: bool
    auto_reply: bool
    ai_processing: bool
    max_response_length: int
    welcome_message: Optional[str] = None
    ai_system_instructions: Optional[str] = None
    templates: dict[str, Any]
    text_templates: dict[str, str]


class ConversationMessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender: str
    content: str
    audio_ref: Optional[str] = None
    created_at: datetime


class ConversationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    platform: str
    context: dict
    active: bool
    last_activity: datetime


class ConversationDetail(ConversationOut):
    messages: list[ConversationMessageOut] = []
