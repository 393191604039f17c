from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationCreate(BaseModel):
    recipient_ids: list[str] = Field(min_length=1)
    channel: str = Field(default="both", pattern="^(email|whatsapp|both)$")
    subject: str = Field(min_length=1)
    content: str = Field(min_length=1)
    relation: str = Field(default="announcement", pattern="^(schedule|absence|announcement|traffic|daily-briefing|other)$")
    related_id: Optional[str] = None


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    channel: str
    recipient_id: str
    subject: str
    content: str
    relation: str
    related_id: Optional[str] = None
    status: str
    delivery: dict
    created_by: Optional[str] = None
    created_at: datetime
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    read_at: Optional[datetime] = None


class DispatchResponse(BaseModel):
    total: int
    sent: int
    failed: int
