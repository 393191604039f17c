import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ScheduleCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    date: dt.date
    start_time: dt.datetime
    end_time: dt.datetime
    location_id: str
    employee_ids: list[str] = []
    allow_auto_replacement: bool = False
    notification_preferences: Optional[dict] = None

    @model_validator(mode="after")
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ScheduleUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[dt.date] = None
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    location_id: Optional[str] = None
    employee_ids: Optional[list[str]] = None
    allow_auto_replacement: Optional[bool] = None
    notification_preferences: Optional[dict] = None


class ScheduleStatusUpdate(BaseModel):
    status: str = Field(pattern="^(scheduled|in-progress|completed|cancelled)$")


class ScheduleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    date: dt.date
    start_time: dt.datetime
    end_time: dt.datetime
    location_id: str
    employee_ids: list[str]
    status: str
    allow_auto_replacement: bool
    notification_preferences: dict
