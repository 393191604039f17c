import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ClockInRequest(BaseModel):
    schedule_id: str
    notes: Optional[str] = None


class ClockOutRequest(BaseModel):
    notes: Optional[str] = None


class HourTrackingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    schedule_id: str
    date: dt.date
    clock_in: dt.datetime
    clock_out: Optional[dt.datetime] = None
    total_hours: Optional[float] = None
    status: str
    location_id: Optional[str] = None
    traffic_snapshot: Optional[dict] = None
    notes: Optional[str] = None
