from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AbsenceCreate(BaseModel):
    start_date: date
    end_date: date
    reason: str = Field(min_length=1)
    type: str = Field(default="other", pattern="^(sick|vacation|personal|other)$")
    schedule_id: Optional[str] = None

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class AbsenceReview(BaseModel):
    notes: Optional[str] = None
    replacement_id: Optional[str] = None


class AbsenceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    schedule_id: Optional[str] = None
    start_date: date
    end_date: date
    reason: str
    type: str
    status: str
    replacement_needed: bool
    replacement_id: Optional[str] = None
    reviewed_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
