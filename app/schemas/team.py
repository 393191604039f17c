from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TeamCreate(BaseModel):
    name: str = Field(min_length=1)
    departments: list[str] = []


class TeamJoin(BaseModel):
    join_code: str = Field(min_length=4, max_length=16)


class TeamDepartments(BaseModel):
    departments: list[str]


class TeamOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    owner_id: str
    join_code: str
    departments: list[str]
    created_at: datetime
