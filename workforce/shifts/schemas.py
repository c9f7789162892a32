"""Shift Pydantic v2 schemas.

Times are wall-clock values (``HH:MM:SS``); a shift whose end is earlier
than its start runs past midnight.
"""


import uuid
from datetime import datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from workforce.common.constants import ShiftStatus


class ShiftDepartmentBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str


class ShiftCreatorBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str
    last_name: str


class ShiftCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    start_time: time
    end_time: time
    description: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    status: ShiftStatus = ShiftStatus.active

    @model_validator(mode="after")
    def _distinct_times(self) -> "ShiftCreate":
        if self.start_time == self.end_time:
            raise ValueError("Shift start and end times must differ")
        return self


class ShiftUpdate(BaseModel):
    """Partial update — only provided fields are applied."""

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    description: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    status: Optional[ShiftStatus] = None


class ShiftBrief(BaseModel):
    """Compact shift embedded in schedules."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    start_time: time
    end_time: time


class ShiftResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    start_time: time
    end_time: time
    description: Optional[str] = None
    status: ShiftStatus
    department_id: Optional[uuid.UUID] = None
    created_by: Optional[uuid.UUID] = None
    department: Optional[ShiftDepartmentBrief] = None
    creator: Optional[ShiftCreatorBrief] = None
    created_at: datetime
    updated_at: datetime
