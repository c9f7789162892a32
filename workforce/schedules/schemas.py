"""Schedule Pydantic v2 schemas — request / response validation."""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from workforce.common.constants import RecurringType, ScheduleStatus
from workforce.shifts.schemas import ShiftBrief

MAX_RECURRING_INTERVAL = 31

# Allowed recurring_days per recurrence type
_DAY_RANGES: dict[RecurringType, range] = {
    RecurringType.daily: range(0),
    RecurringType.weekly: range(0, 7),
    RecurringType.monthly: range(1, 32),
}


def check_recurrence(
    start_date: date,
    end_date: date,
    is_recurring: bool,
    recurring_type: Optional[RecurringType],
    recurring_days: list[int],
    recurring_end_date: Optional[date],
) -> dict[str, list[str]]:
    """Return field errors for a schedule's date range and recurrence rule."""
    errors: dict[str, list[str]] = {}
    if end_date < start_date:
        errors["end_date"] = ["End date cannot be before start date."]
    if not is_recurring:
        return errors

    if recurring_type is None:
        errors["recurring_type"] = ["Recurring schedules need a recurring type."]
    else:
        allowed = _DAY_RANGES[recurring_type]
        if any(day not in allowed for day in recurring_days):
            if recurring_type == RecurringType.daily:
                message = "Daily schedules take no recurring days."
            else:
                message = (
                    f"{recurring_type.value.capitalize()} recurring days must be "
                    f"between {allowed.start} and {allowed.stop - 1}."
                )
            errors["recurring_days"] = [message]
    if recurring_end_date is not None and recurring_end_date < start_date:
        errors["recurring_end_date"] = ["Recurrence cannot end before the schedule starts."]
    return errors


class ScheduleEmployeeBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    email: str


class ScheduleCreate(BaseModel):
    shift_id: uuid.UUID
    employee_ids: list[uuid.UUID] = Field(default_factory=list)
    start_date: date
    end_date: date
    is_recurring: bool = False
    recurring_type: Optional[RecurringType] = None
    recurring_days: list[int] = Field(default_factory=list)
    recurring_interval: int = Field(1, ge=1, le=MAX_RECURRING_INTERVAL)
    recurring_end_date: Optional[date] = None

    @model_validator(mode="after")
    def _valid_rule(self) -> "ScheduleCreate":
        errors = check_recurrence(
            self.start_date,
            self.end_date,
            self.is_recurring,
            self.recurring_type,
            self.recurring_days,
            self.recurring_end_date,
        )
        if errors:
            raise ValueError(next(iter(errors.values()))[0])
        return self


class ScheduleUpdate(BaseModel):
    """Partial update. ``employee_ids`` replaces the assigned employees."""

    shift_id: Optional[uuid.UUID] = None
    employee_ids: Optional[list[uuid.UUID]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_recurring: Optional[bool] = None
    recurring_type: Optional[RecurringType] = None
    recurring_days: Optional[list[int]] = None
    recurring_interval: Optional[int] = Field(None, ge=1, le=MAX_RECURRING_INTERVAL)
    recurring_end_date: Optional[date] = None
    status: Optional[ScheduleStatus] = None


class ScheduleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    shift_id: uuid.UUID
    start_date: date
    end_date: date
    is_recurring: bool
    recurring_type: Optional[RecurringType] = None
    recurring_days: list[int] = Field(default_factory=list)
    recurring_interval: int
    recurring_end_date: Optional[date] = None
    status: ScheduleStatus
    created_by: Optional[uuid.UUID] = None
    shift: Optional[ShiftBrief] = None
    employees: list[ScheduleEmployeeBrief] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
