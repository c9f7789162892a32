"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update / *Request → request bodies (write)
  - *Out                         → response bodies (read)
  - *Brief                       → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from workforce.common.constants import LeaveStatus, LeaveTypeStatus


# ═════════════════════════════════════════════════════════════════════
# Embedded / shared
# ═════════════════════════════════════════════════════════════════════


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in leave responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    department_id: Optional[uuid.UUID] = None


class LeaveTypeBrief(BaseModel):
    """Minimal leave type info embedded in leave responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    days_allowed: int


# ═════════════════════════════════════════════════════════════════════
# Leave Type
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    days_allowed: int = Field(..., gt=0, description="Annual entitlement in days")
    carry_forward: bool = False
    requires_approval: bool = True
    description: Optional[str] = None


class LeaveTypeUpdate(BaseModel):
    """Partial update — only provided fields are applied."""

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    days_allowed: Optional[int] = Field(None, gt=0)
    carry_forward: Optional[bool] = None
    requires_approval: Optional[bool] = None
    description: Optional[str] = None
    status: Optional[LeaveTypeStatus] = None


class LeaveTypeOut(BaseModel):
    """Full leave type representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    days_allowed: int
    carry_forward: bool = False
    requires_approval: bool = True
    status: LeaveTypeStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Create
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestDraft(BaseModel):
    """Payload for applying a leave request.

    Fields are deliberately loose: presence, date parsing and leave type
    resolution are checked by the leave engine so that each failure is
    reported with its own error code.
    """

    leave_type_id: Optional[Union[uuid.UUID, str]] = None
    start_date: Optional[Union[date, str]] = Field(
        None, description="Leave start date, YYYY-MM-DD (inclusive)",
    )
    end_date: Optional[Union[date, str]] = Field(
        None, description="Leave end date, YYYY-MM-DD (inclusive)",
    )
    reason: Optional[str] = Field(None, max_length=1000)


class ValidatedLeaveRequest(BaseModel):
    """Normalised request produced by the engine, ready to persist."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    number_of_days: int = Field(..., ge=1)
    reason: str
    status: LeaveStatus = LeaveStatus.pending


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Action
# ═════════════════════════════════════════════════════════════════════


class LeaveStatusUpdate(BaseModel):
    """Reviewer decision; ``status`` is checked by the engine."""

    status: str
    comments: Optional[str] = Field(None, max_length=1000)


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Response
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    number_of_days: int
    reason: str
    status: LeaveStatus
    comments: Optional[str] = None
    action_by: Optional[uuid.UUID] = None
    action_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class LeaveRequestDetail(LeaveRequestOut):
    """Leave request with its owner and leave type embedded.

    Only validate ORM rows whose relationships were eager-loaded.
    """

    employee: Optional[EmployeeBrief] = None
    leave_type: Optional[LeaveTypeBrief] = None


# ═════════════════════════════════════════════════════════════════════
# Balances & statistics
# ═════════════════════════════════════════════════════════════════════


class LeaveBalance(BaseModel):
    """Derived balance for one user and leave type; ``remaining`` may be negative."""

    leave_type_id: uuid.UUID
    leave_type_name: str
    year: int
    total: int
    used: int
    remaining: int


class LeaveStatsItem(BaseModel):
    """Approved usage for one leave type in the current year."""

    leave_type_id: uuid.UUID
    leave_type: str
    days_allowed: int
    days_used: int
    requests_count: int
    days_remaining: int


class LeaveDashboardOut(BaseModel):
    pending: int
    pending_change: int
    on_leave_today: int
    departments_affected: int
    upcoming: int
    current_month: int
    previous_month: int
