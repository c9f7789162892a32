"""Enums and constants shared across the workforce modules."""

from __future__ import annotations

import enum

# Defined beside the setting that selects it; re-exported here with the other enums
from workforce.config import LeaveBalancePolicy  # noqa: F401


# ── Employee / Core HR ──────────────────────────────────────────────

class GenderType(str, enum.Enum):
    male = "male"
    female = "female"
    other = "other"


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    admin = "admin"


# Prefix used in role-scoped employee codes (WACLY-EMP-0001, ...)
ROLE_CODE_PREFIX: dict[UserRole, str] = {
    UserRole.admin: "ADM",
    UserRole.manager: "MNG",
    UserRole.employee: "EMP",
}


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "Pending"
    approved = "Approved"
    rejected = "Rejected"


class LeaveTypeStatus(str, enum.Enum):
    active = "Active"
    inactive = "Inactive"


# Statuses that hold calendar days against a user
BLOCKING_LEAVE_STATUSES: tuple[LeaveStatus, ...] = (
    LeaveStatus.pending,
    LeaveStatus.approved,
)

# Statuses a reviewer may move a pending request into
ACTIONABLE_LEAVE_STATUSES: tuple[LeaveStatus, ...] = (
    LeaveStatus.approved,
    LeaveStatus.rejected,
)


# ── Attendance ──────────────────────────────────────────────────────

class AttendanceStatus(str, enum.Enum):
    in_progress = "In Progress"
    completed = "Completed"


# ── Shifts / Schedules ──────────────────────────────────────────────

class ShiftStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"


class ScheduleStatus(str, enum.Enum):
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


class RecurringType(str, enum.Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"


# ── Tasks ───────────────────────────────────────────────────────────

class TaskStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class TaskPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


# ── Misc constants ──────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20
MIN_EMPLOYEE_AGE = 16
MAX_EMPLOYEE_AGE = 100
