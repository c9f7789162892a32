"""Attendance Pydantic v2 schemas — response bodies.

Clock-in and clock-out take no body: the server clock is authoritative.
"""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from workforce.common.constants import AttendanceStatus


class AttendanceEmployeeBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    department_id: Optional[uuid.UUID] = None


class AttendanceLogOut(BaseModel):
    """One clock-in session."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    clock_in: datetime
    clock_out: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    session_date: date
    status: AttendanceStatus


class AttendanceLogDetail(AttendanceLogOut):
    """Session with its owner embedded (department views)."""

    employee: Optional[AttendanceEmployeeBrief] = None


class AttendanceStatistics(BaseModel):
    """Completed sessions in the current month."""

    month: str
    total_days: int
    total_hours: float
    average_hours_per_day: float


class AttendanceReportRow(BaseModel):
    """Per-employee totals over completed sessions."""

    employee_id: uuid.UUID
    employee_code: str
    name: str
    department_id: Optional[uuid.UUID] = None
    sessions: int
    total_days: int
    total_hours: float
    average_hours_per_day: float


class AttendanceReport(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    department_id: Optional[uuid.UUID] = None
    total_entries: int
    department_total_hours: float
    average_hours_per_entry: float
    employees: list[AttendanceReportRow]
