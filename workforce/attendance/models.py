"""Attendance ORM models: AttendanceLog (one row per clock-in session)."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workforce.common.constants import AttendanceStatus
from workforce.core_hr.models import Employee
from workforce.database import Base


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class AttendanceLog(Base):
    __tablename__ = "attendance_logs"
    __table_args__ = (
        sa.Index("ix_attendance_logs_employee_date", "employee_id", "session_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    clock_in: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False
    )
    clock_out: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    # Whole minutes, floored
    duration_minutes: Mapped[Optional[int]] = mapped_column(sa.Integer)
    # Clock-in date in the business timezone
    session_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    status: Mapped[AttendanceStatus] = mapped_column(
        sa.Enum(AttendanceStatus, name="attendance_status", values_callable=_enum_values),
        nullable=False,
        default=AttendanceStatus.in_progress,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="attendance_logs")

    def __repr__(self) -> str:
        return f"<AttendanceLog {self.employee_id} {self.session_date} {self.status.value}>"
