"""Leave ORM models: LeaveType, LeaveRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workforce.common.constants import LeaveStatus, LeaveTypeStatus
from workforce.core_hr.models import Employee
from workforce.database import Base


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class LeaveType(Base):
    __tablename__ = "leave_types"
    __table_args__ = (
        sa.CheckConstraint("days_allowed > 0", name="ck_leave_type_days_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    days_allowed: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    carry_forward: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False,
    )
    requires_approval: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=True,
    )
    # Soft-delete flag: rows are never removed, requests keep pointing at them
    status: Mapped[LeaveTypeStatus] = mapped_column(
        sa.Enum(LeaveTypeStatus, name="leave_type_status", values_callable=_enum_values),
        nullable=False,
        default=LeaveTypeStatus.active,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Relationships
    requests: Mapped[list[LeaveRequest]] = relationship(back_populates="leave_type")

    @property
    def is_active(self) -> bool:
        return self.status == LeaveTypeStatus.active

    def __repr__(self) -> str:
        return f"<LeaveType {self.name!r} {self.days_allowed}d {self.status.value}>"


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_request_range"),
        sa.CheckConstraint("number_of_days >= 1", name="ck_leave_request_days"),
        sa.Index("ix_leave_requests_employee_dates", "employee_id", "start_date", "end_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    number_of_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status", values_callable=_enum_values),
        nullable=False,
        default=LeaveStatus.pending,
    )
    comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    action_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    action_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Relationships
    employee: Mapped[Employee] = relationship(
        back_populates="leave_requests", foreign_keys=[employee_id]
    )
    actioned_by: Mapped[Optional[Employee]] = relationship(
        foreign_keys=[action_by]
    )
    leave_type: Mapped[LeaveType] = relationship(back_populates="requests")

    def __repr__(self) -> str:
        return (
            f"<LeaveRequest {self.id} {self.start_date}..{self.end_date} "
            f"{self.status.value}>"
        )
