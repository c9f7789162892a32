"""Schedule ORM models: Schedule and the schedule_employees association."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workforce.common.constants import RecurringType, ScheduleStatus
from workforce.core_hr.models import Employee
from workforce.database import Base
from workforce.shifts.models import Shift


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


schedule_employees = sa.Table(
    "schedule_employees",
    Base.metadata,
    sa.Column(
        "schedule_id",
        UUID(as_uuid=True),
        sa.ForeignKey("schedules.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sa.Column(
        "employee_id",
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Schedule(Base):
    """A shift assigned to a group of employees over a date range."""

    __tablename__ = "schedules"
    __table_args__ = (
        sa.Index("ix_schedules_shift_start", "shift_id", "start_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    code: Mapped[str] = mapped_column(sa.String(30), unique=True, nullable=False)
    shift_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("shifts.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    recurring_type: Mapped[Optional[RecurringType]] = mapped_column(
        sa.Enum(RecurringType, name="recurring_type", values_callable=_enum_values)
    )
    # Weekdays (0 = Monday) for weekly, days of month for monthly
    recurring_days: Mapped[list[int]] = mapped_column(sa.JSON, nullable=False, default=list)
    recurring_interval: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=1)
    recurring_end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    status: Mapped[ScheduleStatus] = mapped_column(
        sa.Enum(ScheduleStatus, name="schedule_status", values_callable=_enum_values),
        nullable=False,
        default=ScheduleStatus.active,
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    shift: Mapped[Shift] = relationship()
    employees: Mapped[list[Employee]] = relationship(
        secondary=schedule_employees,
        order_by=Employee.first_name,
    )

    def __repr__(self) -> str:
        return f"<Schedule {self.code} {self.start_date}..{self.end_date}>"
