"""Shift ORM model: a named daily working window, optionally tied to a department."""

from __future__ import annotations

import uuid
from datetime import datetime, time, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workforce.common.constants import ShiftStatus
from workforce.core_hr.models import Department, Employee
from workforce.database import Base


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class Shift(Base):
    __tablename__ = "shifts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    code: Mapped[str] = mapped_column(sa.String(30), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    start_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    end_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[ShiftStatus] = mapped_column(
        sa.Enum(ShiftStatus, name="shift_status", values_callable=_enum_values),
        nullable=False,
        default=ShiftStatus.active,
    )
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id", ondelete="SET NULL")
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
    department: Mapped[Optional[Department]] = relationship()
    creator: Mapped[Optional[Employee]] = relationship()

    def __repr__(self) -> str:
        return f"<Shift {self.code} {self.name}>"
