"""Core HR ORM models: Department, Employee.

SQLAlchemy 2.0 async-compatible models with Mapped[] annotations.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workforce.common.constants import GenderType, UserRole
from workforce.database import Base

if TYPE_CHECKING:
    from workforce.attendance.models import AttendanceLog
    from workforce.leave.models import LeaveRequest


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class Department(Base):
    """Organisational department, optionally led by a manager."""

    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    code: Mapped[str] = mapped_column(sa.String(30), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", name="fk_dept_manager", use_alter=True),
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, server_default=sa.text("TRUE"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    # ── Relationships ───────────────────────────────────────────────
    manager: Mapped[Optional[Employee]] = relationship(
        foreign_keys=[manager_id], post_update=True,
    )
    employees: Mapped[list[Employee]] = relationship(
        back_populates="department", foreign_keys="Employee.department_id",
    )

    def __repr__(self) -> str:
        return f"<Department {self.name!r} ({self.code})>"


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class Employee(Base):
    """Employee / user record — the identity every other module hangs off."""

    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_code: Mapped[str] = mapped_column(
        sa.String(30), unique=True, nullable=False,
    )

    # ── Name / contact ──────────────────────────────────────────────
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    email: Mapped[str] = mapped_column(
        sa.String(255), unique=True, nullable=False,
    )
    phone: Mapped[Optional[str]] = mapped_column(sa.String(20))

    # ── Demographics ────────────────────────────────────────────────
    gender: Mapped[Optional[GenderType]] = mapped_column(
        sa.Enum(GenderType, name="gender_type", values_callable=_enum_values),
    )
    date_of_birth: Mapped[Optional[date]] = mapped_column(sa.Date)

    # ── Organisation ────────────────────────────────────────────────
    role: Mapped[UserRole] = mapped_column(
        sa.Enum(UserRole, name="user_role", values_callable=_enum_values),
        nullable=False,
        default=UserRole.employee,
    )
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("departments.id", ondelete="SET NULL"),
    )

    # ── Status ──────────────────────────────────────────────────────
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, server_default=sa.text("TRUE"),
    )
    last_login: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    # ── Relationships ───────────────────────────────────────────────
    department: Mapped[Optional[Department]] = relationship(
        back_populates="employees", foreign_keys=[department_id],
    )
    leave_requests: Mapped[list[LeaveRequest]] = relationship(
        back_populates="employee", foreign_keys="LeaveRequest.employee_id",
    )
    attendance_logs: Mapped[list[AttendanceLog]] = relationship(
        back_populates="employee",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Employee {self.employee_code} {self.email!r}>"
