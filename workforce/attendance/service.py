"""Attendance service layer — clock-in/out sessions and summaries.

Business logic:
  - One open (In Progress) session per employee at a time
  - Duration in whole minutes, floored
  - ``session_date`` is the clock-in date in the business timezone
  - Monthly statistics over Completed sessions
  - Per-employee hour reports, scoped to the manager's department
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from workforce.attendance.models import AttendanceLog
from workforce.attendance.schemas import (
    AttendanceLogDetail,
    AttendanceLogOut,
    AttendanceReport,
    AttendanceReportRow,
    AttendanceStatistics,
)
from workforce.common.audit import create_audit_entry
from workforce.common.constants import AttendanceStatus, UserRole
from workforce.common.exceptions import ConflictError, ValidationException
from workforce.common.pagination import (
    PaginatedResponse,
    PaginationParams,
    build_meta,
    paginate,
)
from workforce.common.timeutils import as_utc, local_date, utc_now
from workforce.core_hr.models import Employee

logger = logging.getLogger(__name__)

MAX_DATE_RANGE_DAYS = 366


def _check_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date:
        if end_date < start_date:
            raise ValidationException(
                {"end_date": ["End date cannot be before start date."]}
            )
        if (end_date - start_date).days > MAX_DATE_RANGE_DAYS:
            raise ValidationException(
                {"date_range": [f"Date range cannot exceed {MAX_DATE_RANGE_DAYS} days."]}
            )


def session_minutes(clock_in: datetime, clock_out: datetime) -> int:
    """Whole minutes between two instants, floored."""
    seconds = (as_utc(clock_out) - as_utc(clock_in)).total_seconds()
    return max(int(seconds // 60), 0)


class AttendanceService:
    """Async attendance operations."""

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _open_session(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Optional[AttendanceLog]:
        result = await db.execute(
            select(AttendanceLog)
            .where(
                AttendanceLog.employee_id == employee_id,
                AttendanceLog.status == AttendanceStatus.in_progress,
            )
            .order_by(AttendanceLog.clock_in.desc())
            .limit(1)
        )
        return result.scalars().first()

    # ── Clock in ────────────────────────────────────────────────────

    @staticmethod
    async def clock_in(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        now: Optional[datetime] = None,
        ip_address: Optional[str] = None,
    ) -> AttendanceLogOut:
        """Open a new session. Refused while another session is still open."""

        now = now or utc_now()
        if await AttendanceService._open_session(db, employee_id) is not None:
            raise ConflictError("clock_in", "Already clocked in. Please clock out first.")

        log = AttendanceLog(
            employee_id=employee_id,
            clock_in=now,
            session_date=local_date(now),
            status=AttendanceStatus.in_progress,
            created_at=now,
            updated_at=now,
        )
        db.add(log)
        await db.flush()

        await create_audit_entry(
            db,
            action="clock_in",
            entity_type="attendance_log",
            entity_id=log.id,
            actor_id=employee_id,
            new_values={"timestamp": now.isoformat()},
            ip_address=ip_address,
        )
        logger.debug("Employee %s clocked in at %s", employee_id, now.isoformat())
        return AttendanceLogOut.model_validate(log)

    # ── Clock out ───────────────────────────────────────────────────

    @staticmethod
    async def clock_out(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        now: Optional[datetime] = None,
        ip_address: Optional[str] = None,
    ) -> AttendanceLogOut:
        """Close the open session and record its duration."""

        now = now or utc_now()
        log = await AttendanceService._open_session(db, employee_id)
        if log is None:
            raise ValidationException(
                {"clock_out": ["No active clock-in session found. Please clock in first."]}
            )

        log.clock_out = now
        log.duration_minutes = session_minutes(log.clock_in, now)
        log.status = AttendanceStatus.completed
        log.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="clock_out",
            entity_type="attendance_log",
            entity_id=log.id,
            actor_id=employee_id,
            new_values={
                "timestamp": now.isoformat(),
                "duration_minutes": log.duration_minutes,
            },
            ip_address=ip_address,
        )
        return AttendanceLogOut.model_validate(log)

    # ── Reads ───────────────────────────────────────────────────────

    @staticmethod
    async def get_active_session(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Optional[AttendanceLogOut]:
        log = await AttendanceService._open_session(db, employee_id)
        return AttendanceLogOut.model_validate(log) if log is not None else None

    @staticmethod
    async def get_today(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        now: Optional[datetime] = None,
    ) -> list[AttendanceLogOut]:
        """Sessions opened today (business timezone), oldest first."""
        today = local_date(now or utc_now())
        result = await db.execute(
            select(AttendanceLog)
            .where(
                AttendanceLog.employee_id == employee_id,
                AttendanceLog.session_date == today,
            )
            .order_by(AttendanceLog.clock_in)
        )
        return [AttendanceLogOut.model_validate(log) for log in result.scalars().all()]

    @staticmethod
    async def get_history(
        db: AsyncSession,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> PaginatedResponse:
        _check_range(start_date, end_date)
        query = (
            select(AttendanceLog)
            .where(AttendanceLog.employee_id == employee_id)
            .order_by(AttendanceLog.clock_in.desc())
        )
        if start_date:
            query = query.where(AttendanceLog.session_date >= start_date)
        if end_date:
            query = query.where(AttendanceLog.session_date <= end_date)
        return await paginate(db, query, pagination, schema=AttendanceLogOut)

    @staticmethod
    async def get_statistics(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        now: Optional[datetime] = None,
    ) -> AttendanceStatistics:
        """Completed sessions since the first of the current month.

        Hours are rounded to two decimals; days are distinct session dates.
        """
        today = local_date(now or utc_now())
        month_start = today.replace(day=1)
        result = await db.execute(
            select(AttendanceLog.session_date, AttendanceLog.duration_minutes).where(
                AttendanceLog.employee_id == employee_id,
                AttendanceLog.status == AttendanceStatus.completed,
                AttendanceLog.session_date >= month_start,
            )
        )
        rows = result.all()
        total_minutes = sum(minutes or 0 for _, minutes in rows)
        total_days = len({session_date for session_date, _ in rows})
        total_hours = total_minutes / 60
        average = total_hours / total_days if total_days else 0.0

        return AttendanceStatistics(
            month=month_start.strftime("%Y-%m"),
            total_days=total_days,
            total_hours=round(total_hours, 2),
            average_hours_per_day=round(average, 2),
        )

    @staticmethod
    async def get_department_attendance(
        db: AsyncSession,
        actor: Employee,
        pagination: PaginationParams,
        *,
        department_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> PaginatedResponse:
        """Sessions for a department.

        Managers always see their own department; admins see every
        department unless *department_id* narrows it.
        """
        _check_range(start_date, end_date)
        if actor.role != UserRole.admin:
            department_id = actor.department_id
            if department_id is None:
                return PaginatedResponse(
                    data=[], meta=build_meta(pagination.page, pagination.page_size, 0),
                )

        query = (
            select(AttendanceLog)
            .join(Employee, AttendanceLog.employee_id == Employee.id)
            .options(selectinload(AttendanceLog.employee))
            .order_by(AttendanceLog.clock_in.desc())
        )
        if department_id is not None:
            query = query.where(Employee.department_id == department_id)
        if start_date:
            query = query.where(AttendanceLog.session_date >= start_date)
        if end_date:
            query = query.where(AttendanceLog.session_date <= end_date)
        return await paginate(db, query, pagination, schema=AttendanceLogDetail)


    @staticmethod
    async def get_all_attendance(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        department_id: Optional[uuid.UUID] = None,
        status: Optional[AttendanceStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> PaginatedResponse:
        """Every session in the organisation, newest first."""
        _check_range(start_date, end_date)
        query = (
            select(AttendanceLog)
            .join(Employee, AttendanceLog.employee_id == Employee.id)
            .options(selectinload(AttendanceLog.employee))
            .order_by(AttendanceLog.clock_in.desc())
        )
        if department_id is not None:
            query = query.where(Employee.department_id == department_id)
        if status is not None:
            query = query.where(AttendanceLog.status == status)
        if start_date:
            query = query.where(AttendanceLog.session_date >= start_date)
        if end_date:
            query = query.where(AttendanceLog.session_date <= end_date)
        return await paginate(db, query, pagination, schema=AttendanceLogDetail)

    @staticmethod
    async def get_report(
        db: AsyncSession,
        actor: Employee,
        *,
        department_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> AttendanceReport:
        """Hours and days per employee over a date range.

        Managers are limited to their own department. Open sessions count
        as entries but contribute no hours. Days are distinct session
        dates with at least one completed session.
        """
        _check_range(start_date, end_date)
        if actor.role != UserRole.admin:
            department_id = actor.department_id
            if department_id is None:
                return AttendanceReport(
                    start_date=start_date,
                    end_date=end_date,
                    total_entries=0,
                    department_total_hours=0.0,
                    average_hours_per_entry=0.0,
                    employees=[],
                )

        query = (
            select(AttendanceLog, Employee)
            .join(Employee, AttendanceLog.employee_id == Employee.id)
            .order_by(Employee.first_name, Employee.last_name, AttendanceLog.clock_in)
        )
        if department_id is not None:
            query = query.where(Employee.department_id == department_id)
        if start_date:
            query = query.where(AttendanceLog.session_date >= start_date)
        if end_date:
            query = query.where(AttendanceLog.session_date <= end_date)
        rows = (await db.execute(query)).all()

        per_employee: dict[uuid.UUID, dict] = {}
        total_minutes = 0
        for log, employee in rows:
            entry = per_employee.setdefault(
                employee.id,
                {"employee": employee, "minutes": 0, "sessions": 0, "dates": set()},
            )
            if log.status == AttendanceStatus.completed and log.duration_minutes is not None:
                entry["minutes"] += log.duration_minutes
                entry["sessions"] += 1
                entry["dates"].add(log.session_date)
                total_minutes += log.duration_minutes

        employees = []
        for entry in per_employee.values():
            employee = entry["employee"]
            hours = entry["minutes"] / 60
            days = len(entry["dates"])
            employees.append(
                AttendanceReportRow(
                    employee_id=employee.id,
                    employee_code=employee.employee_code,
                    name=employee.full_name,
                    department_id=employee.department_id,
                    sessions=entry["sessions"],
                    total_days=days,
                    total_hours=round(hours, 2),
                    average_hours_per_day=round(hours / days, 2) if days else 0.0,
                )
            )

        total_hours = total_minutes / 60
        logger.debug(
            "Attendance report for %s: %d entries, %d employees",
            department_id or "all departments", len(rows), len(employees),
        )
        return AttendanceReport(
            start_date=start_date,
            end_date=end_date,
            department_id=department_id,
            total_entries=len(rows),
            department_total_hours=round(total_hours, 2),
            average_hours_per_entry=round(total_hours / len(rows), 2) if rows else 0.0,
            employees=employees,
        )
