"""Attendance router — clock-in/out, sessions, history, statistics, reports."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.attendance.schemas import (
    AttendanceLogDetail,
    AttendanceLogOut,
    AttendanceReport,
    AttendanceStatistics,
)
from workforce.attendance.service import AttendanceService
from workforce.auth.dependencies import get_current_user, require_role
from workforce.common.constants import AttendanceStatus, UserRole
from workforce.common.pagination import PaginatedResponse, PaginationParams
from workforce.core_hr.models import Employee
from workforce.database import get_db

router = APIRouter(prefix="", tags=["attendance"])


# ── POST /clock-in ──────────────────────────────────────────────────

@router.post("/clock-in", response_model=AttendanceLogOut, status_code=201)
async def clock_in(
    request: Request,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Open a session. 409 while another session is still open."""
    ip = request.client.host if request.client else None
    return await AttendanceService.clock_in(db, employee.id, ip_address=ip)


# ── POST /clock-out ─────────────────────────────────────────────────

@router.post("/clock-out", response_model=AttendanceLogOut)
async def clock_out(
    request: Request,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Close the open session and record its duration in minutes."""
    ip = request.client.host if request.client else None
    return await AttendanceService.clock_out(db, employee.id, ip_address=ip)


@router.get("/active-session", response_model=Optional[AttendanceLogOut])
async def active_session(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.get_active_session(db, employee.id)


@router.get("/today", response_model=list[AttendanceLogOut])
async def today_sessions(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.get_today(db, employee.id)


@router.get("/history", response_model=PaginatedResponse[AttendanceLogOut])
async def history(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.get_history(
        db, employee.id, pagination, start_date=start_date, end_date=end_date,
    )


@router.get("/statistics", response_model=AttendanceStatistics)
async def statistics(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Completed sessions this month: days, hours, average hours per day."""
    return await AttendanceService.get_statistics(db, employee.id)


@router.get("/department", response_model=PaginatedResponse[AttendanceLogDetail])
async def department_attendance(
    department_id: Optional[uuid.UUID] = Query(None, description="Admins only"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.get_department_attendance(
        db,
        employee,
        pagination,
        department_id=department_id,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/all", response_model=PaginatedResponse[AttendanceLogDetail])
async def all_attendance(
    department_id: Optional[uuid.UUID] = Query(None),
    status: Optional[AttendanceStatus] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Every session in the organisation, newest first."""
    return await AttendanceService.get_all_attendance(
        db,
        pagination,
        department_id=department_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/report", response_model=AttendanceReport)
async def attendance_report(
    department_id: Optional[uuid.UUID] = Query(None, description="Admins only"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    employee: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Hours and days per employee. Managers see their own department."""
    return await AttendanceService.get_report(
        db,
        employee,
        department_id=department_id,
        start_date=start_date,
        end_date=end_date,
    )
