"""Leave router — leave types, apply, approve/reject, balances, stats.

All endpoints require authentication. Admin/manager endpoints enforce role checks.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.auth.dependencies import get_current_user, require_role
from workforce.common.constants import LeaveStatus, UserRole
from workforce.common.pagination import PaginatedResponse, PaginationParams
from workforce.common.rate_limit import limiter
from workforce.config import settings
from workforce.core_hr.models import Employee
from workforce.database import get_db
from workforce.leave.schemas import (
    LeaveBalance,
    LeaveDashboardOut,
    LeaveRequestDetail,
    LeaveRequestDraft,
    LeaveStatsItem,
    LeaveStatusUpdate,
    LeaveTypeCreate,
    LeaveTypeOut,
    LeaveTypeUpdate,
)
from workforce.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


# ── Leave types ─────────────────────────────────────────────────────

@router.get("/types", response_model=list[LeaveTypeOut])
async def list_leave_types(
    include_inactive: bool = Query(False),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active leave types. Admins may include inactive ones."""
    return await LeaveService.get_leave_types(
        db, include_inactive=include_inactive and employee.role == UserRole.admin,
    )


@router.post("/types", response_model=LeaveTypeOut, status_code=201)
async def create_leave_type(
    body: LeaveTypeCreate,
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.create_leave_type(db, body, employee.id)


@router.get("/types/{leave_type_id}", response_model=LeaveTypeOut)
async def get_leave_type(
    leave_type_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave_type(db, leave_type_id)


@router.put("/types/{leave_type_id}", response_model=LeaveTypeOut)
async def update_leave_type(
    leave_type_id: uuid.UUID,
    body: LeaveTypeUpdate,
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.update_leave_type(db, leave_type_id, body, employee.id)


@router.delete("/types/{leave_type_id}", response_model=LeaveTypeOut)
async def delete_leave_type(
    leave_type_id: uuid.UUID,
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a leave type. Existing requests keep referencing it."""
    return await LeaveService.delete_leave_type(db, leave_type_id, employee.id)


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestDetail, status_code=201)
@limiter.limit(settings.LEAVE_APPLY_RATE_LIMIT)
async def apply_leave(
    request: Request,
    body: LeaveRequestDraft,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave. Validates dates, leave type, allowance and overlap."""
    return await LeaveService.apply_leave(
        db, employee, body, ip_address=_client_ip(request),
    )


# ── GET /requests (all) ─────────────────────────────────────────────

@router.get("/requests", response_model=PaginatedResponse[LeaveRequestDetail])
async def all_requests(
    status: Optional[LeaveStatus] = Query(None),
    leave_type_id: Optional[uuid.UUID] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    params: PaginationParams = Depends(),
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave_requests(
        db,
        params,
        actor=employee,
        scope="all",
        employee_id=employee_id,
        status=status,
        leave_type_id=leave_type_id,
    )


# ── GET /requests/my ────────────────────────────────────────────────

@router.get("/requests/my", response_model=PaginatedResponse[LeaveRequestDetail])
async def my_requests(
    status: Optional[LeaveStatus] = Query(None),
    leave_type_id: Optional[uuid.UUID] = Query(None),
    params: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The authenticated user's leave requests."""
    return await LeaveService.get_leave_requests(
        db,
        params,
        actor=employee,
        scope="my",
        status=status,
        leave_type_id=leave_type_id,
    )


# ── GET /requests/team ──────────────────────────────────────────────

@router.get("/requests/team", response_model=PaginatedResponse[LeaveRequestDetail])
async def team_requests(
    status: Optional[LeaveStatus] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    params: PaginationParams = Depends(),
    employee: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Leave requests from the caller's department."""
    return await LeaveService.get_leave_requests(
        db,
        params,
        actor=employee,
        scope="team",
        employee_id=employee_id,
        status=status,
    )


# ── PUT /requests/{id}/status ───────────────────────────────────────

@router.put("/requests/{request_id}/status", response_model=LeaveRequestDetail)
async def update_request_status(
    request: Request,
    request_id: uuid.UUID,
    body: LeaveStatusUpdate,
    employee: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Approve or reject a pending request."""
    return await LeaveService.update_request_status(
        db, request_id, body, employee, ip_address=_client_ip(request),
    )


# ── Balances & statistics ───────────────────────────────────────────

@router.get("/balances", response_model=list[LeaveBalance])
async def my_balances(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_balances(db, employee.id, year)


@router.get("/balances/{leave_type_id}", response_model=LeaveBalance)
async def my_balance(
    leave_type_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=1970, le=9999),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_balance(db, employee.id, leave_type_id, year)


@router.get("/stats", response_model=list[LeaveStatsItem])
async def my_stats(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Approved usage per leave type for the current year."""
    return await LeaveService.get_stats(db, employee.id)


@router.get("/dashboard", response_model=LeaveDashboardOut)
async def dashboard(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_dashboard_stats(db)
