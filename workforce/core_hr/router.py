"""Core HR router — Employee and Department API endpoints.

Provides CRUD operations for the core HR module with role-based access control.

Routes:
    /employees              — List (manager+), create (admin)
    /employees/me           — The caller's own profile
    /employees/managers     — Active managers
    /employees/{id}         — Get, update, deactivate
    /departments            — List, create
    /departments/transfer   — Move an employee between departments
    /departments/{id}       — Get, update, delete
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.auth.dependencies import effective_roles, get_current_user, require_role
from workforce.common.constants import UserRole
from workforce.common.exceptions import ForbiddenException
from workforce.common.pagination import PaginationParams
from workforce.core_hr.models import Employee
from workforce.core_hr.schemas import (
    DepartmentCreate,
    DepartmentTransfer,
    DepartmentUpdate,
    EmployeeCreate,
    EmployeeUpdate,
)
from workforce.core_hr.service import DepartmentService, EmployeeService
from workforce.database import get_db


# ═════════════════════════════════════════════════════════════════════
# Routers
# ═════════════════════════════════════════════════════════════════════

employees_router = APIRouter(prefix="", tags=["employees"])
departments_router = APIRouter(prefix="", tags=["departments"])


def _is_at_least(request: Request, role: UserRole) -> bool:
    """Return True if the current user's role includes *role* in the hierarchy."""
    return role in effective_roles(request.state.user_role)


# ═════════════════════════════════════════════════════════════════════
# Employee Endpoints
# ═════════════════════════════════════════════════════════════════════


# ── GET /employees — List employees ─────────────────────────────────

@employees_router.get("")
async def list_employees(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name, email, or employee code"),
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    department_id: Optional[uuid.UUID] = Query(None, description="Filter by department"),
    is_active: Optional[bool] = Query(None, description="Filter by active flag"),
    sort: Optional[str] = Query(None, description="e.g. -created_at, first_name"),
):
    """List employees with pagination, search, and filtering."""
    result = await EmployeeService.list_employees(
        db,
        pagination,
        search=search,
        role=role,
        department_id=department_id,
        is_active=is_active,
        sort=sort,
    )
    return result.model_dump(mode="json")


# ── GET /employees/me ───────────────────────────────────────────────
# NOTE: fixed paths must be defined before /employees/{employee_id}.

@employees_router.get("/me")
async def get_me(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    detail = await EmployeeService.get_employee(db, current_user.id)
    return {
        "data": detail.model_dump(mode="json"),
        "message": "Profile retrieved successfully.",
    }


# ── GET /employees/managers ─────────────────────────────────────────

@employees_router.get("/managers")
async def list_managers(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    managers = await EmployeeService.list_managers(db)
    return {
        "data": [m.model_dump(mode="json") for m in managers],
        "message": "Managers retrieved successfully.",
    }


# ── GET /employees/{id} ─────────────────────────────────────────────

@employees_router.get("/{employee_id}")
async def get_employee(
    employee_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Retrieve an employee profile.

    Access rules:
    - **employee**: own profile only
    - **manager**: own + members of their department
    - **admin**: any employee
    """
    detail = await EmployeeService.get_employee(db, employee_id)

    if current_user.id != employee_id and not _is_at_least(request, UserRole.admin):
        same_department = (
            current_user.department_id is not None
            and detail.department_id == current_user.department_id
        )
        if not (_is_at_least(request, UserRole.manager) and same_department):
            raise ForbiddenException(
                detail="You can only view your own profile or members of your department.",
            )

    return {
        "data": detail.model_dump(mode="json"),
        "message": "Employee profile retrieved successfully.",
    }


# ── POST /employees — Create employee ──────────────────────────────

@employees_router.post("", status_code=201)
async def create_employee(
    body: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.admin)),
):
    """Create a new employee record. Requires **admin**.

    The ``employee_code`` is generated from the role, e.g. ``WACLY-EMP-0001``.
    """
    detail = await EmployeeService.create_employee(db, body, actor_id=current_user.id)
    return {
        "data": detail.model_dump(mode="json"),
        "message": "Employee created successfully.",
    }


# ── PUT /employees/{id} — Update employee ──────────────────────────

@employees_router.put("/{employee_id}")
async def update_employee(
    employee_id: uuid.UUID,
    body: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    """Partial update. Managers may edit details; only admins change roles."""
    detail = await EmployeeService.update_employee(db, employee_id, body, current_user)
    return {
        "data": detail.model_dump(mode="json"),
        "message": "Employee updated successfully.",
    }


# ── DELETE /employees/{id} — Deactivate ─────────────────────────────

@employees_router.delete("/{employee_id}")
async def deactivate_employee(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.admin)),
):
    detail = await EmployeeService.deactivate_employee(
        db, employee_id, actor_id=current_user.id,
    )
    return {
        "data": detail.model_dump(mode="json"),
        "message": "Employee deactivated successfully.",
    }


# ═════════════════════════════════════════════════════════════════════
# Department Endpoints
# ═════════════════════════════════════════════════════════════════════


@departments_router.get("")
async def list_departments(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    is_active: Optional[bool] = Query(True, description="Filter by active status"),
):
    """List departments with their active employee counts."""
    departments = await DepartmentService.list_departments(db, is_active=is_active)
    return {
        "data": [d.model_dump(mode="json") for d in departments],
        "message": "Departments retrieved successfully.",
    }


@departments_router.post("", status_code=201)
async def create_department(
    body: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.admin)),
):
    department = await DepartmentService.create_department(db, body, actor_id=current_user.id)
    return {
        "data": department.model_dump(mode="json"),
        "message": "Department created successfully.",
    }


@departments_router.post("/transfer")
async def transfer_employee(
    body: DepartmentTransfer,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.admin)),
):
    """Move an employee into another department."""
    detail = await DepartmentService.transfer_employee(db, body, actor_id=current_user.id)
    return {
        "data": detail.model_dump(mode="json"),
        "message": "Employee transferred successfully.",
    }


@departments_router.get("/{department_id}")
async def get_department(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    department = await DepartmentService.get_department(db, department_id)
    return {
        "data": department.model_dump(mode="json"),
        "message": "Department retrieved successfully.",
    }


@departments_router.put("/{department_id}")
async def update_department(
    department_id: uuid.UUID,
    body: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.admin)),
):
    department = await DepartmentService.update_department(
        db, department_id, body, actor_id=current_user.id,
    )
    return {
        "data": department.model_dump(mode="json"),
        "message": "Department updated successfully.",
    }


@departments_router.delete("/{department_id}")
async def delete_department(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.admin)),
):
    """Delete a department. Refused while it still has active employees."""
    await DepartmentService.delete_department(db, department_id, actor_id=current_user.id)
    return {"message": "Department deleted successfully."}
