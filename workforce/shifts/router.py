"""Shifts router — named working windows.

Routes:
    /shifts                       — List (any user), create (manager+)
    /shifts/department/{id}       — Active shifts of a department
    /shifts/{id}                  — Get, update (manager+), delete (admin)
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.auth.dependencies import get_current_user, require_role
from workforce.common.constants import ShiftStatus, UserRole
from workforce.common.pagination import PaginationParams
from workforce.core_hr.models import Employee
from workforce.database import get_db
from workforce.shifts.schemas import ShiftCreate, ShiftUpdate
from workforce.shifts.service import ShiftService

router = APIRouter(prefix="", tags=["shifts"])


@router.get("")
async def list_shifts(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by shift name"),
    status: Optional[ShiftStatus] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
):
    result = await ShiftService.list_shifts(
        db, pagination, search=search, status=status, department_id=department_id,
    )
    return result.model_dump(mode="json")


# NOTE: fixed paths must be defined before /shifts/{shift_id}.

@router.get("/department/{department_id}")
async def department_shifts(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    shifts = await ShiftService.department_shifts(db, department_id)
    return {
        "data": [s.model_dump(mode="json") for s in shifts],
        "message": "Department shifts retrieved successfully.",
    }


@router.get("/{shift_id}")
async def get_shift(
    shift_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    shift = await ShiftService.get_shift(db, shift_id)
    return {
        "data": shift.model_dump(mode="json"),
        "message": "Shift retrieved successfully.",
    }


@router.post("", status_code=201)
async def create_shift(
    body: ShiftCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    shift = await ShiftService.create_shift(db, body, actor_id=current_user.id)
    return {
        "data": shift.model_dump(mode="json"),
        "message": "Shift created successfully.",
    }


@router.put("/{shift_id}")
async def update_shift(
    shift_id: uuid.UUID,
    body: ShiftUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    shift = await ShiftService.update_shift(db, shift_id, body, actor_id=current_user.id)
    return {
        "data": shift.model_dump(mode="json"),
        "message": "Shift updated successfully.",
    }


@router.delete("/{shift_id}")
async def delete_shift(
    shift_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.admin)),
):
    """Delete a shift together with its schedules."""
    await ShiftService.delete_shift(db, shift_id, actor_id=current_user.id)
    return {"message": "Shift deleted successfully."}
