"""Schedules router — shift assignments over date ranges."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.auth.dependencies import get_current_user, require_role
from workforce.common.constants import ScheduleStatus, UserRole
from workforce.common.pagination import PaginationParams
from workforce.core_hr.models import Employee
from workforce.database import get_db
from workforce.schedules.schemas import ScheduleCreate, ScheduleUpdate
from workforce.schedules.service import ScheduleService

router = APIRouter(prefix="", tags=["schedules"])


@router.get("")
async def list_schedules(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    pagination: PaginationParams = Depends(),
    start_date: Optional[date] = Query(None, description="Earliest start date"),
    end_date: Optional[date] = Query(None, description="Latest start date"),
    shift_id: Optional[uuid.UUID] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[ScheduleStatus] = Query(None),
):
    result = await ScheduleService.list_schedules(
        db,
        pagination,
        start_date=start_date,
        end_date=end_date,
        shift_id=shift_id,
        employee_id=employee_id,
        status=status,
    )
    return result.model_dump(mode="json")


@router.get("/{schedule_id}")
async def get_schedule(
    schedule_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    schedule = await ScheduleService.get_schedule(db, schedule_id)
    return {
        "data": schedule.model_dump(mode="json"),
        "message": "Schedule retrieved successfully.",
    }


@router.post("", status_code=201)
async def create_schedule(
    body: ScheduleCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    schedule = await ScheduleService.create_schedule(db, body, actor_id=current_user.id)
    return {
        "data": schedule.model_dump(mode="json"),
        "message": "Schedule created successfully.",
    }


@router.patch("/{schedule_id}")
async def update_schedule(
    schedule_id: uuid.UUID,
    body: ScheduleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    """Partial update; ``employee_ids`` replaces the assigned employees."""
    schedule = await ScheduleService.update_schedule(
        db, schedule_id, body, actor_id=current_user.id,
    )
    return {
        "data": schedule.model_dump(mode="json"),
        "message": "Schedule updated successfully.",
    }


@router.delete("/{schedule_id}")
async def delete_schedule(
    schedule_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    await ScheduleService.delete_schedule(db, schedule_id, actor_id=current_user.id)
    return {"message": "Schedule deleted successfully."}
