"""Tasks router — assignment, progress and overdue tracking.

Routes:
    /tasks                          — List (scoped for employees), create (manager+)
    /tasks/my                       — Tasks assigned to the caller
    /tasks/overdue                  — Open tasks past their deadline (manager+)
    /tasks/assigned/{employee_id}   — Tasks of one employee (self or manager+)
    /tasks/department/{id}          — Tasks of a department (manager+)
    /tasks/stats/department/{id}    — Status counts for a department (manager+)
    /tasks/stats/employee/{id}      — Status counts for an employee (self or manager+)
    /tasks/{id}                     — Get, update, delete (manager+)
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.auth.dependencies import effective_roles, get_current_user, require_role
from workforce.common.constants import TaskPriority, TaskStatus, UserRole
from workforce.common.exceptions import ForbiddenException
from workforce.common.pagination import PaginationParams
from workforce.core_hr.models import Employee
from workforce.database import get_db
from workforce.tasks.schemas import TaskCreate, TaskUpdate
from workforce.tasks.service import TaskService

router = APIRouter(prefix="", tags=["tasks"])


def _ensure_self_or_manager(current_user: Employee, employee_id: uuid.UUID) -> None:
    if current_user.id != employee_id and UserRole.manager not in effective_roles(current_user.role):
        raise ForbiddenException(detail="You can only view your own tasks.")


@router.get("")
async def list_tasks(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by title or task code"),
    status: Optional[TaskStatus] = Query(None),
    priority: Optional[TaskPriority] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    assigned_to: Optional[uuid.UUID] = Query(None, description="Managers and admins only"),
):
    result = await TaskService.list_tasks(
        db,
        current_user,
        pagination,
        search=search,
        status=status,
        priority=priority,
        department_id=department_id,
        assigned_to=assigned_to,
    )
    return result.model_dump(mode="json")


# NOTE: fixed paths must be defined before /tasks/{task_id}.

@router.get("/my")
async def my_tasks(
    status: Optional[TaskStatus] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    tasks = await TaskService.assigned_tasks(db, current_user.id, status=status)
    return {
        "data": [t.model_dump(mode="json") for t in tasks],
        "message": "Tasks retrieved successfully.",
    }


@router.get("/overdue")
async def overdue_tasks(
    department_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    tasks = await TaskService.overdue_tasks(db, department_id=department_id)
    return {
        "data": [t.model_dump(mode="json") for t in tasks],
        "message": "Overdue tasks retrieved successfully.",
    }


@router.get("/assigned/{employee_id}")
async def assigned_tasks(
    employee_id: uuid.UUID,
    status: Optional[TaskStatus] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    _ensure_self_or_manager(current_user, employee_id)
    tasks = await TaskService.assigned_tasks(db, employee_id, status=status)
    return {
        "data": [t.model_dump(mode="json") for t in tasks],
        "message": "Tasks retrieved successfully.",
    }


@router.get("/department/{department_id}")
async def department_tasks(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    tasks = await TaskService.department_tasks(db, department_id)
    return {
        "data": [t.model_dump(mode="json") for t in tasks],
        "message": "Department tasks retrieved successfully.",
    }


@router.get("/stats/department/{department_id}")
async def department_stats(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    stats = await TaskService.department_stats(db, department_id)
    return {"data": stats.model_dump(mode="json"), "message": "Task statistics retrieved."}


@router.get("/stats/employee/{employee_id}")
async def employee_stats(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    _ensure_self_or_manager(current_user, employee_id)
    stats = await TaskService.employee_stats(db, employee_id)
    return {"data": stats.model_dump(mode="json"), "message": "Task statistics retrieved."}


@router.get("/{task_id}")
async def get_task(
    task_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    task = await TaskService.get_task(db, task_id, current_user)
    return {
        "data": task.model_dump(mode="json"),
        "message": "Task retrieved successfully.",
    }


@router.post("", status_code=201)
async def create_task(
    body: TaskCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    task = await TaskService.create_task(db, body, actor_id=current_user.id)
    return {
        "data": task.model_dump(mode="json"),
        "message": "Task created successfully.",
    }


@router.put("/{task_id}")
async def update_task(
    task_id: uuid.UUID,
    body: TaskUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Partial update. Assignees without a manager role may change the status only."""
    ip = request.client.host if request.client else None
    task = await TaskService.update_task(db, task_id, body, current_user, ip_address=ip)
    return {
        "data": task.model_dump(mode="json"),
        "message": "Task updated successfully.",
    }


@router.delete("/{task_id}")
async def delete_task(
    task_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    await TaskService.delete_task(db, task_id, actor_id=current_user.id)
    return {"message": "Task deleted successfully."}
