"""Task service layer — assignment, progress and overdue tracking.

Business logic:
  - Deadlines are stored in UTC and must lie in the future when set
  - Moving a task to ``completed`` stamps ``completion_date``; leaving it clears it
  - Employees see and update only tasks assigned to them, and only their status
  - Overdue: deadline passed and neither completed nor cancelled
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from workforce.auth.dependencies import effective_roles
from workforce.common.audit import create_audit_entry
from workforce.common.constants import TaskPriority, TaskStatus, UserRole
from workforce.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from workforce.common.filters import apply_filters, apply_search
from workforce.common.pagination import PaginatedResponse, PaginationParams, paginate
from workforce.common.sequences import next_code
from workforce.common.timeutils import as_utc, utc_now
from workforce.core_hr.models import Department, Employee
from workforce.tasks.models import Task
from workforce.tasks.schemas import (
    TaskCreate,
    TaskResponse,
    TaskStatusCounts,
    TaskUpdate,
)

logger = logging.getLogger(__name__)

# Statuses that can no longer become overdue
CLOSED_TASK_STATUSES: tuple[TaskStatus, ...] = (TaskStatus.completed, TaskStatus.cancelled)


def _with_relations(query):
    return query.options(
        selectinload(Task.assignee),
        selectinload(Task.creator),
        selectinload(Task.department),
    )


def _is_privileged(actor: Employee) -> bool:
    return UserRole.manager in effective_roles(actor.role)


def _to_utc(moment: datetime) -> datetime:
    return as_utc(moment).astimezone(timezone.utc)


def _check_deadline(deadline: datetime, now: datetime) -> datetime:
    deadline = _to_utc(deadline)
    if deadline <= now:
        raise ValidationException({"deadline": ["Deadline must be in the future."]})
    return deadline


class TaskService:
    """Async task operations."""

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _get_or_404(db: AsyncSession, task_id: uuid.UUID) -> Task:
        result = await db.execute(
            _with_relations(select(Task).where(Task.id == task_id))
            .execution_options(populate_existing=True)
        )
        task = result.scalars().first()
        if task is None:
            raise NotFoundException("Task", str(task_id))
        return task

    @staticmethod
    async def _active_assignee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        employee = await db.get(Employee, employee_id)
        if employee is None or not employee.is_active:
            raise ValidationException({"assigned_to": ["Assignee not found or inactive."]})
        return employee

    @staticmethod
    async def _ensure_department(db: AsyncSession, department_id: Optional[uuid.UUID]) -> None:
        if department_id is not None and await db.get(Department, department_id) is None:
            raise ValidationException({"department_id": ["Department not found."]})

    @staticmethod
    async def _status_counts(db: AsyncSession, condition) -> TaskStatusCounts:
        result = await db.execute(
            select(Task.status, func.count(Task.id)).where(condition).group_by(Task.status)
        )
        counts = {status: 0 for status in TaskStatus}
        for status, count in result.all():
            counts[TaskStatus(status)] = count
        return TaskStatusCounts(total=sum(counts.values()), counts=counts)

    # ── Read ────────────────────────────────────────────────────────

    @staticmethod
    async def list_tasks(
        db: AsyncSession,
        actor: Employee,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        status: Optional[TaskStatus] = None,
        priority: Optional[TaskPriority] = None,
        department_id: Optional[uuid.UUID] = None,
        assigned_to: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        """Newest first. Employees only ever see their own tasks."""
        if not _is_privileged(actor):
            assigned_to = actor.id

        query = _with_relations(select(Task))
        query = apply_filters(
            query,
            Task,
            {
                "status": status,
                "priority": priority,
                "department_id": department_id,
                "assigned_to": assigned_to,
            },
        )
        query = apply_search(query, Task, search, ["title", "code"])
        query = query.order_by(Task.created_at.desc(), Task.code.desc())
        return await paginate(db, query, pagination, schema=TaskResponse)

    @staticmethod
    async def get_task(
        db: AsyncSession,
        task_id: uuid.UUID,
        actor: Optional[Employee] = None,
    ) -> TaskResponse:
        task = await TaskService._get_or_404(db, task_id)
        if actor is not None and not _is_privileged(actor) and task.assigned_to != actor.id:
            raise ForbiddenException(detail="You can only view tasks assigned to you.")
        return TaskResponse.model_validate(task)

    @staticmethod
    async def assigned_tasks(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        status: Optional[TaskStatus] = None,
    ) -> list[TaskResponse]:
        query = _with_relations(select(Task)).where(Task.assigned_to == employee_id)
        if status is not None:
            query = query.where(Task.status == status)
        result = await db.execute(query.order_by(Task.created_at.desc()))
        return [TaskResponse.model_validate(t) for t in result.scalars().all()]

    @staticmethod
    async def department_tasks(
        db: AsyncSession,
        department_id: uuid.UUID,
    ) -> list[TaskResponse]:
        result = await db.execute(
            _with_relations(select(Task))
            .where(Task.department_id == department_id)
            .order_by(Task.created_at.desc())
        )
        return [TaskResponse.model_validate(t) for t in result.scalars().all()]

    @staticmethod
    async def overdue_tasks(
        db: AsyncSession,
        *,
        department_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> list[TaskResponse]:
        """Open tasks past their deadline, most overdue first."""
        now = now or utc_now()
        query = _with_relations(select(Task)).where(
            Task.deadline < now,
            Task.status.not_in(CLOSED_TASK_STATUSES),
        )
        if department_id is not None:
            query = query.where(Task.department_id == department_id)
        result = await db.execute(query.order_by(Task.deadline))
        return [TaskResponse.model_validate(t) for t in result.scalars().all()]

    @staticmethod
    async def department_stats(db: AsyncSession, department_id: uuid.UUID) -> TaskStatusCounts:
        return await TaskService._status_counts(db, Task.department_id == department_id)

    @staticmethod
    async def employee_stats(db: AsyncSession, employee_id: uuid.UUID) -> TaskStatusCounts:
        return await TaskService._status_counts(db, Task.assigned_to == employee_id)

    # ── Write ───────────────────────────────────────────────────────

    @staticmethod
    async def create_task(
        db: AsyncSession,
        data: TaskCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> TaskResponse:
        now = now or utc_now()
        deadline = _check_deadline(data.deadline, now)
        assignee = await TaskService._active_assignee(db, data.assigned_to)
        department_id = data.department_id or assignee.department_id
        await TaskService._ensure_department(db, department_id)

        code = await next_code(db, "task", "TASK", 4)
        task = Task(
            code=code,
            title=data.title.strip(),
            description=data.description,
            assigned_to=assignee.id,
            created_by=actor_id,
            department_id=department_id,
            deadline=deadline,
            priority=data.priority,
            status=data.status,
            completion_date=now if data.status == TaskStatus.completed else None,
            created_at=now,
            updated_at=now,
        )
        db.add(task)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="task",
            entity_id=task.id,
            actor_id=actor_id,
            new_values={"code": code, **data.model_dump(mode="json")},
        )
        logger.info("Task %s assigned to %s", code, assignee.employee_code)
        return await TaskService.get_task(db, task.id)

    @staticmethod
    async def update_task(
        db: AsyncSession,
        task_id: uuid.UUID,
        data: TaskUpdate,
        actor: Employee,
        *,
        now: Optional[datetime] = None,
        ip_address: Optional[str] = None,
    ) -> TaskResponse:
        now = now or utc_now()
        task = await TaskService._get_or_404(db, task_id)
        changes = data.model_dump(exclude_unset=True)
        # Required columns cannot be cleared
        for field in ("title", "description", "deadline", "priority", "status"):
            if field in changes and changes[field] is None:
                del changes[field]

        if not _is_privileged(actor):
            if task.assigned_to != actor.id:
                raise ForbiddenException(detail="You can only update tasks assigned to you.")
            if set(changes) - {"status"}:
                raise ForbiddenException(detail="Employees may only change a task's status.")

        if "deadline" in changes:
            changes["deadline"] = _check_deadline(changes["deadline"], now)
        if changes.get("assigned_to") is not None:
            await TaskService._active_assignee(db, changes["assigned_to"])
        if changes.get("department_id") is not None:
            await TaskService._ensure_department(db, changes["department_id"])
        if "title" in changes:
            changes["title"] = changes["title"].strip()

        before = TaskResponse.model_validate(task).model_dump(mode="json", include=set(changes))
        previous_status = task.status
        for field, value in changes.items():
            setattr(task, field, value)

        if task.status != previous_status:
            if task.status == TaskStatus.completed:
                task.completion_date = now
            elif previous_status == TaskStatus.completed:
                task.completion_date = None
        task.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="task",
            entity_id=task.id,
            actor_id=actor.id,
            old_values=before,
            new_values=data.model_dump(mode="json", include=set(changes)),
            ip_address=ip_address,
        )
        if task.status != previous_status:
            logger.info(
                "Task %s moved %s -> %s by %s",
                task.code, previous_status.value, task.status.value, actor.id,
            )
        return await TaskService.get_task(db, task.id)

    @staticmethod
    async def delete_task(
        db: AsyncSession,
        task_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        task = await TaskService._get_or_404(db, task_id)
        snapshot = {"code": task.code, "title": task.title, "status": task.status.value}
        await db.delete(task)
        await db.flush()

        await create_audit_entry(
            db,
            action="delete",
            entity_type="task",
            entity_id=task_id,
            actor_id=actor_id,
            old_values=snapshot,
        )
        logger.info("Task %s deleted by %s", snapshot["code"], actor_id)
