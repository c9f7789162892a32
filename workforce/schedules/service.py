"""Schedule service layer — shift assignments for groups of employees.

Business logic:
  - A schedule references one shift and any number of active employees
  - ``end_date`` is on or after ``start_date``
  - Recurring schedules carry a type; non-recurring ones drop the rule fields
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from workforce.common.audit import create_audit_entry
from workforce.common.constants import ScheduleStatus
from workforce.common.exceptions import NotFoundException, ValidationException
from workforce.common.filters import apply_filters
from workforce.common.pagination import PaginatedResponse, PaginationParams, paginate
from workforce.common.sequences import next_code
from workforce.common.timeutils import utc_now
from workforce.core_hr.models import Employee
from workforce.schedules.models import Schedule
from workforce.schedules.schemas import (
    ScheduleCreate,
    ScheduleResponse,
    ScheduleUpdate,
    check_recurrence,
)
from workforce.shifts.models import Shift

logger = logging.getLogger(__name__)

_RULE_FIELDS = ("recurring_type", "recurring_days", "recurring_interval", "recurring_end_date")


def _with_relations(query):
    return query.options(selectinload(Schedule.shift), selectinload(Schedule.employees))


def _clear_rule(schedule: Schedule) -> None:
    schedule.recurring_type = None
    schedule.recurring_days = []
    schedule.recurring_interval = 1
    schedule.recurring_end_date = None


class ScheduleService:
    """Async CRUD operations for schedules."""

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _get_or_404(db: AsyncSession, schedule_id: uuid.UUID) -> Schedule:
        result = await db.execute(
            _with_relations(select(Schedule).where(Schedule.id == schedule_id))
            .execution_options(populate_existing=True)
        )
        schedule = result.scalars().first()
        if schedule is None:
            raise NotFoundException("Schedule", str(schedule_id))
        return schedule

    @staticmethod
    async def _ensure_shift(db: AsyncSession, shift_id: uuid.UUID) -> None:
        if await db.get(Shift, shift_id) is None:
            raise ValidationException({"shift_id": ["Shift not found."]})

    @staticmethod
    async def _load_employees(
        db: AsyncSession,
        employee_ids: list[uuid.UUID],
    ) -> list[Employee]:
        """Resolve *employee_ids* to active employees, rejecting unknown ids."""
        wanted = set(employee_ids)
        if not wanted:
            return []
        result = await db.execute(
            select(Employee).where(Employee.id.in_(wanted), Employee.is_active.is_(True))
        )
        employees = list(result.scalars().all())
        missing = wanted - {e.id for e in employees}
        if missing:
            raise ValidationException(
                {"employee_ids": [
                    f"Unknown or inactive employee: {eid}" for eid in sorted(map(str, missing))
                ]}
            )
        return employees

    # ── Read ────────────────────────────────────────────────────────

    @staticmethod
    async def list_schedules(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        shift_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[ScheduleStatus] = None,
    ) -> PaginatedResponse:
        """Schedules starting within [start_date, end_date], earliest first."""
        query = _with_relations(select(Schedule))
        query = apply_filters(
            query,
            Schedule,
            {
                "start_date__from": start_date,
                "start_date__to": end_date,
                "shift_id": shift_id,
                "status": status,
            },
        )
        if employee_id is not None:
            query = query.where(Schedule.employees.any(Employee.id == employee_id))
        query = query.order_by(Schedule.start_date, Schedule.code)
        return await paginate(db, query, pagination, schema=ScheduleResponse)

    @staticmethod
    async def get_schedule(db: AsyncSession, schedule_id: uuid.UUID) -> ScheduleResponse:
        return ScheduleResponse.model_validate(await ScheduleService._get_or_404(db, schedule_id))

    # ── Write ───────────────────────────────────────────────────────

    @staticmethod
    async def create_schedule(
        db: AsyncSession,
        data: ScheduleCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> ScheduleResponse:
        await ScheduleService._ensure_shift(db, data.shift_id)
        employees = await ScheduleService._load_employees(db, data.employee_ids)

        code = await next_code(db, "schedule", "SCH", 3)
        now = utc_now()
        schedule = Schedule(
            code=code,
            shift_id=data.shift_id,
            start_date=data.start_date,
            end_date=data.end_date,
            is_recurring=data.is_recurring,
            recurring_type=data.recurring_type,
            recurring_days=list(data.recurring_days),
            recurring_interval=data.recurring_interval,
            recurring_end_date=data.recurring_end_date,
            status=ScheduleStatus.active,
            created_by=actor_id,
            created_at=now,
            updated_at=now,
            employees=employees,
        )
        if not data.is_recurring:
            _clear_rule(schedule)
        db.add(schedule)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="schedule",
            entity_id=schedule.id,
            actor_id=actor_id,
            new_values={"code": code, **data.model_dump(mode="json")},
        )
        logger.info(
            "Schedule %s created for shift %s (%d employees)",
            code, data.shift_id, len(employees),
        )
        return await ScheduleService.get_schedule(db, schedule.id)

    @staticmethod
    async def update_schedule(
        db: AsyncSession,
        schedule_id: uuid.UUID,
        data: ScheduleUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> ScheduleResponse:
        schedule = await ScheduleService._get_or_404(db, schedule_id)
        changes = data.model_dump(exclude_unset=True)
        employee_ids = changes.pop("employee_ids", None)
        # Required columns cannot be cleared
        for field in ("shift_id", "start_date", "end_date", "is_recurring", "status",
                      "recurring_days", "recurring_interval"):
            if field in changes and changes[field] is None:
                del changes[field]

        if "shift_id" in changes:
            await ScheduleService._ensure_shift(db, changes["shift_id"])

        merged = {
            field: changes.get(field, getattr(schedule, field))
            for field in ("start_date", "end_date", "is_recurring", *_RULE_FIELDS)
        }
        errors = check_recurrence(
            merged["start_date"],
            merged["end_date"],
            merged["is_recurring"],
            merged["recurring_type"],
            merged["recurring_days"] or [],
            merged["recurring_end_date"],
        )
        if errors:
            raise ValidationException(errors)

        audited = set(changes)
        if employee_ids is not None:
            audited.add("employees")
        before = ScheduleResponse.model_validate(schedule).model_dump(mode="json", include=audited)
        for field, value in changes.items():
            setattr(schedule, field, value)
        if not schedule.is_recurring:
            _clear_rule(schedule)
        if employee_ids is not None:
            schedule.employees = await ScheduleService._load_employees(db, employee_ids)
        schedule.updated_at = utc_now()
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="schedule",
            entity_id=schedule.id,
            actor_id=actor_id,
            old_values=before,
            new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        return await ScheduleService.get_schedule(db, schedule.id)

    @staticmethod
    async def delete_schedule(
        db: AsyncSession,
        schedule_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        schedule = await ScheduleService._get_or_404(db, schedule_id)
        snapshot = {
            "code": schedule.code,
            "shift_id": str(schedule.shift_id),
            "employee_ids": [str(e.id) for e in schedule.employees],
        }
        await db.delete(schedule)
        await db.flush()

        await create_audit_entry(
            db,
            action="delete",
            entity_type="schedule",
            entity_id=schedule_id,
            actor_id=actor_id,
            old_values=snapshot,
        )
        logger.info("Schedule %s deleted by %s", snapshot["code"], actor_id)
