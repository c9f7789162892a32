"""Shift service layer — CRUD over named working windows.

Deleting a shift removes the schedules built on it.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from workforce.common.audit import create_audit_entry
from workforce.common.constants import ShiftStatus
from workforce.common.exceptions import ConflictError, NotFoundException, ValidationException
from workforce.common.filters import apply_filters, apply_search
from workforce.common.pagination import PaginatedResponse, PaginationParams, paginate
from workforce.common.sequences import next_code
from workforce.common.timeutils import utc_now
from workforce.core_hr.models import Department
from workforce.schedules.models import Schedule
from workforce.shifts.models import Shift
from workforce.shifts.schemas import ShiftCreate, ShiftResponse, ShiftUpdate

logger = logging.getLogger(__name__)


def _with_relations(query):
    return query.options(selectinload(Shift.department), selectinload(Shift.creator))


class ShiftService:
    """Async CRUD operations for shifts."""

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _get_or_404(db: AsyncSession, shift_id: uuid.UUID) -> Shift:
        result = await db.execute(
            _with_relations(select(Shift).where(Shift.id == shift_id))
            .execution_options(populate_existing=True)
        )
        shift = result.scalars().first()
        if shift is None:
            raise NotFoundException("Shift", str(shift_id))
        return shift

    @staticmethod
    async def _ensure_unique_name(
        db: AsyncSession,
        name: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(Shift.id).where(func.lower(Shift.name) == name.lower())
        if exclude_id is not None:
            query = query.where(Shift.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError("name", name)

    @staticmethod
    async def _ensure_department(db: AsyncSession, department_id: Optional[uuid.UUID]) -> None:
        if department_id is not None and await db.get(Department, department_id) is None:
            raise ValidationException({"department_id": ["Department not found."]})

    # ── Read ────────────────────────────────────────────────────────

    @staticmethod
    async def list_shifts(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        status: Optional[ShiftStatus] = None,
        department_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        """Newest first; *search* matches the shift name."""
        query = _with_relations(select(Shift))
        query = apply_filters(query, Shift, {"status": status, "department_id": department_id})
        query = apply_search(query, Shift, search, ["name"])
        query = query.order_by(Shift.created_at.desc(), Shift.code.desc())
        return await paginate(db, query, pagination, schema=ShiftResponse)

    @staticmethod
    async def get_shift(db: AsyncSession, shift_id: uuid.UUID) -> ShiftResponse:
        return ShiftResponse.model_validate(await ShiftService._get_or_404(db, shift_id))

    @staticmethod
    async def department_shifts(
        db: AsyncSession,
        department_id: uuid.UUID,
    ) -> list[ShiftResponse]:
        """Active shifts of a department, earliest start first."""
        result = await db.execute(
            _with_relations(select(Shift))
            .where(
                Shift.department_id == department_id,
                Shift.status == ShiftStatus.active,
            )
            .order_by(Shift.start_time)
        )
        return [ShiftResponse.model_validate(s) for s in result.scalars().all()]

    # ── Write ───────────────────────────────────────────────────────

    @staticmethod
    async def create_shift(
        db: AsyncSession,
        data: ShiftCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> ShiftResponse:
        name = data.name.strip()
        await ShiftService._ensure_unique_name(db, name)
        await ShiftService._ensure_department(db, data.department_id)

        code = await next_code(db, "shift", "SHF", 3)
        now = utc_now()
        shift = Shift(
            code=code,
            name=name,
            start_time=data.start_time,
            end_time=data.end_time,
            description=data.description,
            department_id=data.department_id,
            status=data.status,
            created_by=actor_id,
            created_at=now,
            updated_at=now,
        )
        db.add(shift)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="shift",
            entity_id=shift.id,
            actor_id=actor_id,
            new_values={"code": code, **data.model_dump(mode="json")},
        )
        logger.info("Shift %s (%s) created", name, code)
        return await ShiftService.get_shift(db, shift.id)

    @staticmethod
    async def update_shift(
        db: AsyncSession,
        shift_id: uuid.UUID,
        data: ShiftUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> ShiftResponse:
        shift = await ShiftService._get_or_404(db, shift_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("name"):
            changes["name"] = changes["name"].strip()
            await ShiftService._ensure_unique_name(db, changes["name"], exclude_id=shift.id)
        # Required columns cannot be cleared
        for field in ("name", "start_time", "end_time", "status"):
            if field in changes and changes[field] is None:
                del changes[field]
        if changes.get("department_id") is not None:
            await ShiftService._ensure_department(db, changes["department_id"])

        start = changes.get("start_time", shift.start_time)
        end = changes.get("end_time", shift.end_time)
        if start == end:
            raise ValidationException({"end_time": ["Shift start and end times must differ."]})

        before = ShiftResponse.model_validate(shift).model_dump(mode="json", include=set(changes))
        for field, value in changes.items():
            setattr(shift, field, value)
        shift.updated_at = utc_now()
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="shift",
            entity_id=shift.id,
            actor_id=actor_id,
            old_values=before,
            new_values=data.model_dump(mode="json", include=set(changes)),
        )
        return await ShiftService.get_shift(db, shift.id)

    @staticmethod
    async def delete_shift(
        db: AsyncSession,
        shift_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        shift = await ShiftService._get_or_404(db, shift_id)

        schedules = await db.execute(
            select(Schedule)
            .where(Schedule.shift_id == shift_id)
            .options(selectinload(Schedule.employees))
        )
        removed = 0
        for schedule in schedules.scalars().all():
            await db.delete(schedule)
            removed += 1

        snapshot = {"code": shift.code, "name": shift.name, "schedules_removed": removed}
        await db.delete(shift)
        await db.flush()

        await create_audit_entry(
            db,
            action="delete",
            entity_type="shift",
            entity_id=shift_id,
            actor_id=actor_id,
            old_values=snapshot,
        )
        logger.info("Shift %s deleted with %d schedule(s)", snapshot["code"], removed)
