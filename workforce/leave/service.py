"""Leave service layer — leave types, applications, approvals, balances.

Business logic:
  - Leave type administration with soft delete (status → Inactive)
  - Applying for leave through the validation engine
  - Approve / reject through the validation engine, audited
  - My / team / organisation listings with pagination
  - Derived balances, per-type usage and dashboard counters
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from workforce.common.audit import create_audit_entry
from workforce.common.constants import LeaveStatus, LeaveTypeStatus
from workforce.common.exceptions import ConflictError, NotFoundException
from workforce.common.pagination import (
    PaginatedResponse,
    PaginationParams,
    build_meta,
    paginate,
)
from workforce.common.timeutils import local_now, utc_now
from workforce.config import settings
from workforce.core_hr.models import Employee
from workforce.leave.engine import LeaveEngine, year_start
from workforce.leave.models import LeaveRequest, LeaveType
from workforce.leave.repository import SqlLeaveStore
from workforce.leave.schemas import (
    EmployeeBrief,
    LeaveBalance,
    LeaveDashboardOut,
    LeaveRequestDetail,
    LeaveRequestDraft,
    LeaveRequestOut,
    LeaveStatsItem,
    LeaveStatusUpdate,
    LeaveTypeBrief,
    LeaveTypeCreate,
    LeaveTypeOut,
    LeaveTypeUpdate,
)

logger = logging.getLogger(__name__)


def get_engine(db: AsyncSession) -> LeaveEngine:
    """Engine bound to *db* with the configured balance policy."""
    return LeaveEngine(
        SqlLeaveStore(db), balance_policy=settings.LEAVE_BALANCE_POLICY,
    )


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: types, requests, approvals, balances."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _build_request_response(
        req: LeaveRequest,
        *,
        employee: Optional[Employee] = None,
        leave_type: Optional[LeaveType] = None,
    ) -> LeaveRequestDetail:
        base = LeaveRequestOut.model_validate(req).model_dump()
        return LeaveRequestDetail(
            **base,
            employee=EmployeeBrief.model_validate(employee) if employee is not None else None,
            leave_type=LeaveTypeBrief.model_validate(leave_type) if leave_type is not None else None,
        )

    @staticmethod
    async def _get_leave_type_or_404(db: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", str(leave_type_id))
        return leave_type

    @staticmethod
    async def _ensure_unique_name(
        db: AsyncSession,
        name: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(LeaveType.id).where(func.lower(LeaveType.name) == name.lower())
        if exclude_id is not None:
            query = query.where(LeaveType.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError("name", name)

    # ─────────────────────────────────────────────────────────────────
    # Leave Types
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave_types(
        db: AsyncSession,
        *,
        include_inactive: bool = False,
    ) -> list[LeaveTypeOut]:
        query = select(LeaveType).order_by(LeaveType.name)
        if not include_inactive:
            query = query.where(LeaveType.status == LeaveTypeStatus.active)
        result = await db.execute(query)
        return [LeaveTypeOut.model_validate(lt) for lt in result.scalars().all()]

    @staticmethod
    async def get_leave_type(db: AsyncSession, leave_type_id: uuid.UUID) -> LeaveTypeOut:
        leave_type = await LeaveService._get_leave_type_or_404(db, leave_type_id)
        return LeaveTypeOut.model_validate(leave_type)

    @staticmethod
    async def create_leave_type(
        db: AsyncSession,
        data: LeaveTypeCreate,
        actor_id: uuid.UUID,
    ) -> LeaveTypeOut:
        name = data.name.strip()
        await LeaveService._ensure_unique_name(db, name)

        leave_type = LeaveType(
            name=name,
            description=data.description,
            days_allowed=data.days_allowed,
            carry_forward=data.carry_forward,
            requires_approval=data.requires_approval,
            status=LeaveTypeStatus.active,
        )
        db.add(leave_type)
        await db.flush()
        await db.refresh(leave_type)

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_type",
            entity_id=leave_type.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        logger.info("Leave type %r created by %s", leave_type.name, actor_id)
        return LeaveTypeOut.model_validate(leave_type)

    @staticmethod
    async def update_leave_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        data: LeaveTypeUpdate,
        actor_id: uuid.UUID,
    ) -> LeaveTypeOut:
        leave_type = await LeaveService._get_leave_type_or_404(db, leave_type_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("name") is not None:
            changes["name"] = changes["name"].strip()
            await LeaveService._ensure_unique_name(db, changes["name"], exclude_id=leave_type.id)

        old_values: dict = {}
        for field, value in changes.items():
            if value is None and field != "description":
                continue
            old = getattr(leave_type, field)
            old_values[field] = old.value if isinstance(old, LeaveTypeStatus) else old
            setattr(leave_type, field, value)
        leave_type.updated_at = utc_now()
        await db.flush()
        await db.refresh(leave_type)

        await create_audit_entry(
            db,
            action="update",
            entity_type="leave_type",
            entity_id=leave_type.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        return LeaveTypeOut.model_validate(leave_type)

    @staticmethod
    async def delete_leave_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        actor_id: uuid.UUID,
    ) -> LeaveTypeOut:
        """Soft delete: the row stays so existing requests keep their type."""
        leave_type = await LeaveService._get_leave_type_or_404(db, leave_type_id)
        if leave_type.status != LeaveTypeStatus.inactive:
            leave_type.status = LeaveTypeStatus.inactive
            leave_type.updated_at = utc_now()
            await db.flush()
            await create_audit_entry(
                db,
                action="delete",
                entity_type="leave_type",
                entity_id=leave_type.id,
                actor_id=actor_id,
                old_values={"status": LeaveTypeStatus.active.value},
                new_values={"status": LeaveTypeStatus.inactive.value},
            )
            logger.info("Leave type %r deactivated by %s", leave_type.name, actor_id)
        await db.refresh(leave_type)
        return LeaveTypeOut.model_validate(leave_type)

    # ─────────────────────────────────────────────────────────────────
    # Apply Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def apply_leave(
        db: AsyncSession,
        employee: Employee,
        data: LeaveRequestDraft,
        *,
        now: Optional[datetime] = None,
        ip_address: Optional[str] = None,
    ) -> LeaveRequestDetail:
        """Validate *data* for *employee* and persist it as a Pending request.

        Leave types that do not require approval still start Pending; a
        reviewer always makes the final decision.
        """
        now = now or local_now()
        validated = await get_engine(db).validate_leave_request(data, employee, now)

        leave_request = LeaveRequest(**validated.model_dump())
        db.add(leave_request)
        await db.flush()
        await db.refresh(leave_request)

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_request",
            entity_id=leave_request.id,
            actor_id=employee.id,
            new_values=validated.model_dump(mode="json"),
            ip_address=ip_address,
        )
        logger.info(
            "Leave request %s created for %s: %s..%s (%d days)",
            leave_request.id,
            employee.employee_code,
            validated.start_date,
            validated.end_date,
            validated.number_of_days,
        )

        leave_type = await db.get(LeaveType, validated.leave_type_id)
        return LeaveService._build_request_response(
            leave_request, employee=employee, leave_type=leave_type,
        )

    # ─────────────────────────────────────────────────────────────────
    # Approve / Reject
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def update_request_status(
        db: AsyncSession,
        request_id: uuid.UUID,
        data: LeaveStatusUpdate,
        actor: Employee,
        *,
        now: Optional[datetime] = None,
        ip_address: Optional[str] = None,
    ) -> LeaveRequestDetail:
        now = now or utc_now()
        action = await get_engine(db).validate_leave_action(
            request_id, data.status, actor, now, comments=data.comments,
        )

        leave_request = action.request
        previous = leave_request.status
        leave_request.status = action.status
        leave_request.action_by = action.action_by
        leave_request.action_at = action.action_at
        leave_request.comments = action.comments
        leave_request.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="approve" if action.status == LeaveStatus.approved else "reject",
            entity_type="leave_request",
            entity_id=leave_request.id,
            actor_id=actor.id,
            old_values={"status": previous.value},
            new_values={"status": action.status.value, "comments": action.comments},
            ip_address=ip_address,
        )
        logger.info(
            "Leave request %s %s by %s",
            leave_request.id, action.status.value.lower(), actor.employee_code,
        )

        leave_type = await db.get(LeaveType, leave_request.leave_type_id)
        return LeaveService._build_request_response(
            leave_request, employee=leave_request.employee, leave_type=leave_type,
        )

    # ─────────────────────────────────────────────────────────────────
    # List Leave Requests
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave_requests(
        db: AsyncSession,
        params: PaginationParams,
        *,
        actor: Employee,
        scope: str = "my",
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[LeaveStatus] = None,
        leave_type_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        """List leave requests, newest first.

        Scopes:
          - my: the actor's own requests
          - team: requests of employees in the actor's department
          - all: every request (admin only, enforced by the router)
        """
        query = (
            select(LeaveRequest)
            .options(
                selectinload(LeaveRequest.employee),
                selectinload(LeaveRequest.leave_type),
            )
            .order_by(LeaveRequest.created_at.desc(), LeaveRequest.id)
        )

        if scope == "my":
            query = query.where(LeaveRequest.employee_id == actor.id)
        elif scope == "team":
            if actor.department_id is None:
                return PaginatedResponse(
                    data=[], meta=build_meta(params.page, params.page_size, 0),
                )
            team_ids = select(Employee.id).where(Employee.department_id == actor.department_id)
            query = query.where(LeaveRequest.employee_id.in_(team_ids))

        if employee_id:
            query = query.where(LeaveRequest.employee_id == employee_id)
        if status:
            query = query.where(LeaveRequest.status == status)
        if leave_type_id:
            query = query.where(LeaveRequest.leave_type_id == leave_type_id)

        return await paginate(db, query, params, schema=LeaveRequestDetail)

    # ─────────────────────────────────────────────────────────────────
    # Balances & statistics
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> LeaveBalance:
        now = local_now()
        return await get_engine(db).compute_balance(
            employee_id, leave_type_id, year or now.year, tzinfo=now.tzinfo,
        )

    @staticmethod
    async def get_balances(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> list[LeaveBalance]:
        """Balance for every Active leave type."""
        now = local_now()
        engine = get_engine(db)
        result = await db.execute(
            select(LeaveType.id)
            .where(LeaveType.status == LeaveTypeStatus.active)
            .order_by(LeaveType.name)
        )
        return [
            await engine.compute_balance(
                employee_id, leave_type_id, year or now.year, tzinfo=now.tzinfo,
            )
            for leave_type_id in result.scalars().all()
        ]

    @staticmethod
    async def get_stats(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> list[LeaveStatsItem]:
        """Approved usage grouped by leave type for requests created this year."""
        now = local_now()
        since = year_start(year or now.year, now.tzinfo)
        days_used = func.coalesce(func.sum(LeaveRequest.number_of_days), 0)
        result = await db.execute(
            select(
                LeaveType.id,
                LeaveType.name,
                LeaveType.days_allowed,
                days_used,
                func.count(LeaveRequest.id),
            )
            .select_from(LeaveRequest)
            .join(LeaveType, LeaveRequest.leave_type_id == LeaveType.id)
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.created_at >= since,
            )
            .group_by(LeaveType.id, LeaveType.name, LeaveType.days_allowed)
            .order_by(LeaveType.name)
        )
        return [
            LeaveStatsItem(
                leave_type_id=type_id,
                leave_type=name,
                days_allowed=allowed,
                days_used=int(used),
                requests_count=int(count),
                days_remaining=allowed - int(used),
            )
            for type_id, name, allowed, used, count in result.all()
        ]

    @staticmethod
    async def get_dashboard_stats(
        db: AsyncSession,
        *,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> LeaveDashboardOut:
        """Organisation-wide leave counters for the dashboard."""
        now = now or utc_now()
        today = today or local_now().date()
        month_start = today.replace(day=1)
        previous_month_start = (month_start - timedelta(days=1)).replace(day=1)

        async def _count(*criteria) -> int:
            result = await db.execute(
                select(func.count(LeaveRequest.id)).where(*criteria)
            )
            return int(result.scalar_one())

        approved = LeaveRequest.status == LeaveStatus.approved
        pending = await _count(LeaveRequest.status == LeaveStatus.pending)
        pending_last_day = await _count(
            LeaveRequest.status == LeaveStatus.pending,
            LeaveRequest.created_at >= now - timedelta(days=1),
            LeaveRequest.created_at < now,
        )

        on_leave = await db.execute(
            select(LeaveRequest.employee_id, Employee.department_id)
            .join(Employee, LeaveRequest.employee_id == Employee.id)
            .where(
                approved,
                LeaveRequest.start_date <= today,
                LeaveRequest.end_date >= today,
            )
        )
        on_leave_rows = on_leave.all()
        departments = {row.department_id for row in on_leave_rows if row.department_id}

        upcoming = await _count(
            approved,
            LeaveRequest.start_date > today,
            LeaveRequest.start_date <= today + timedelta(days=7),
        )
        current_month = await _count(
            approved,
            LeaveRequest.start_date >= month_start,
            LeaveRequest.start_date <= today,
        )
        previous_month = await _count(
            approved,
            LeaveRequest.start_date >= previous_month_start,
            LeaveRequest.start_date < month_start,
        )

        return LeaveDashboardOut(
            pending=pending,
            pending_change=pending - pending_last_day,
            on_leave_today=len(on_leave_rows),
            departments_affected=len(departments),
            upcoming=upcoming,
            current_month=current_month,
            previous_month=previous_month,
        )
