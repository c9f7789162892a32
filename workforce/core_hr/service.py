"""Core HR service layer — async CRUD + business logic.

Uses:
  - ``paginate()`` from workforce.common.pagination
  - ``apply_filters / apply_search`` from workforce.common.filters
  - ``next_code()`` from workforce.common.sequences for human-readable codes
  - ``create_audit_entry`` from workforce.common.audit
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from workforce.common.audit import create_audit_entry
from workforce.common.constants import ROLE_CODE_PREFIX, UserRole
from workforce.common.exceptions import (
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from workforce.common.filters import apply_filters, apply_search, apply_sorting
from workforce.common.pagination import PaginatedResponse, PaginationParams, paginate
from workforce.common.sequences import next_code
from workforce.common.timeutils import utc_now
from workforce.core_hr.models import Department, Employee
from workforce.core_hr.schemas import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentTransfer,
    DepartmentUpdate,
    EmployeeCreate,
    EmployeeDetail,
    EmployeeListItem,
    EmployeeSummary,
    EmployeeUpdate,
)

logger = logging.getLogger(__name__)

EMPLOYEE_SORT_FIELDS = ("created_at", "first_name", "last_name", "email", "employee_code")


def _plain(value: Any) -> Any:
    """Audit-friendly representation of a column value."""
    if hasattr(value, "value"):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


class EmployeeService:
    """Async CRUD operations for employees."""

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _load(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        result = await db.execute(
            select(Employee)
            .where(Employee.id == employee_id)
            .options(selectinload(Employee.department))
            .execution_options(populate_existing=True)
        )
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def _ensure_department(db: AsyncSession, department_id: Optional[uuid.UUID]) -> None:
        if department_id is None:
            return
        if await db.get(Department, department_id) is None:
            raise ValidationException({"department_id": ["Department not found."]})

    @staticmethod
    async def _ensure_unique_email(
        db: AsyncSession,
        email: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(Employee.id).where(func.lower(Employee.email) == email.lower())
        if exclude_id is not None:
            query = query.where(Employee.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError("email", email)

    # ── List (paginated, searchable, filterable) ────────────────────

    @staticmethod
    async def list_employees(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        role: Optional[UserRole] = None,
        department_id: Optional[uuid.UUID] = None,
        is_active: Optional[bool] = None,
        sort: Optional[str] = None,
    ) -> PaginatedResponse:
        """Return a paginated, filtered, searchable employee list."""

        query = select(Employee).options(selectinload(Employee.department))
        query = apply_filters(
            query,
            Employee,
            {"role": role, "department_id": department_id, "is_active": is_active},
        )
        query = apply_search(
            query,
            Employee,
            search,
            ["first_name", "last_name", "email", "employee_code"],
        )
        if sort:
            query = apply_sorting(query, Employee, sort, allowed=EMPLOYEE_SORT_FIELDS)
        else:
            query = query.order_by(Employee.created_at.desc(), Employee.employee_code)

        return await paginate(db, query, pagination, schema=EmployeeListItem)

    @staticmethod
    async def list_managers(db: AsyncSession) -> list[EmployeeSummary]:
        result = await db.execute(
            select(Employee)
            .where(Employee.role == UserRole.manager, Employee.is_active.is_(True))
            .order_by(Employee.first_name, Employee.last_name)
        )
        return [EmployeeSummary.model_validate(e) for e in result.scalars().all()]

    # ── Get single ──────────────────────────────────────────────────

    @staticmethod
    async def get_employee(db: AsyncSession, employee_id: uuid.UUID) -> EmployeeDetail:
        employee = await EmployeeService._load(db, employee_id)
        return EmployeeDetail.model_validate(employee)

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def create_employee(
        db: AsyncSession,
        data: EmployeeCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> EmployeeDetail:
        """Create an employee with a role-prefixed code, e.g. ``WACLY-MNG-0002``."""

        await EmployeeService._ensure_unique_email(db, data.email)
        await EmployeeService._ensure_department(db, data.department_id)

        prefix = ROLE_CODE_PREFIX[data.role]
        employee_code = await next_code(db, f"employee:{prefix}", prefix, 4)

        employee = Employee(
            **data.model_dump(),
            employee_code=employee_code,
            is_active=True,
        )
        db.add(employee)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            new_values={"employee_code": employee_code, **data.model_dump(mode="json")},
        )
        logger.info("Employee %s created (%s)", employee_code, data.role.value)

        return await EmployeeService.get_employee(db, employee.id)

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: EmployeeUpdate,
        actor: Employee,
    ) -> EmployeeDetail:
        """Partial-update an existing employee. Only admins may change roles."""

        employee = await EmployeeService._load(db, employee_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return EmployeeDetail.model_validate(employee)

        if "role" in changes and changes["role"] != employee.role:
            if actor.role != UserRole.admin:
                raise ForbiddenException("Only administrators can change user roles.")
            if changes["role"] is None:
                raise ValidationException({"role": ["Role cannot be empty."]})
        if changes.get("email"):
            await EmployeeService._ensure_unique_email(db, changes["email"], exclude_id=employee.id)
        if "department_id" in changes:
            await EmployeeService._ensure_department(db, changes["department_id"])

        old_values: dict[str, Any] = {}
        for field, value in changes.items():
            if value is None and field in ("first_name", "last_name", "email", "role"):
                continue
            old_values[field] = _plain(getattr(employee, field))
            setattr(employee, field, value)

        employee.updated_at = utc_now()
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor.id,
            old_values=old_values,
            new_values=data.model_dump(mode="json", exclude_unset=True),
        )

        return await EmployeeService.get_employee(db, employee.id)

    # ── Deactivate ──────────────────────────────────────────────────

    @staticmethod
    async def deactivate_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> EmployeeDetail:
        """Soft delete. The last active admin cannot be deactivated."""

        employee = await EmployeeService._load(db, employee_id)
        if not employee.is_active:
            return EmployeeDetail.model_validate(employee)

        if employee.role == UserRole.admin:
            admins = await db.execute(
                select(func.count(Employee.id)).where(
                    Employee.role == UserRole.admin,
                    Employee.is_active.is_(True),
                )
            )
            if admins.scalar_one() <= 1:
                raise ValidationException({"role": ["Cannot deactivate the last admin user."]})

        employee.is_active = False
        employee.updated_at = utc_now()
        await db.flush()

        await create_audit_entry(
            db,
            action="delete",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )
        logger.info("Employee %s deactivated by %s", employee.employee_code, actor_id)
        return await EmployeeService.get_employee(db, employee.id)


# ═════════════════════════════════════════════════════════════════════
# DepartmentService
# ═════════════════════════════════════════════════════════════════════


class DepartmentService:
    """Async CRUD operations for departments."""

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _get_or_404(db: AsyncSession, department_id: uuid.UUID) -> Department:
        result = await db.execute(
            select(Department)
            .where(Department.id == department_id)
            .options(selectinload(Department.manager))
            .execution_options(populate_existing=True)
        )
        dept = result.scalars().first()
        if dept is None:
            raise NotFoundException("Department", str(department_id))
        return dept

    @staticmethod
    async def _active_employee_count(db: AsyncSession, department_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Employee)
            .where(
                Employee.department_id == department_id,
                Employee.is_active.is_(True),
            )
        )
        return result.scalar() or 0

    @staticmethod
    async def _ensure_unique_name(
        db: AsyncSession,
        name: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(Department.id).where(func.lower(Department.name) == name.lower())
        if exclude_id is not None:
            query = query.where(Department.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError("name", name)

    @staticmethod
    async def _ensure_manager(db: AsyncSession, manager_id: Optional[uuid.UUID]) -> None:
        if manager_id is None:
            return
        if await db.get(Employee, manager_id) is None:
            raise ValidationException({"manager_id": ["Manager user not found."]})

    @staticmethod
    def _to_response(dept: Department, employee_count: int) -> DepartmentResponse:
        resp = DepartmentResponse.model_validate(dept)
        resp.employee_count = employee_count
        if dept.manager is not None:
            resp.manager_name = dept.manager.full_name
        return resp

    # ── Read ────────────────────────────────────────────────────────

    @staticmethod
    async def list_departments(
        db: AsyncSession,
        *,
        is_active: Optional[bool] = True,
    ) -> list[DepartmentResponse]:
        """Return departments with their active employee count."""

        query = (
            select(Department)
            .options(selectinload(Department.manager))
            .order_by(Department.name)
        )
        if is_active is not None:
            query = query.where(Department.is_active.is_(is_active))

        departments = (await db.execute(query)).scalars().all()

        # Batch-fetch employee counts
        count_result = await db.execute(
            select(
                Employee.department_id,
                func.count(Employee.id).label("cnt"),
            )
            .where(Employee.is_active.is_(True))
            .group_by(Employee.department_id)
        )
        emp_counts = {row[0]: row[1] for row in count_result.all() if row[0]}

        return [
            DepartmentService._to_response(dept, emp_counts.get(dept.id, 0))
            for dept in departments
        ]

    @staticmethod
    async def get_department(db: AsyncSession, department_id: uuid.UUID) -> DepartmentResponse:
        dept = await DepartmentService._get_or_404(db, department_id)
        count = await DepartmentService._active_employee_count(db, department_id)
        return DepartmentService._to_response(dept, count)

    # ── Write ───────────────────────────────────────────────────────

    @staticmethod
    async def create_department(
        db: AsyncSession,
        data: DepartmentCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> DepartmentResponse:
        name = data.name.strip()
        await DepartmentService._ensure_unique_name(db, name)
        await DepartmentService._ensure_manager(db, data.manager_id)

        code = await next_code(db, "department", "DEPT", 3)
        dept = Department(
            code=code,
            name=name,
            description=data.description,
            manager_id=data.manager_id,
            is_active=True,
        )
        db.add(dept)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="department",
            entity_id=dept.id,
            actor_id=actor_id,
            new_values={"code": code, **data.model_dump(mode="json")},
        )
        logger.info("Department %s (%s) created", name, code)
        return await DepartmentService.get_department(db, dept.id)

    @staticmethod
    async def update_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        data: DepartmentUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> DepartmentResponse:
        dept = await DepartmentService._get_or_404(db, department_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("name"):
            changes["name"] = changes["name"].strip()
            await DepartmentService._ensure_unique_name(db, changes["name"], exclude_id=dept.id)
        elif "name" in changes:
            del changes["name"]
        if "manager_id" in changes:
            await DepartmentService._ensure_manager(db, changes["manager_id"])

        old_values = {field: _plain(getattr(dept, field)) for field in changes}
        for field, value in changes.items():
            setattr(dept, field, value)
        dept.updated_at = utc_now()
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="department",
            entity_id=dept.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values={k: _plain(v) for k, v in changes.items()},
        )
        return await DepartmentService.get_department(db, dept.id)

    @staticmethod
    async def delete_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Delete a department that has no active employees."""
        dept = await DepartmentService._get_or_404(db, department_id)
        if await DepartmentService._active_employee_count(db, department_id) > 0:
            raise ValidationException(
                {"department": ["Cannot delete department with active employees."]}
            )

        # Inactive members are detached rather than deleted
        members = await db.execute(
            select(Employee).where(Employee.department_id == department_id)
        )
        for member in members.scalars().all():
            member.department_id = None

        snapshot = {"code": dept.code, "name": dept.name}
        await db.delete(dept)
        await db.flush()

        await create_audit_entry(
            db,
            action="delete",
            entity_type="department",
            entity_id=department_id,
            actor_id=actor_id,
            old_values=snapshot,
        )
        logger.info("Department %s deleted by %s", snapshot["code"], actor_id)

    @staticmethod
    async def transfer_employee(
        db: AsyncSession,
        data: DepartmentTransfer,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> EmployeeDetail:
        """Move an employee to another department."""
        employee = await EmployeeService._load(db, data.employee_id)
        target = await db.get(Department, data.to_department_id)
        if target is None:
            raise NotFoundException("Department", str(data.to_department_id))
        if (
            data.from_department_id is not None
            and employee.department_id != data.from_department_id
        ):
            raise ValidationException(
                {"from_department_id": ["Employee is not a member of this department."]}
            )

        previous = employee.department_id
        employee.department_id = target.id
        employee.updated_at = utc_now()
        await db.flush()

        await create_audit_entry(
            db,
            action="transfer",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values={"department_id": _plain(previous)},
            new_values={"department_id": str(target.id)},
        )
        logger.info(
            "Employee %s transferred to %s", employee.employee_code, target.code,
        )
        return await EmployeeService.get_employee(db, employee.id)
