"""Auth dependencies — JWT validation, RBAC enforcement.

Tokens are issued by the identity service; this module only verifies
them and resolves the caller to an active Employee.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from workforce.common.constants import UserRole
from workforce.common.exceptions import ForbiddenException
from workforce.config import settings
from workforce.core_hr.models import Employee
from workforce.database import get_db

logger = logging.getLogger(__name__)

# Role hierarchy: each role implicitly includes the lower ones
_ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.admin: {UserRole.admin, UserRole.manager, UserRole.employee},
    UserRole.manager: {UserRole.manager, UserRole.employee},
    UserRole.employee: {UserRole.employee},
}


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


def effective_roles(role: UserRole) -> set[UserRole]:
    """Expand *role* through the hierarchy."""
    return _ROLE_HIERARCHY.get(role, {role})


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Employee:
    """Validate JWT and return the authenticated, active Employee."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")

    try:
        employee_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    emp_result = await db.execute(
        select(Employee)
        .where(Employee.id == employee_id, Employee.is_active.is_(True))
        .options(selectinload(Employee.department)),
    )
    employee = emp_result.scalars().first()
    if employee is None:
        logger.info("Rejected token for unknown or inactive employee %s", employee_id)
        raise HTTPException(status_code=401, detail="User account is inactive or not found.")

    # The stored role is authoritative; the token claim may be stale.
    request.state.user_role = employee.role
    return employee


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy — e.g. admin can access manager endpoints.
    """

    async def _check(
        request: Request,
        employee: Employee = Depends(get_current_user),
    ) -> Employee:
        user_role: UserRole = request.state.user_role
        if not effective_roles(user_role).intersection(set(allowed_roles)):
            raise ForbiddenException(
                detail=f"Role '{user_role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return employee

    return _check
