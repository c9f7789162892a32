"""Shared test fixtures — async DB, client, auth helpers, factories.

Reusable across all test modules (core_hr, attendance, leave, etc.).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from workforce.common.constants import LeaveStatus, LeaveTypeStatus, UserRole
from workforce.config import settings
from workforce.database import Base, get_db
from workforce.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
# (e.g. Employee → LeaveRequest, AttendanceLog)
import workforce.common.audit  # noqa: F401
import workforce.common.sequences  # noqa: F401
import workforce.core_hr.models  # noqa: F401
import workforce.leave.models  # noqa: F401
import workforce.attendance.models  # noqa: F401
import workforce.shifts.models  # noqa: F401
import workforce.schedules.models  # noqa: F401
import workforce.tasks.models  # noqa: F401

from workforce.core_hr.models import Department, Employee
from workforce.leave.models import LeaveRequest, LeaveType

# ── SQLite compat: compile PG-specific types to TEXT/BLOB ───────────

from sqlalchemy.dialects.postgresql import INET, JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(INET, "sqlite")
def _inet_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and gen_random_uuid() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "gen_random_uuid", 0, lambda: str(uuid.uuid4()),
    )

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from workforce.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_department(
    *,
    name: str = "Engineering",
    code: Optional[str] = None,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        code=code or f"WACLY-DEPT-{uuid.uuid4().hex[:3].upper()}",
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_employee(
    *,
    email: str = "test.user@wacly.io",
    first_name: str = "Test",
    last_name: str = "User",
    role: UserRole = UserRole.employee,
    department_id: Optional[uuid.UUID] = None,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        employee_code=f"WACLY-TST-{uuid.uuid4().hex[:6].upper()}",
        first_name=first_name,
        last_name=last_name,
        email=email,
        role=role,
        department_id=department_id,
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_leave_type(
    *,
    name: str = "Annual Leave",
    days_allowed: int = 20,
    status: LeaveTypeStatus = LeaveTypeStatus.active,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        days_allowed=days_allowed,
        carry_forward=False,
        requires_approval=True,
        status=status,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def seed_department(db: AsyncSession, **kwargs) -> Department:
    dept = Department(**_make_department(**kwargs))
    db.add(dept)
    await db.flush()
    return dept


async def seed_employee(db: AsyncSession, **kwargs) -> Employee:
    emp = Employee(**_make_employee(**kwargs))
    db.add(emp)
    await db.flush()
    return emp


async def seed_leave_type(db: AsyncSession, **kwargs) -> LeaveType:
    lt = LeaveType(**_make_leave_type(**kwargs))
    db.add(lt)
    await db.flush()
    return lt


async def seed_leave_request(
    db: AsyncSession,
    employee: Employee,
    leave_type: LeaveType,
    start_date,
    end_date,
    *,
    status: LeaveStatus = LeaveStatus.pending,
    created_at: Optional[datetime] = None,
) -> LeaveRequest:
    req = LeaveRequest(
        id=uuid.uuid4(),
        employee_id=employee.id,
        leave_type_id=leave_type.id,
        start_date=start_date,
        end_date=end_date,
        number_of_days=(end_date - start_date).days + 1,
        reason="seeded",
        status=status,
        created_at=created_at or datetime.now(timezone.utc),
        updated_at=created_at or datetime.now(timezone.utc),
    )
    db.add(req)
    await db.flush()
    return req


# ── Shared org fixtures ─────────────────────────────────────────────

@pytest.fixture
async def test_department(db) -> Department:
    dept = await seed_department(db)
    await db.commit()
    return dept


@pytest.fixture
async def other_department(db) -> Department:
    dept = await seed_department(db, name="Sales")
    await db.commit()
    return dept


@pytest.fixture
async def test_employee(db, test_department) -> Employee:
    """Active employee in the Engineering department."""
    emp = await seed_employee(db, department_id=test_department.id)
    await db.commit()
    return emp


@pytest.fixture
async def test_manager(db, test_department) -> Employee:
    mgr = await seed_employee(
        db,
        email="manager@wacly.io",
        first_name="Maya",
        last_name="Manager",
        role=UserRole.manager,
        department_id=test_department.id,
    )
    await db.commit()
    return mgr


@pytest.fixture
async def test_admin(db) -> Employee:
    admin = await seed_employee(
        db,
        email="admin@wacly.io",
        first_name="Ada",
        last_name="Admin",
        role=UserRole.admin,
    )
    await db.commit()
    return admin


@pytest.fixture
async def annual_leave(db) -> LeaveType:
    lt = await seed_leave_type(db)
    await db.commit()
    return lt


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
    token_type: str = "access",
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": token_type,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def bearer(employee: Employee) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee.id, employee.role)}"}


@pytest.fixture
def auth_headers(test_employee) -> dict[str, str]:
    return bearer(test_employee)


@pytest.fixture
def manager_headers(test_manager) -> dict[str, str]:
    return bearer(test_manager)


@pytest.fixture
def admin_headers(test_admin) -> dict[str, str]:
    return bearer(test_admin)
