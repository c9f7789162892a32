"""Leave module test suite — leave types, application, approval/rejection,
listings, balances, dashboard counters and API endpoints.

Tests run against SQLite via the shared conftest.py fixtures.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.common.audit import AuditTrail
from workforce.common.constants import LeaveStatus, LeaveTypeStatus, UserRole
from workforce.common.exceptions import ConflictError, NotFoundException, StorageUnavailable
from workforce.common.pagination import PaginationParams
from workforce.leave.exceptions import (
    ExceedsAllowance,
    InvalidTransition,
    OutOfScope,
    OverlappingRequest,
    SelfApproval,
)
from workforce.leave.models import LeaveRequest, LeaveType
from workforce.leave.repository import SqlLeaveStore
from workforce.leave.schemas import (
    LeaveRequestDraft,
    LeaveStatusUpdate,
    LeaveTypeCreate,
    LeaveTypeUpdate,
)
from workforce.leave.service import LeaveService
from tests.conftest import (
    TestSessionFactory,
    bearer,
    seed_department,
    seed_employee,
    seed_leave_request,
    seed_leave_type,
)


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _draft(leave_type, start: date, end: date, reason: str = "Family trip") -> LeaveRequestDraft:
    return LeaveRequestDraft(
        leave_type_id=leave_type.id,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        reason=reason,
    )


def _params(page: int = 1, page_size: int = 20) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)


# ═════════════════════════════════════════════════════════════════════
# Leave types
# ═════════════════════════════════════════════════════════════════════


class TestLeaveTypes:

    async def test_create_leave_type(self, db: AsyncSession, test_admin):
        out = await LeaveService.create_leave_type(
            db, LeaveTypeCreate(name="  Sick Leave ", days_allowed=10), test_admin.id,
        )
        assert out.name == "Sick Leave"
        assert out.status == LeaveTypeStatus.active

        audit = (await db.execute(
            select(AuditTrail).where(AuditTrail.entity_id == out.id)
        )).scalars().all()
        assert [a.action for a in audit] == ["create"]

    async def test_duplicate_name_is_case_insensitive(self, db: AsyncSession, test_admin, annual_leave):
        with pytest.raises(ConflictError):
            await LeaveService.create_leave_type(
                db, LeaveTypeCreate(name="annual leave", days_allowed=5), test_admin.id,
            )

    async def test_get_leave_types_active_only(self, db: AsyncSession, annual_leave):
        await seed_leave_type(db, name="Retired", status=LeaveTypeStatus.inactive)
        await db.commit()

        active = await LeaveService.get_leave_types(db)
        everything = await LeaveService.get_leave_types(db, include_inactive=True)

        assert [lt.name for lt in active] == ["Annual Leave"]
        assert {lt.name for lt in everything} == {"Annual Leave", "Retired"}

    async def test_update_leave_type(self, db: AsyncSession, test_admin, annual_leave):
        out = await LeaveService.update_leave_type(
            db, annual_leave.id, LeaveTypeUpdate(days_allowed=25, description="Yearly"), test_admin.id,
        )
        assert out.days_allowed == 25
        assert out.description == "Yearly"
        assert out.name == "Annual Leave"

    async def test_update_missing_leave_type(self, db: AsyncSession, test_admin):
        with pytest.raises(NotFoundException):
            await LeaveService.update_leave_type(
                db, uuid.uuid4(), LeaveTypeUpdate(days_allowed=3), test_admin.id,
            )

    async def test_delete_is_soft(self, db: AsyncSession, test_admin, annual_leave):
        leave_type_id = annual_leave.id
        out = await LeaveService.delete_leave_type(db, leave_type_id, test_admin.id)
        assert out.status == LeaveTypeStatus.inactive
        await db.commit()

        async with TestSessionFactory() as session:
            row = (await session.execute(
                select(LeaveType).where(LeaveType.id == leave_type_id)
            )).scalars().first()
        assert row is not None
        assert row.status == LeaveTypeStatus.inactive


# ═════════════════════════════════════════════════════════════════════
# Apply
# ═════════════════════════════════════════════════════════════════════


class TestApplyLeave:

    async def test_apply_leave_happy_path(self, db: AsyncSession, test_employee, annual_leave):
        start = _today() + timedelta(days=10)
        out = await LeaveService.apply_leave(
            db, test_employee, _draft(annual_leave, start, start + timedelta(days=4)),
        )

        assert out.status == LeaveStatus.pending
        assert out.number_of_days == 5
        assert out.employee.id == test_employee.id
        assert out.leave_type.name == "Annual Leave"

        audit = (await db.execute(
            select(AuditTrail).where(AuditTrail.entity_id == out.id)
        )).scalars().all()
        assert len(audit) == 1
        assert audit[0].action == "create"

    async def test_apply_leave_overlap_with_pending(self, db: AsyncSession, test_employee, annual_leave):
        start = _today() + timedelta(days=10)
        await seed_leave_request(db, test_employee, annual_leave, start, start + timedelta(days=4))
        await db.commit()

        with pytest.raises(OverlappingRequest):
            await LeaveService.apply_leave(
                db,
                test_employee,
                _draft(annual_leave, start + timedelta(days=3), start + timedelta(days=5)),
            )

    async def test_apply_leave_rejected_does_not_block(self, db: AsyncSession, test_employee, annual_leave):
        start = _today() + timedelta(days=10)
        await seed_leave_request(
            db, test_employee, annual_leave, start, start, status=LeaveStatus.rejected,
        )
        await db.commit()

        out = await LeaveService.apply_leave(db, test_employee, _draft(annual_leave, start, start))
        assert out.number_of_days == 1

    async def test_apply_leave_exceeds_allowance(self, db: AsyncSession, test_employee, annual_leave):
        start = _today() + timedelta(days=1)
        with pytest.raises(ExceedsAllowance):
            await LeaveService.apply_leave(
                db, test_employee, _draft(annual_leave, start, start + timedelta(days=24)),
            )


# ═════════════════════════════════════════════════════════════════════
# Approval workflow
# ═════════════════════════════════════════════════════════════════════


class TestApprovalWorkflow:

    async def _pending(self, db, employee, leave_type) -> LeaveRequest:
        start = _today() + timedelta(days=5)
        req = await seed_leave_request(db, employee, leave_type, start, start + timedelta(days=1))
        await db.commit()
        return req

    async def test_manager_approves_same_department(
        self, db: AsyncSession, test_employee, test_manager, annual_leave,
    ):
        req = await self._pending(db, test_employee, annual_leave)

        async with TestSessionFactory() as session:
            out = await LeaveService.update_request_status(
                session, req.id, LeaveStatusUpdate(status="Approved", comments="Enjoy"), test_manager,
            )
            await session.commit()

        assert out.status == LeaveStatus.approved
        assert out.action_by == test_manager.id
        assert out.comments == "Enjoy"
        assert out.employee.id == test_employee.id

        async with TestSessionFactory() as session:
            row = await session.get(LeaveRequest, req.id)
            assert row.status == LeaveStatus.approved
            assert row.action_at is not None
            actions = (await session.execute(
                select(AuditTrail.action).where(AuditTrail.entity_id == req.id)
            )).scalars().all()
            assert actions == ["approve"]

    async def test_reject(self, db: AsyncSession, test_employee, test_admin, annual_leave):
        req = await self._pending(db, test_employee, annual_leave)

        async with TestSessionFactory() as session:
            out = await LeaveService.update_request_status(
                session, req.id, LeaveStatusUpdate(status="Rejected"), test_admin,
            )
        assert out.status == LeaveStatus.rejected

    async def test_manager_other_department_out_of_scope(
        self, db: AsyncSession, test_employee, other_department, annual_leave,
    ):
        outsider = await seed_employee(
            db, email="sales.mgr@wacly.io", role=UserRole.manager, department_id=other_department.id,
        )
        req = await self._pending(db, test_employee, annual_leave)

        async with TestSessionFactory() as session:
            with pytest.raises(OutOfScope):
                await LeaveService.update_request_status(
                    session, req.id, LeaveStatusUpdate(status="Approved"), outsider,
                )

    async def test_self_approval_forbidden(self, db: AsyncSession, test_manager, annual_leave):
        req = await self._pending(db, test_manager, annual_leave)

        async with TestSessionFactory() as session:
            with pytest.raises(SelfApproval):
                await LeaveService.update_request_status(
                    session, req.id, LeaveStatusUpdate(status="Approved"), test_manager,
                )

    async def test_approved_is_terminal(
        self, db: AsyncSession, test_employee, test_admin, annual_leave,
    ):
        req = await self._pending(db, test_employee, annual_leave)

        async with TestSessionFactory() as session:
            await LeaveService.update_request_status(
                session, req.id, LeaveStatusUpdate(status="Approved"), test_admin,
            )
            await session.commit()

        async with TestSessionFactory() as session:
            with pytest.raises(InvalidTransition):
                await LeaveService.update_request_status(
                    session, req.id, LeaveStatusUpdate(status="Rejected"), test_admin,
                )


# ═════════════════════════════════════════════════════════════════════
# Listings, balances, dashboard
# ═════════════════════════════════════════════════════════════════════


class TestLeaveQueries:

    async def test_my_and_team_scopes(
        self, db: AsyncSession, test_employee, test_manager, other_department, annual_leave,
    ):
        outsider = await seed_employee(db, email="sales@wacly.io", department_id=other_department.id)
        start = _today() + timedelta(days=3)
        await seed_leave_request(db, test_employee, annual_leave, start, start)
        await seed_leave_request(db, test_manager, annual_leave, start, start)
        await seed_leave_request(db, outsider, annual_leave, start, start)
        await db.commit()

        mine = await LeaveService.get_leave_requests(db, _params(), actor=test_employee, scope="my")
        team = await LeaveService.get_leave_requests(db, _params(), actor=test_manager, scope="team")
        everyone = await LeaveService.get_leave_requests(db, _params(), actor=test_manager, scope="all")

        assert mine.meta.total == 1
        assert team.meta.total == 2
        assert {r.employee_id for r in team.data} == {test_employee.id, test_manager.id}
        assert everyone.meta.total == 3

    async def test_team_scope_without_department_is_empty(self, db: AsyncSession, test_admin, annual_leave):
        page = await LeaveService.get_leave_requests(db, _params(), actor=test_admin, scope="team")
        assert page.meta.total == 0
        assert page.data == []

    async def test_balances_and_stats(self, db: AsyncSession, test_employee, annual_leave):
        await seed_leave_type(db, name="Retired", status=LeaveTypeStatus.inactive)
        start = _today() + timedelta(days=3)
        await seed_leave_request(
            db, test_employee, annual_leave, start, start + timedelta(days=2), status=LeaveStatus.approved,
        )
        await seed_leave_request(
            db, test_employee, annual_leave, start + timedelta(days=10), start + timedelta(days=10),
        )
        await db.commit()

        balance = await LeaveService.get_balance(db, test_employee.id, annual_leave.id)
        assert (balance.total, balance.used, balance.remaining) == (20, 3, 17)

        balances = await LeaveService.get_balances(db, test_employee.id)
        assert [b.leave_type_name for b in balances] == ["Annual Leave"]

        stats = await LeaveService.get_stats(db, test_employee.id)
        assert len(stats) == 1
        assert stats[0].days_used == 3
        assert stats[0].requests_count == 1
        assert stats[0].days_remaining == 17

    async def test_dashboard_counters(
        self, db: AsyncSession, test_employee, test_manager, test_admin, annual_leave,
    ):
        today = date(2024, 3, 15)
        now = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
        # On leave today (two people, one department)
        await seed_leave_request(
            db, test_employee, annual_leave, date(2024, 3, 14), date(2024, 3, 16),
            status=LeaveStatus.approved, created_at=now - timedelta(days=10),
        )
        await seed_leave_request(
            db, test_manager, annual_leave, date(2024, 3, 15), date(2024, 3, 15),
            status=LeaveStatus.approved, created_at=now - timedelta(days=10),
        )
        # Upcoming within a week
        await seed_leave_request(
            db, test_admin, annual_leave, date(2024, 3, 20), date(2024, 3, 21),
            status=LeaveStatus.approved, created_at=now - timedelta(days=10),
        )
        # Previous month
        await seed_leave_request(
            db, test_admin, annual_leave, date(2024, 2, 10), date(2024, 2, 11),
            status=LeaveStatus.approved, created_at=now - timedelta(days=40),
        )
        # Pending: one old, one from the last day
        await seed_leave_request(
            db, test_employee, annual_leave, date(2024, 4, 1), date(2024, 4, 2),
            created_at=now - timedelta(days=3),
        )
        await seed_leave_request(
            db, test_manager, annual_leave, date(2024, 4, 5), date(2024, 4, 5),
            created_at=now - timedelta(hours=2),
        )
        await db.commit()

        stats = await LeaveService.get_dashboard_stats(db, today=today, now=now)

        assert stats.pending == 2
        assert stats.pending_change == 1
        assert stats.on_leave_today == 2
        assert stats.departments_affected == 1
        assert stats.upcoming == 1
        assert stats.current_month == 2
        assert stats.previous_month == 1


class TestSqlLeaveStore:

    async def test_driver_failure_becomes_storage_unavailable(self):
        async def _broken(*args, **kwargs):
            raise DBAPIError("SELECT 1", {}, Exception("connection refused"))

        store = SqlLeaveStore(SimpleNamespace(execute=_broken))
        with pytest.raises(StorageUnavailable) as exc:
            await store.find_active_leave_type(uuid.uuid4())
        assert exc.value.status_code == 503

        with pytest.raises(StorageUnavailable):
            await store.sum_approved_days(uuid.uuid4(), uuid.uuid4(), _now())

    async def test_find_overlapping_request(self, db: AsyncSession, test_employee, annual_leave):
        req = await seed_leave_request(
            db, test_employee, annual_leave, date(2024, 3, 1), date(2024, 3, 5),
        )
        await db.commit()
        store = SqlLeaveStore(db)

        hit = await store.find_overlapping_request(
            test_employee.id, date(2024, 3, 5), date(2024, 3, 8), [LeaveStatus.pending],
        )
        miss = await store.find_overlapping_request(
            test_employee.id, date(2024, 3, 6), date(2024, 3, 8), [LeaveStatus.pending],
        )
        wrong_status = await store.find_overlapping_request(
            test_employee.id, date(2024, 3, 1), date(2024, 3, 1), [LeaveStatus.approved],
        )
        assert hit.id == req.id
        assert miss is None
        assert wrong_status is None


# ═════════════════════════════════════════════════════════════════════
# API endpoints
# ═════════════════════════════════════════════════════════════════════


class TestLeaveAPI:

    async def test_list_types_requires_auth(self, client):
        resp = await client.get("/api/v1/leave/types")
        assert resp.status_code == 401

    async def test_list_types(self, client, auth_headers, annual_leave):
        resp = await client.get("/api/v1/leave/types", headers=auth_headers)
        assert resp.status_code == 200
        assert [lt["name"] for lt in resp.json()] == ["Annual Leave"]

    async def test_create_type_admin_only(self, client, auth_headers, admin_headers):
        body = {"name": "Study Leave", "days_allowed": 5}
        denied = await client.post("/api/v1/leave/types", json=body, headers=auth_headers)
        assert denied.status_code == 403

        created = await client.post("/api/v1/leave/types", json=body, headers=admin_headers)
        assert created.status_code == 201
        assert created.json()["status"] == "Active"

    async def test_apply_and_list_my_requests(self, client, auth_headers, annual_leave):
        start = _today() + timedelta(days=7)
        resp = await client.post(
            "/api/v1/leave/requests",
            json={
                "leave_type_id": str(annual_leave.id),
                "start_date": start.isoformat(),
                "end_date": (start + timedelta(days=2)).isoformat(),
                "reason": "Wedding",
            },
            headers=auth_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["number_of_days"] == 3
        assert data["status"] == "Pending"

        mine = await client.get("/api/v1/leave/requests/my", headers=auth_headers)
        assert mine.status_code == 200
        assert mine.json()["meta"]["total"] == 1
        assert mine.json()["data"][0]["leave_type"]["name"] == "Annual Leave"

    async def test_apply_reports_problem_details(self, client, auth_headers, annual_leave):
        resp = await client.post(
            "/api/v1/leave/requests",
            json={
                "leave_type_id": str(annual_leave.id),
                "start_date": "2030-03-10",
                "end_date": "2030-03-01",
                "reason": "Trip",
            },
            headers=auth_headers,
        )
        assert resp.status_code == 422
        assert resp.headers["content-type"].startswith("application/problem+json")
        body = resp.json()
        assert body["errors"]["code"] == "EndBeforeStart"
        assert body["type"].endswith("/end-before-start")

    async def test_apply_missing_reason(self, client, auth_headers, annual_leave):
        resp = await client.post(
            "/api/v1/leave/requests",
            json={
                "leave_type_id": str(annual_leave.id),
                "start_date": "2030-03-01",
                "end_date": "2030-03-02",
            },
            headers=auth_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["errors"] == {"code": "MissingField", "field": "reason"}

    async def test_apply_is_rate_limited(self, client, auth_headers):
        statuses = [
            (await client.post("/api/v1/leave/requests", json={}, headers=auth_headers)).status_code
            for _ in range(11)
        ]
        assert statuses[:10] == [422] * 10
        assert statuses[10] == 429

    async def test_team_requests_forbidden_for_employee(self, client, auth_headers):
        resp = await client.get("/api/v1/leave/requests/team", headers=auth_headers)
        assert resp.status_code == 403

    async def test_all_requests_admin_only(self, client, manager_headers, admin_headers):
        assert (await client.get("/api/v1/leave/requests", headers=manager_headers)).status_code == 403
        resp = await client.get("/api/v1/leave/requests", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["meta"]["total"] == 0

    async def test_manager_approves_via_api(
        self, client, db, test_employee, manager_headers, annual_leave,
    ):
        start = _today() + timedelta(days=4)
        req = await seed_leave_request(db, test_employee, annual_leave, start, start)
        await db.commit()

        resp = await client.put(
            f"/api/v1/leave/requests/{req.id}/status",
            json={"status": "Approved", "comments": "ok"},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "Approved"

        again = await client.put(
            f"/api/v1/leave/requests/{req.id}/status",
            json={"status": "Rejected"},
            headers=manager_headers,
        )
        assert again.status_code == 409
        assert again.json()["errors"]["code"] == "InvalidTransition"

    async def test_invalid_status_value(self, client, db, test_employee, admin_headers, annual_leave):
        start = _today() + timedelta(days=4)
        req = await seed_leave_request(db, test_employee, annual_leave, start, start)
        await db.commit()

        resp = await client.put(
            f"/api/v1/leave/requests/{req.id}/status",
            json={"status": "Cancelled"},
            headers=admin_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["errors"]["code"] == "InvalidStatus"

    async def test_employee_cannot_review(self, client, db, test_manager, auth_headers, annual_leave):
        start = _today() + timedelta(days=4)
        req = await seed_leave_request(db, test_manager, annual_leave, start, start)
        await db.commit()

        resp = await client.put(
            f"/api/v1/leave/requests/{req.id}/status",
            json={"status": "Approved"},
            headers=auth_headers,
        )
        assert resp.status_code == 403

    async def test_balances_endpoint(self, client, auth_headers, annual_leave):
        resp = await client.get("/api/v1/leave/balances", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()[0]["remaining"] == 20

        one = await client.get(f"/api/v1/leave/balances/{annual_leave.id}", headers=auth_headers)
        assert one.status_code == 200
        assert one.json()["total"] == 20

        missing = await client.get(f"/api/v1/leave/balances/{uuid.uuid4()}", headers=auth_headers)
        assert missing.status_code == 404

    async def test_dashboard_endpoint(self, client, db, annual_leave):
        viewer = await seed_employee(db, email="viewer@wacly.io")
        await seed_department(db, name="Ops")
        await db.commit()

        resp = await client.get("/api/v1/leave/dashboard", headers=bearer(viewer))
        assert resp.status_code == 200
        assert resp.json()["pending"] == 0
