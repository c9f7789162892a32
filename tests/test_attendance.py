"""Attendance module test suite — clock-in/out sessions, durations, today and
history views, monthly statistics and department attendance.

Tests exercise both the service layer (direct DB) and the HTTP API (via router).
Uses the shared conftest.py pattern with in-memory SQLite.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import select

from workforce.attendance.models import AttendanceLog
from workforce.attendance.service import AttendanceService, session_minutes
from workforce.common.audit import AuditTrail
from workforce.common.constants import AttendanceStatus, UserRole
from workforce.common.exceptions import ConflictError, ValidationException
from workforce.common.pagination import PaginationParams
from workforce.config import settings
from tests.conftest import TestSessionFactory, bearer, seed_employee

MORNING = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


def _params(page: int = 1, page_size: int = 20) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)


async def _work(db, employee_id, start: datetime, minutes: int) -> None:
    """Record one completed session of *minutes* starting at *start*."""
    await AttendanceService.clock_in(db, employee_id, now=start)
    await AttendanceService.clock_out(db, employee_id, now=start + timedelta(minutes=minutes))


# ── Duration helper ─────────────────────────────────────────────────


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, 0), (59, 0), (60, 1), (119, 1), (8 * 3600 + 30 * 60 + 59, 510)],
)
def test_session_minutes_floors(seconds, expected):
    assert session_minutes(MORNING, MORNING + timedelta(seconds=seconds)) == expected


def test_session_minutes_accepts_naive_stored_values():
    naive_in = MORNING.replace(tzinfo=None)
    assert session_minutes(naive_in, MORNING + timedelta(minutes=90)) == 90


# ── Clock in / out ──────────────────────────────────────────────────


async def test_clock_in_opens_session(db, test_employee):
    log = await AttendanceService.clock_in(db, test_employee.id, now=MORNING)

    assert log.status == AttendanceStatus.in_progress
    assert log.session_date == date(2024, 3, 4)
    assert log.clock_out is None

    audit = (await db.execute(
        select(AuditTrail).where(AuditTrail.entity_id == log.id)
    )).scalars().all()
    assert [a.action for a in audit] == ["clock_in"]


async def test_clock_in_twice_conflicts(db, test_employee):
    await AttendanceService.clock_in(db, test_employee.id, now=MORNING)
    with pytest.raises(ConflictError):
        await AttendanceService.clock_in(db, test_employee.id, now=MORNING + timedelta(hours=1))


async def test_clock_out_records_duration(db, test_employee):
    await AttendanceService.clock_in(db, test_employee.id, now=MORNING)
    await db.commit()

    async with TestSessionFactory() as session:
        log = await AttendanceService.clock_out(
            session, test_employee.id, now=MORNING + timedelta(hours=8, minutes=15, seconds=40),
        )
        await session.commit()

    assert log.status == AttendanceStatus.completed
    assert log.duration_minutes == 495

    async with TestSessionFactory() as session:
        row = await session.get(AttendanceLog, log.id)
        assert row.status == AttendanceStatus.completed
        assert row.duration_minutes == 495


async def test_clock_out_without_session(db, test_employee):
    with pytest.raises(ValidationException):
        await AttendanceService.clock_out(db, test_employee.id, now=MORNING)


async def test_multiple_sessions_per_day(db, test_employee):
    await _work(db, test_employee.id, MORNING, 180)
    await _work(db, test_employee.id, MORNING + timedelta(hours=4), 240)

    today = await AttendanceService.get_today(db, test_employee.id, now=MORNING + timedelta(hours=9))
    assert [s.duration_minutes for s in today] == [180, 240]
    assert await AttendanceService.get_active_session(db, test_employee.id) is None


async def test_session_date_uses_business_timezone(db, test_employee):
    late_evening = datetime(2024, 3, 4, 23, 30, tzinfo=timezone.utc)
    with patch.object(settings, "TIMEZONE", "Asia/Kolkata"):
        log = await AttendanceService.clock_in(db, test_employee.id, now=late_evening)
    assert log.session_date == date(2024, 3, 5)


# ── History & statistics ────────────────────────────────────────────


async def test_history_date_range(db, test_employee):
    for day in range(4):
        await _work(db, test_employee.id, MORNING + timedelta(days=day), 60)

    page = await AttendanceService.get_history(
        db, test_employee.id, _params(), start_date=date(2024, 3, 5), end_date=date(2024, 3, 6),
    )
    assert page.meta.total == 2
    assert [s.session_date for s in page.data] == [date(2024, 3, 6), date(2024, 3, 5)]


@pytest.mark.parametrize(
    "start, end",
    [(date(2024, 3, 10), date(2024, 3, 1)), (date(2023, 1, 1), date(2024, 3, 1))],
)
async def test_history_rejects_bad_ranges(db, test_employee, start, end):
    with pytest.raises(ValidationException):
        await AttendanceService.get_history(
            db, test_employee.id, _params(), start_date=start, end_date=end,
        )


async def test_monthly_statistics(db, test_employee):
    await _work(db, test_employee.id, datetime(2024, 2, 28, 9, tzinfo=timezone.utc), 600)
    await _work(db, test_employee.id, MORNING, 240)
    await _work(db, test_employee.id, MORNING + timedelta(hours=5), 120)
    await _work(db, test_employee.id, MORNING + timedelta(days=1), 450)
    # Still open: not counted
    await AttendanceService.clock_in(db, test_employee.id, now=MORNING + timedelta(days=2))

    stats = await AttendanceService.get_statistics(
        db, test_employee.id, now=MORNING + timedelta(days=2, hours=1),
    )
    assert stats.month == "2024-03"
    assert stats.total_days == 2
    assert stats.total_hours == 13.5
    assert stats.average_hours_per_day == 6.75


async def test_statistics_empty_month(db, test_employee):
    stats = await AttendanceService.get_statistics(db, test_employee.id, now=MORNING)
    assert stats.total_days == 0
    assert stats.total_hours == 0
    assert stats.average_hours_per_day == 0


# ── Department attendance ───────────────────────────────────────────


async def test_department_attendance_scoped_to_manager(
    db, test_employee, test_manager, test_admin, other_department,
):
    outsider = await seed_employee(db, email="sales@wacly.io", department_id=other_department.id)
    await _work(db, test_employee.id, MORNING, 60)
    await _work(db, outsider.id, MORNING, 60)
    await db.commit()

    mine = await AttendanceService.get_department_attendance(
        db, test_manager, _params(), department_id=other_department.id,
    )
    assert [s.employee_id for s in mine.data] == [test_employee.id]
    assert mine.data[0].employee.first_name == "Test"

    everyone = await AttendanceService.get_department_attendance(db, test_admin, _params())
    assert everyone.meta.total == 2

    sales = await AttendanceService.get_department_attendance(
        db, test_admin, _params(), department_id=other_department.id,
    )
    assert [s.employee_id for s in sales.data] == [outsider.id]


async def test_department_attendance_manager_without_department(db, test_employee):
    loner = await seed_employee(db, email="loner@wacly.io", role=UserRole.manager)
    await db.commit()
    page = await AttendanceService.get_department_attendance(db, loner, _params())
    assert page.meta.total == 0


# ── API ─────────────────────────────────────────────────────────────


async def test_clock_in_out_api(client, auth_headers):
    first = await client.post("/api/v1/attendance/clock-in", headers=auth_headers)
    assert first.status_code == 201
    assert first.json()["status"] == "In Progress"

    duplicate = await client.post("/api/v1/attendance/clock-in", headers=auth_headers)
    assert duplicate.status_code == 409

    active = await client.get("/api/v1/attendance/active-session", headers=auth_headers)
    assert active.json()["id"] == first.json()["id"]

    out = await client.post("/api/v1/attendance/clock-out", headers=auth_headers)
    assert out.status_code == 200
    assert out.json()["status"] == "Completed"

    again = await client.post("/api/v1/attendance/clock-out", headers=auth_headers)
    assert again.status_code == 422

    idle = await client.get("/api/v1/attendance/active-session", headers=auth_headers)
    assert idle.json() is None


async def test_today_history_statistics_api(client, auth_headers):
    await client.post("/api/v1/attendance/clock-in", headers=auth_headers)
    await client.post("/api/v1/attendance/clock-out", headers=auth_headers)

    today = await client.get("/api/v1/attendance/today", headers=auth_headers)
    history = await client.get("/api/v1/attendance/history", headers=auth_headers)
    stats = await client.get("/api/v1/attendance/statistics", headers=auth_headers)

    assert len(today.json()) == 1
    assert history.json()["meta"]["total"] == 1
    assert stats.json()["total_days"] == 1


async def test_department_api_requires_manager(client, auth_headers, manager_headers):
    denied = await client.get("/api/v1/attendance/department", headers=auth_headers)
    assert denied.status_code == 403

    allowed = await client.get("/api/v1/attendance/department", headers=manager_headers)
    assert allowed.status_code == 200
    assert allowed.json()["data"] == []


async def test_attendance_requires_auth(client):
    resp = await client.post("/api/v1/attendance/clock-in")
    assert resp.status_code == 401


async def test_history_bad_range_api(client, db, test_employee):
    resp = await client.get(
        "/api/v1/attendance/history",
        params={"start_date": "2024-03-10", "end_date": "2024-03-01"},
        headers=bearer(test_employee),
    )
    assert resp.status_code == 422
    assert "end_date" in resp.json()["errors"]


# ── Organisation-wide listing & reports ─────────────────────────────


async def test_all_attendance_filters(db, test_employee, other_department):
    outsider = await seed_employee(db, email="sales@wacly.io", department_id=other_department.id)
    await _work(db, test_employee.id, MORNING, 60)
    await _work(db, outsider.id, MORNING + timedelta(days=1), 60)
    await AttendanceService.clock_in(db, outsider.id, now=MORNING + timedelta(days=2))
    await db.commit()

    everything = await AttendanceService.get_all_attendance(db, _params())
    assert everything.meta.total == 3
    assert everything.data[0].status == AttendanceStatus.in_progress

    sales_done = await AttendanceService.get_all_attendance(
        db, _params(), department_id=other_department.id, status=AttendanceStatus.completed,
    )
    assert [s.employee_id for s in sales_done.data] == [outsider.id]
    assert sales_done.data[0].employee.department_id == other_department.id

    first_day = await AttendanceService.get_all_attendance(
        db, _params(), start_date=date(2024, 3, 4), end_date=date(2024, 3, 4),
    )
    assert [s.employee_id for s in first_day.data] == [test_employee.id]


async def test_report_totals_per_employee(db, test_employee, test_admin, other_department):
    outsider = await seed_employee(
        db, email="sales@wacly.io", first_name="Sam", department_id=other_department.id,
    )
    await _work(db, test_employee.id, MORNING, 240)
    await _work(db, test_employee.id, MORNING + timedelta(hours=5), 120)
    await _work(db, test_employee.id, MORNING + timedelta(days=1), 450)
    await _work(db, outsider.id, MORNING, 90)
    # Open sessions are entries without hours
    await AttendanceService.clock_in(db, outsider.id, now=MORNING + timedelta(days=2))
    await db.commit()

    report = await AttendanceService.get_report(db, test_admin)

    assert report.total_entries == 5
    assert report.department_total_hours == 15.0
    assert report.average_hours_per_entry == 3.0
    rows = {row.employee_id: row for row in report.employees}
    mine = rows[test_employee.id]
    assert (mine.sessions, mine.total_days, mine.total_hours) == (3, 2, 13.5)
    assert mine.average_hours_per_day == 6.75
    assert mine.name == "Test User"
    theirs = rows[outsider.id]
    assert (theirs.sessions, theirs.total_days, theirs.total_hours) == (1, 1, 1.5)


async def test_report_scoped_for_managers(
    db, test_employee, test_manager, test_admin, other_department,
):
    outsider = await seed_employee(db, email="sales@wacly.io", department_id=other_department.id)
    await _work(db, test_employee.id, MORNING, 60)
    await _work(db, outsider.id, MORNING, 120)
    await db.commit()

    managed = await AttendanceService.get_report(
        db, test_manager, department_id=other_department.id,
    )
    assert managed.department_id == test_manager.department_id
    assert [row.employee_id for row in managed.employees] == [test_employee.id]

    sales = await AttendanceService.get_report(
        db, test_admin, department_id=other_department.id,
    )
    assert [row.employee_id for row in sales.employees] == [outsider.id]
    assert sales.department_total_hours == 2.0


async def test_report_date_range_and_empty(db, test_employee, test_admin):
    await _work(db, test_employee.id, MORNING, 60)
    await _work(db, test_employee.id, MORNING + timedelta(days=7), 60)
    await db.commit()

    week = await AttendanceService.get_report(
        db, test_admin, start_date=date(2024, 3, 4), end_date=date(2024, 3, 10),
    )
    assert week.total_entries == 1
    assert week.employees[0].total_hours == 1.0

    empty = await AttendanceService.get_report(
        db, test_admin, start_date=date(2025, 1, 1), end_date=date(2025, 1, 31),
    )
    assert empty.total_entries == 0
    assert empty.average_hours_per_entry == 0
    assert empty.employees == []


async def test_report_manager_without_department(db):
    loner = await seed_employee(db, email="loner@wacly.io", role=UserRole.manager)
    await db.commit()
    report = await AttendanceService.get_report(db, loner)
    assert report.total_entries == 0
    assert report.employees == []


async def test_all_attendance_api_admin_only(client, auth_headers, manager_headers, admin_headers):
    for headers in (auth_headers, manager_headers):
        denied = await client.get("/api/v1/attendance/all", headers=headers)
        assert denied.status_code == 403

    await client.post("/api/v1/attendance/clock-in", headers=auth_headers)
    allowed = await client.get(
        "/api/v1/attendance/all",
        params={"status": "In Progress"},
        headers=admin_headers,
    )
    assert allowed.status_code == 200
    assert allowed.json()["meta"]["total"] == 1


async def test_report_api(client, auth_headers, manager_headers):
    denied = await client.get("/api/v1/attendance/report", headers=auth_headers)
    assert denied.status_code == 403

    await client.post("/api/v1/attendance/clock-in", headers=auth_headers)
    await client.post("/api/v1/attendance/clock-out", headers=auth_headers)

    resp = await client.get("/api/v1/attendance/report", headers=manager_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_entries"] == 1
    assert body["employees"][0]["sessions"] == 1

    bad = await client.get(
        "/api/v1/attendance/report",
        params={"start_date": "2024-03-10", "end_date": "2024-03-01"},
        headers=manager_headers,
    )
    assert bad.status_code == 422
