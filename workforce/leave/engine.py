"""Leave validation & balance engine.

Pure business rules for leave requests. The engine never writes: it reads
through a ``LeaveStore`` and either returns a normalised, ready-to-persist
value or raises one of the typed failures in ``workforce.leave.exceptions``.

Rules, in the order they are applied to a new request:
  1. leave_type_id, start_date, end_date and a non-blank reason are present
  2. both dates parse as calendar dates
  3. end_date is not before start_date
  4. the leave type exists and is Active
  5. start_date is not before today
  6. the inclusive day count fits the allowance (per request, or against
     the current year's remaining balance when LEAVE_BALANCE_POLICY is
     "balance")
  7. no Pending/Approved request of the same user overlaps the range

A reviewer may move a Pending request to Approved or Rejected once; both
are terminal.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Protocol, Sequence

from workforce.common.constants import (
    ACTIONABLE_LEAVE_STATUSES,
    BLOCKING_LEAVE_STATUSES,
    LeaveBalancePolicy,
    LeaveStatus,
    UserRole,
)
from workforce.core_hr.models import Employee
from workforce.leave.exceptions import (
    EndBeforeStart,
    ExceedsAllowance,
    InvalidDate,
    InvalidStatus,
    InvalidTransition,
    MissingField,
    NotFound,
    OutOfScope,
    OverlappingRequest,
    PastStartDate,
    SelfApproval,
    UnknownOrInactiveLeaveType,
)
from workforce.leave.models import LeaveRequest, LeaveType
from workforce.leave.schemas import LeaveBalance, LeaveRequestDraft, ValidatedLeaveRequest


# ═════════════════════════════════════════════════════════════════════
# Store protocol
# ═════════════════════════════════════════════════════════════════════


class LeaveStore(Protocol):
    """Read-only query surface the engine needs from the data store."""

    async def find_active_leave_type(self, leave_type_id: uuid.UUID) -> Optional[LeaveType]: ...

    async def find_leave_type(self, leave_type_id: uuid.UUID) -> Optional[LeaveType]: ...

    async def find_overlapping_request(
        self,
        user_id: uuid.UUID,
        start_date: date,
        end_date: date,
        statuses: Sequence[LeaveStatus],
    ) -> Optional[LeaveRequest]: ...

    async def sum_approved_days(
        self,
        user_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        since: datetime,
    ) -> int: ...

    async def find_request_by_id(self, request_id: uuid.UUID) -> Optional[LeaveRequest]: ...


@dataclass(frozen=True)
class LeaveAction:
    """A review decision that has passed every rule but is not yet applied."""

    request: LeaveRequest
    status: LeaveStatus
    action_by: uuid.UUID
    action_at: datetime
    comments: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# Pure helpers
# ═════════════════════════════════════════════════════════════════════


def parse_leave_date(value: Any, field: str) -> date:
    """Coerce *value* to a calendar date or raise ``InvalidDate``.

    Accepts ``date``/``datetime`` objects and ISO-8601 date or datetime
    strings; a datetime contributes only its calendar date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass
    raise InvalidDate(field, value)


def count_leave_days(start_date: date, end_date: date) -> int:
    """Inclusive calendar-day count; weekends and holidays are not excluded."""
    return abs((end_date - start_date).days) + 1


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """True when two inclusive ranges share at least one calendar day."""
    return a_start <= b_end and a_end >= b_start


def year_start(year: int, tzinfo=None) -> datetime:
    return datetime(year, 1, 1, tzinfo=tzinfo)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _coerce_uuid(value: Any) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        return None


def _coerce_status(value: Any) -> Optional[LeaveStatus]:
    if isinstance(value, LeaveStatus):
        return value
    try:
        return LeaveStatus(value)
    except ValueError:
        return None


# ═════════════════════════════════════════════════════════════════════
# Engine
# ═════════════════════════════════════════════════════════════════════


class LeaveEngine:
    """Validation and balance rules for leave requests."""

    def __init__(
        self,
        store: LeaveStore,
        *,
        balance_policy: LeaveBalancePolicy = LeaveBalancePolicy.request,
    ) -> None:
        self.store = store
        self.balance_policy = LeaveBalancePolicy(balance_policy)

    # ── Apply ───────────────────────────────────────────────────────

    async def validate_leave_request(
        self,
        draft: LeaveRequestDraft,
        current_user: Employee,
        now: datetime,
    ) -> ValidatedLeaveRequest:
        """Check *draft* for *current_user* and return the record to persist."""

        for field in ("leave_type_id", "start_date", "end_date", "reason"):
            if _is_blank(getattr(draft, field)):
                raise MissingField(field)

        start_date = parse_leave_date(draft.start_date, "start_date")
        end_date = parse_leave_date(draft.end_date, "end_date")

        # Ordering is settled before anything is counted or looked up
        if end_date < start_date:
            raise EndBeforeStart(start_date, end_date)

        leave_type_id = _coerce_uuid(draft.leave_type_id)
        leave_type = None
        if leave_type_id is not None:
            leave_type = await self.store.find_active_leave_type(leave_type_id)
        if leave_type is None:
            raise UnknownOrInactiveLeaveType(draft.leave_type_id)

        number_of_days = count_leave_days(start_date, end_date)

        today = now.date()
        if start_date < today:
            raise PastStartDate(start_date, today)

        await self._check_allowance(
            current_user.id, leave_type, number_of_days, now,
        )

        overlapping = await self.store.find_overlapping_request(
            current_user.id, start_date, end_date, BLOCKING_LEAVE_STATUSES,
        )
        if overlapping is not None:
            raise OverlappingRequest(overlapping.id)

        return ValidatedLeaveRequest(
            employee_id=current_user.id,
            leave_type_id=leave_type.id,
            start_date=start_date,
            end_date=end_date,
            number_of_days=number_of_days,
            reason=draft.reason.strip(),
            status=LeaveStatus.pending,
        )

    async def _check_allowance(
        self,
        user_id: uuid.UUID,
        leave_type: LeaveType,
        number_of_days: int,
        now: datetime,
    ) -> None:
        if self.balance_policy == LeaveBalancePolicy.request:
            if number_of_days > leave_type.days_allowed:
                raise ExceedsAllowance(
                    leave_type.name, number_of_days, leave_type.days_allowed,
                )
            return

        # Same window as compute_balance: approved requests created this year
        used = await self.store.sum_approved_days(
            user_id, leave_type.id, year_start(now.year, now.tzinfo),
        )
        remaining = leave_type.days_allowed - used
        if number_of_days > remaining:
            raise ExceedsAllowance(
                leave_type.name,
                number_of_days,
                leave_type.days_allowed,
                used=used,
                remaining=remaining,
            )

    # ── Review ──────────────────────────────────────────────────────

    async def validate_leave_action(
        self,
        request_id: uuid.UUID,
        proposed_status: Any,
        acting_user: Employee,
        now: datetime,
        *,
        comments: Optional[str] = None,
    ) -> LeaveAction:
        """Check that *acting_user* may move the request to *proposed_status*."""

        status = _coerce_status(proposed_status)
        if status not in ACTIONABLE_LEAVE_STATUSES:
            raise InvalidStatus(proposed_status)

        leave_request = await self.store.find_request_by_id(request_id)
        if leave_request is None:
            raise NotFound("LeaveRequest", request_id)

        if leave_request.employee_id == acting_user.id:
            raise SelfApproval(request_id)

        if acting_user.role == UserRole.manager:
            owner_department_id = leave_request.employee.department_id
            if (
                acting_user.department_id is None
                or owner_department_id != acting_user.department_id
            ):
                raise OutOfScope(
                    request_id, owner_department_id, acting_user.department_id,
                )

        if leave_request.status != LeaveStatus.pending:
            raise InvalidTransition(request_id, leave_request.status.value)

        return LeaveAction(
            request=leave_request,
            status=status,
            action_by=acting_user.id,
            action_at=now,
            comments=comments.strip() if comments else None,
        )

    # ── Balance ─────────────────────────────────────────────────────

    async def compute_balance(
        self,
        user_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        as_of_year: int,
        *,
        tzinfo=None,
    ) -> LeaveBalance:
        """Allowance minus approved usage for requests created in *as_of_year* or later.

        ``remaining`` is not floored: a negative value means over-allocation.
        """
        leave_type = await self.store.find_leave_type(leave_type_id)
        if leave_type is None:
            raise NotFound("LeaveType", leave_type_id)

        used = await self.store.sum_approved_days(
            user_id, leave_type_id, year_start(as_of_year, tzinfo),
        )
        return LeaveBalance(
            leave_type_id=leave_type.id,
            leave_type_name=leave_type.name,
            year=as_of_year,
            total=leave_type.days_allowed,
            used=used,
            remaining=leave_type.days_allowed - used,
        )
