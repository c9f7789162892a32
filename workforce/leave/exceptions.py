"""Typed failures raised by the leave validation & balance engine.

Every failure is an ``AppException`` so the RFC 7807 handler renders it
without extra wiring; ``code`` is a stable identifier clients can switch on
and ``errors`` carries the context needed for a precise message.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from workforce.common.exceptions import AppException


class LeaveRuleViolation(AppException):
    """Base for every engine outcome other than success."""

    code: str = "LeaveRuleViolation"
    status: int = 422

    def __init__(self, detail: str, **context: Any) -> None:
        self.context = context
        errors = {"code": self.code}
        errors.update({k: _jsonable(v) for k, v in context.items()})
        super().__init__(
            status_code=self.status,
            error_type=_kebab(self.code),
            title=_title(self.code),
            detail=detail,
            errors=errors,
        )


def _jsonable(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def _kebab(code: str) -> str:
    out = []
    for i, ch in enumerate(code):
        if ch.isupper() and i:
            out.append("-")
        out.append(ch.lower())
    return "".join(out)


def _title(code: str) -> str:
    return _kebab(code).replace("-", " ").capitalize()


# ── Draft validation ────────────────────────────────────────────────

class MissingField(LeaveRuleViolation):
    code = "MissingField"

    def __init__(self, field: str) -> None:
        super().__init__(f"'{field}' is required.", field=field)


class InvalidDate(LeaveRuleViolation):
    code = "InvalidDate"

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(
            f"'{field}' is not a valid date. Use the YYYY-MM-DD format.",
            field=field,
            value=value,
        )


class UnknownOrInactiveLeaveType(LeaveRuleViolation):
    code = "UnknownOrInactiveLeaveType"

    def __init__(self, leave_type_id: Any) -> None:
        super().__init__(
            "Invalid or inactive leave type.",
            leave_type_id=leave_type_id,
        )


class EndBeforeStart(LeaveRuleViolation):
    code = "EndBeforeStart"

    def __init__(self, start_date: date, end_date: date) -> None:
        super().__init__(
            "End date cannot be before start date.",
            start_date=start_date,
            end_date=end_date,
        )


class PastStartDate(LeaveRuleViolation):
    code = "PastStartDate"

    def __init__(self, start_date: date, today: date) -> None:
        super().__init__(
            "Cannot create a leave request for past dates.",
            start_date=start_date,
            today=today,
        )


class ExceedsAllowance(LeaveRuleViolation):
    code = "ExceedsAllowance"

    def __init__(
        self,
        leave_type_name: str,
        requested: int,
        allowed: int,
        *,
        used: Optional[int] = None,
        remaining: Optional[int] = None,
    ) -> None:
        context: dict[str, Any] = {"requested": requested, "allowed": allowed}
        if remaining is None:
            detail = (
                f"Maximum {allowed} days allowed for {leave_type_name}. "
                f"Requested: {requested} days."
            )
        else:
            detail = (
                f"Insufficient {leave_type_name} balance. "
                f"You have {remaining} days available, requested {requested}."
            )
            context.update(used=used, remaining=remaining)
        super().__init__(detail, **context)


class OverlappingRequest(LeaveRuleViolation):
    code = "OverlappingRequest"
    status = 409

    def __init__(self, conflicting_request_id: Any) -> None:
        super().__init__(
            "You have an overlapping leave request for these dates.",
            conflicting_request_id=conflicting_request_id,
        )


# ── Review actions ──────────────────────────────────────────────────

class InvalidStatus(LeaveRuleViolation):
    code = "InvalidStatus"

    def __init__(self, status: Any) -> None:
        super().__init__(
            "Invalid status. Must be either Approved or Rejected.",
            status=status,
        )


class NotFound(LeaveRuleViolation):
    code = "NotFound"
    status = 404

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            f"{entity_type} with id '{entity_id}' does not exist.",
            entity_type=entity_type,
            entity_id=entity_id,
        )


class SelfApproval(LeaveRuleViolation):
    code = "SelfApproval"
    status = 403

    def __init__(self, request_id: Any) -> None:
        super().__init__(
            "You cannot approve or reject your own leave request.",
            request_id=request_id,
        )


class OutOfScope(LeaveRuleViolation):
    code = "OutOfScope"
    status = 403

    def __init__(
        self,
        request_id: Any,
        owner_department_id: Any,
        actor_department_id: Any,
    ) -> None:
        super().__init__(
            "You can only manage requests from your department.",
            request_id=request_id,
            owner_department_id=owner_department_id,
            actor_department_id=actor_department_id,
        )


class InvalidTransition(LeaveRuleViolation):
    code = "InvalidTransition"
    status = 409

    def __init__(self, request_id: Any, current_status: str) -> None:
        super().__init__(
            f"Leave request is already {current_status}.",
            request_id=request_id,
            current_status=current_status,
        )
