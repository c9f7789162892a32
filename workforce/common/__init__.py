"""Common module — shared utilities for the workforce backend."""

from workforce.common.audit import AuditTrail, create_audit_entry
from workforce.common.constants import (
    ACTIONABLE_LEAVE_STATUSES,
    BLOCKING_LEAVE_STATUSES,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    ROLE_CODE_PREFIX,
    AttendanceStatus,
    GenderType,
    LeaveBalancePolicy,
    LeaveStatus,
    LeaveTypeStatus,
    UserRole,
)
from workforce.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    StorageUnavailable,
    ValidationException,
    register_exception_handlers,
)
from workforce.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)
from workforce.common.sequences import SequenceCounter, next_code, next_value

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "AttendanceStatus",
    "GenderType",
    "LeaveBalancePolicy",
    "LeaveStatus",
    "LeaveTypeStatus",
    "UserRole",
    "ACTIONABLE_LEAVE_STATUSES",
    "BLOCKING_LEAVE_STATUSES",
    "ROLE_CODE_PREFIX",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "NotFoundException",
    "StorageUnavailable",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
    # Sequences
    "SequenceCounter",
    "next_code",
    "next_value",
]
