"""SQLAlchemy-backed ``LeaveStore`` used by the leave engine."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from workforce.common.constants import LeaveStatus, LeaveTypeStatus
from workforce.common.exceptions import StorageUnavailable
from workforce.leave.models import LeaveRequest, LeaveType

logger = logging.getLogger(__name__)


class SqlLeaveStore:
    """Read-only queries over ``leave_types`` / ``leave_requests``.

    Driver failures surface as ``StorageUnavailable`` so callers can tell an
    outage apart from a rule violation.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _scalar_first(self, query):
        try:
            result = await self.db.execute(query)
        except DBAPIError as exc:
            logger.error("Leave store query failed: %s", exc)
            raise StorageUnavailable() from exc
        return result.scalars().first()

    async def find_active_leave_type(self, leave_type_id: uuid.UUID) -> Optional[LeaveType]:
        return await self._scalar_first(
            select(LeaveType).where(
                LeaveType.id == leave_type_id,
                LeaveType.status == LeaveTypeStatus.active,
            )
        )

    async def find_leave_type(self, leave_type_id: uuid.UUID) -> Optional[LeaveType]:
        return await self._scalar_first(
            select(LeaveType).where(LeaveType.id == leave_type_id)
        )

    async def find_overlapping_request(
        self,
        user_id: uuid.UUID,
        start_date: date,
        end_date: date,
        statuses: Sequence[LeaveStatus],
    ) -> Optional[LeaveRequest]:
        """First request of *user_id* in *statuses* sharing a day with the range."""
        return await self._scalar_first(
            select(LeaveRequest)
            .where(
                LeaveRequest.employee_id == user_id,
                LeaveRequest.status.in_(list(statuses)),
                LeaveRequest.start_date <= end_date,
                LeaveRequest.end_date >= start_date,
            )
            .order_by(LeaveRequest.start_date)
            .limit(1)
        )

    async def sum_approved_days(
        self,
        user_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        since: datetime,
    ) -> int:
        query = select(func.coalesce(func.sum(LeaveRequest.number_of_days), 0)).where(
            LeaveRequest.employee_id == user_id,
            LeaveRequest.leave_type_id == leave_type_id,
            LeaveRequest.status == LeaveStatus.approved,
            LeaveRequest.created_at >= since,
        )
        try:
            result = await self.db.execute(query)
        except DBAPIError as exc:
            logger.error("Leave store query failed: %s", exc)
            raise StorageUnavailable() from exc
        return int(result.scalar_one())

    async def find_request_by_id(self, request_id: uuid.UUID) -> Optional[LeaveRequest]:
        return await self._scalar_first(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .options(selectinload(LeaveRequest.employee))
        )
