"""Database-backed counters for human-readable identifiers.

Codes such as ``WACLY-EMP-0001`` or ``WACLY-DEPT-003`` are drawn from a
``sequence_counters`` row that is incremented inside the caller's
transaction, so every server instance sees the same sequence.
"""

from __future__ import annotations

import logging

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from workforce.config import settings
from workforce.database import Base

logger = logging.getLogger(__name__)


class SequenceCounter(Base):
    """One row per identifier family (``employee:EMP``, ``department``, ...)."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(sa.String(50), primary_key=True)
    value: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.value}>"


async def _increment(db: AsyncSession, name: str) -> bool:
    result = await db.execute(
        sa.update(SequenceCounter)
        .where(SequenceCounter.name == name)
        .values(value=SequenceCounter.value + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def next_value(db: AsyncSession, name: str) -> int:
    """Increment counter *name* and return the new value.

    The UPDATE takes a row lock that is held until the surrounding
    transaction ends. The first use of a name inserts the row inside a
    savepoint; if a concurrent transaction inserted it first, the insert
    is rolled back and the existing row is incremented instead.
    """
    if not await _increment(db, name):
        try:
            async with db.begin_nested():
                db.add(SequenceCounter(name=name, value=1))
            return 1
        except IntegrityError:
            logger.info("Sequence %s was created concurrently, incrementing", name)
            await _increment(db, name)

    value = await db.execute(
        sa.select(SequenceCounter.value).where(SequenceCounter.name == name)
    )
    return value.scalar_one()


def format_code(kind: str, value: int, width: int) -> str:
    """``format_code("EMP", 7, 4)`` → ``WACLY-EMP-0007``."""
    return f"{settings.ID_PREFIX}-{kind}-{value:0{width}d}"


async def next_code(db: AsyncSession, name: str, kind: str, width: int) -> str:
    """Draw the next value for *name* and render it as a prefixed code."""
    value = await next_value(db, name)
    code = format_code(kind, value, width)
    logger.debug("Allocated %s from sequence %s", code, name)
    return code
