"""Clock helpers bound to the configured business timezone."""

from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from workforce.config import settings


def business_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_now() -> datetime:
    """Current time in ``settings.TIMEZONE``."""
    return datetime.now(business_tz())


def local_date(moment: datetime) -> date:
    """Calendar date of *moment* in the business timezone.

    Naive datetimes are taken to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(business_tz()).date()


def as_utc(moment: datetime) -> datetime:
    """Attach UTC to naive values read back from stores that drop the offset."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
