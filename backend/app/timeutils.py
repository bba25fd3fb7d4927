"""Clock helpers shared by services.

SQLite hands back naive datetimes while PostgreSQL returns aware ones, so every
timestamp read from the database goes through ``ensure_utc`` before arithmetic.
"""
from datetime import date, datetime, timezone
from typing import Optional

import pytz
from dateutil.relativedelta import relativedelta

from app.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def venue_today(now: Optional[datetime] = None) -> date:
    """Calendar day at the venue, used to key vehicle time slots."""
    tz = pytz.timezone(settings.VENUE_TIMEZONE)
    return ensure_utc(now or utcnow()).astimezone(tz).date()


def subtract_months(dt: datetime, months: int) -> datetime:
    """Move ``dt`` back by whole months, clamping the day to the target month."""
    return dt - relativedelta(months=months)
