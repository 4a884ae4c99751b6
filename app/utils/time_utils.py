# promo-allocation-backend/app/utils/time_utils.py
"""
Timezone helpers for eligibility windows.
All timestamps are stored in UTC; calendar boundaries are computed in the
platform timezone (settings.APP_TIMEZONE).
"""

from datetime import date, datetime, timedelta
from typing import Optional

import pytz

from app.core.config import settings

UTC = pytz.utc
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def get_local_tz():
    return pytz.timezone(settings.APP_TIMEZONE)


def utc_now() -> datetime:
    """Current time in UTC (tz-aware)"""
    return datetime.now(UTC)


def to_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert to tz-aware UTC. Naive values (e.g. read back from SQLite) are treated as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        return dt.astimezone(UTC)
    return UTC.localize(dt)


def to_local(dt: datetime) -> datetime:
    return to_utc(dt).astimezone(get_local_tz())


def _localize_midnight(year: int, month: int, day: int) -> datetime:
    tz = get_local_tz()
    return tz.localize(datetime(year, month, day)).astimezone(UTC)


def start_of_date(day: date) -> datetime:
    """Local midnight at the start of a calendar date, as UTC"""
    return _localize_midnight(day.year, day.month, day.day)


def start_of_day(now: datetime) -> datetime:
    local = to_local(now)
    return _localize_midnight(local.year, local.month, local.day)


def start_of_week(now: datetime) -> datetime:
    """Monday 00:00 of the current week"""
    local = to_local(now)
    monday = local.date() - timedelta(days=local.weekday())
    return _localize_midnight(monday.year, monday.month, monday.day)


def start_of_month(now: datetime) -> datetime:
    local = to_local(now)
    return _localize_midnight(local.year, local.month, 1)


def start_of_next_day(now: datetime) -> datetime:
    tomorrow = to_local(now).date() + timedelta(days=1)
    return _localize_midnight(tomorrow.year, tomorrow.month, tomorrow.day)


def start_of_next_week(now: datetime) -> datetime:
    local = to_local(now)
    next_monday = local.date() - timedelta(days=local.weekday()) + timedelta(days=7)
    return _localize_midnight(next_monday.year, next_monday.month, next_monday.day)


def start_of_next_month(now: datetime) -> datetime:
    local = to_local(now)
    if local.month == 12:
        return _localize_midnight(local.year + 1, 1, 1)
    return _localize_midnight(local.year, local.month + 1, 1)


def local_date(dt: datetime):
    """Calendar date of dt in the platform timezone"""
    return to_local(dt).date()
