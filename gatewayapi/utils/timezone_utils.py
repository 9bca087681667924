"""
Timezone utilities

Ledger days are cut in the business timezone (settings.TIMEZONE); every
timestamp is stored and compared in UTC.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

import pytz

from gatewayapi.config import settings


def get_business_tz():
    return pytz.timezone(settings.TIMEZONE)


def utc_now() -> datetime:
    """Current UTC time (aware)."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Aware UTC datetime; naive values are assumed to already be UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_day(dt: datetime) -> date:
    """Calendar day of a timestamp in the business timezone."""
    return ensure_utc(dt).astimezone(get_business_tz()).date()


def day_start_utc(day: date) -> datetime:
    """UTC instant at which `day` begins in the business timezone."""
    local_midnight = get_business_tz().localize(datetime.combine(day, time.min))
    return local_midnight.astimezone(timezone.utc)


def day_range_utc(start_date: date, end_date: date) -> Tuple[datetime, datetime]:
    """Half-open [start, end) UTC bounds covering both days inclusive."""
    return day_start_utc(start_date), day_start_utc(end_date + timedelta(days=1))


def get_current_business_date() -> date:
    return local_day(utc_now())
