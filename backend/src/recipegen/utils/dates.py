from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def current_week(today: Optional[date] = None) -> Tuple[date, date]:
    """Sunday..Saturday week containing ``today``."""
    today = today or date.today()
    start = today - timedelta(days=(today.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def resolve_range(start: Optional[date], end: Optional[date], today: Optional[date] = None) -> Tuple[date, date]:
    week_start, week_end = current_week(today)
    return start or week_start, end or week_end


def iter_days(start: date, end: date):
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)
