"""
Business-timezone clock.

All due-time comparisons use one fixed timezone, independent of the
server's and the client's local zones. Due times are stored as wall-clock
strings ("YYYY-MM-DD", "HH:MM") and compared as the sortable key
"YYYY-MM-DD HH:MM".
"""
from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from ..config import get_settings

Clock = Callable[[], datetime]


def business_now(tz_name: Optional[str] = None) -> datetime:
    """Current time in the business timezone"""
    return datetime.now(ZoneInfo(tz_name or get_settings().business_timezone))


def business_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d %H:%M")


def due_key(schedule_date: Optional[str], schedule_time: Optional[str]) -> str:
    if not schedule_date or not schedule_time:
        return ""
    return f"{schedule_date} {schedule_time[:5]}"


def is_due(schedule_date: Optional[str], schedule_time: Optional[str], now: datetime) -> bool:
    """True when the due time is at or before `now`. Posts without a due time are never due."""
    key = due_key(schedule_date, schedule_time)
    return bool(key) and key <= business_key(now)


def is_overdue(schedule_date: Optional[str], schedule_time: Optional[str], now: datetime) -> bool:
    """True when the due time is strictly before `now`."""
    key = due_key(schedule_date, schedule_time)
    return bool(key) and key < business_key(now)
