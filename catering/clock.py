"""Business clock and calendar-date helpers"""

import re
from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from catering.config import settings
from catering.errors import InvalidDate

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
HHMM_RE = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")


class Clock:
    """
    Wall clock in the business timezone.

    Returns naive local datetimes; every date and cutoff comparison in the
    engine is done in local time so "2024-03-15" never drifts a day.
    """

    def __init__(self, tz: Optional[str] = None):
        self.tz = ZoneInfo(tz or settings.timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz).replace(tzinfo=None)

    def today(self) -> date:
        return self.now().date()

    def tomorrow_start(self) -> datetime:
        """Tomorrow at 00:00 local"""
        return datetime.combine(self.today() + timedelta(days=1), time.min)


def get_clock() -> Clock:
    """FastAPI dependency, overridden in tests with a frozen clock"""
    return Clock()


def parse_local_date(value) -> date:
    """Parse a YYYY-MM-DD string as a local calendar date (no UTC shift)"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_RE.match(value):
        raise InvalidDate(f"Invalid date '{value}'. Use YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidDate(f"Invalid date '{value}'. Use YYYY-MM-DD")


def parse_hhmm(value: str) -> time:
    """Parse a 24-hour HH:MM string"""
    if not value or not HHMM_RE.match(value):
        raise InvalidDate(f"Invalid time '{value}'. Use HH:MM (24-hour)")
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def at_time(day: date, hhmm: str) -> datetime:
    return datetime.combine(day, parse_hhmm(hhmm))


def format_date(day: date) -> str:
    return day.isoformat()
