"""Due-date arithmetic in the fixed home time zone (UTC+9).

Calendar days are always taken in the home zone. The offset is fixed, so
plain ``timedelta`` arithmetic on aware datetimes is exact here.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

import pytz

from .errors import InvalidFormat, OutOfRange
from .models import MAX_INTERVAL_DAYS

HOME_UTC_OFFSET_MINUTES = 9 * 60
HOME_TZ = pytz.FixedOffset(HOME_UTC_OFFSET_MINUTES)
DEFAULT_TIME_OF_DAY = "00:00"

_TIME_OF_DAY_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def ensure_aware(value: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_home(value: datetime) -> datetime:
    return ensure_aware(value).astimezone(HOME_TZ)


def home_date(value: datetime) -> date:
    return to_home(value).date()


def is_same_home_date(a: datetime, b: datetime) -> bool:
    return home_date(a) == home_date(b)


def normalize_time_of_day(value: str) -> str:
    """Return ``HH:MM`` for ``H:MM``/``HH:MM`` input in 24h time."""
    match = _TIME_OF_DAY_RE.match((value or "").strip())
    if not match:
        raise InvalidFormat(f"時刻はHH:MM形式で入力してください: {value}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise InvalidFormat(f"時刻はHH:MM形式で入力してください: {value}")
    return f"{hours:02d}:{minutes:02d}"


def parse_time_of_day(value: str) -> Tuple[int, int]:
    normalized = normalize_time_of_day(value)
    hours, minutes = normalized.split(":")
    return int(hours), int(minutes)


def at_home_time(day: date, time_of_day: str) -> datetime:
    hours, minutes = parse_time_of_day(time_of_day)
    return datetime.combine(day, time(hours, minutes), tzinfo=HOME_TZ)


def calculate_start_at(created_at: datetime, time_of_day: str) -> datetime:
    """``time_of_day`` on the home-zone calendar date of ``created_at``."""
    return at_home_time(home_date(created_at), time_of_day)


def calculate_next_due_at(
    *,
    interval_days: int,
    time_of_day: str,
    start_at: datetime,
    last_done_at: Optional[datetime] = None,
    now: datetime,
) -> datetime:
    """Compute the pending due date.

    With a completion, the anchor is ``interval_days`` after the completion's
    home-zone date. Without one, the anchor is ``start_at``. Either way the
    anchor is advanced in whole intervals until it is no longer in the past,
    so a task that missed several cycles lands on the next pending one
    instead of replaying every missed cycle.
    """
    if not 1 <= interval_days <= MAX_INTERVAL_DAYS:
        raise OutOfRange(f"周期は1〜{MAX_INTERVAL_DAYS}日で指定してください")
    now = ensure_aware(now)
    if last_done_at is not None:
        anchor = at_home_time(home_date(last_done_at) + timedelta(days=interval_days), time_of_day)
    else:
        anchor = at_home_time(home_date(start_at), time_of_day)

    step = timedelta(days=interval_days)
    if anchor < now:
        missed = -((anchor - now) // step)
        anchor += step * missed
    return anchor


def format_home_datetime(value: datetime) -> str:
    local = to_home(value)
    return f"{local.year}/{local.month}/{local.day} {local.hour:02d}:{local.minute:02d}"
