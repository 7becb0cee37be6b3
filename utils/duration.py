from __future__ import annotations

from typing import Tuple

from .errors import InvalidFormat, OutOfRange
from .models import MAX_REMIND_BEFORE_MINUTES

MINUTES_PER_DAY = 24 * 60

INVALID_FORMAT_MESSAGE = "事前通知は日:時:分または時:分形式で指定してください"
OUT_OF_RANGE_MESSAGE = "事前通知は0日00時間00分〜7日00時間00分の範囲で指定してください"


def _split_minutes(total_minutes: int) -> Tuple[int, int, int]:
    safe = max(0, int(total_minutes))
    days, remainder = divmod(safe, MINUTES_PER_DAY)
    hours, minutes = divmod(remainder, 60)
    return days, hours, minutes


def parse_remind_before_input(value: str) -> int:
    """Parse ``HH:MM`` or ``D:HH:MM`` into a number of minutes."""
    normalized = (value or "").strip()
    parts = normalized.split(":")
    if not normalized or len(parts) not in (2, 3):
        raise InvalidFormat(INVALID_FORMAT_MESSAGE)
    if any(not part.isdecimal() for part in parts):
        raise InvalidFormat(INVALID_FORMAT_MESSAGE)

    numbers = [int(part) for part in parts]
    days = 0
    if len(numbers) == 2:
        hours, minutes = numbers
    else:
        days, hours, minutes = numbers
    if hours >= 24 or minutes >= 60:
        raise InvalidFormat(INVALID_FORMAT_MESSAGE)

    total = (days * 24 + hours) * 60 + minutes
    if total > MAX_REMIND_BEFORE_MINUTES:
        raise OutOfRange(OUT_OF_RANGE_MESSAGE)
    return total


def format_remaining_duration(total_minutes: int) -> str:
    """``1日2時間3分``, dropping zero parts but always keeping minutes when nothing else shows."""
    days, hours, minutes = _split_minutes(total_minutes)
    parts = []
    if days > 0:
        parts.append(f"{days}日")
    if hours > 0:
        parts.append(f"{hours}時間")
    if minutes > 0 or not parts:
        parts.append(f"{minutes}分")
    return "".join(parts)


def format_remind_before_display(total_minutes: int) -> str:
    days, hours, minutes = _split_minutes(total_minutes)
    if days > 0:
        return f"{days:02d}日{hours:02d}時間{minutes:02d}分前"
    if hours > 0:
        return f"{hours:02d}時間{minutes:02d}分前"
    return f"{minutes:02d}分前"


def format_remind_before_input(total_minutes: int) -> str:
    """Inverse of ``parse_remind_before_input``, used to prefill the update modal."""
    days, hours, minutes = _split_minutes(total_minutes)
    if days > 0:
        return f"{days}:{hours:02d}:{minutes:02d}"
    return f"{hours:02d}:{minutes:02d}"
