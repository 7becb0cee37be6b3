from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .errors import InvalidFormat, OutOfRange
from .models import MAX_INTERVAL_DAYS
from .schedule import HOME_TZ, normalize_time_of_day, parse_time_of_day

OVERRIDE_DATE_PATTERN = re.compile(r"^(\d{4})[/-](\d{1,2})[/-](\d{1,2})(?:\s+(\d{1,2}):(\d{1,2}))?$")
DELETE_CONFIRMATION_WORD = "削除"


@dataclass
class ValidationResult:
    ok: bool
    message: Optional[str] = None


class Validator:
    TASK_TITLE_LIMIT = 100
    DESCRIPTION_LIMIT = 1000

    @staticmethod
    def task_title(title: str) -> ValidationResult:
        if not title or not title.strip():
            return ValidationResult(False, "タスク名を入力してください")
        if len(title.strip()) > Validator.TASK_TITLE_LIMIT:
            return ValidationResult(False, f"タスク名は{Validator.TASK_TITLE_LIMIT}文字以内で入力してください")
        return ValidationResult(True)

    @staticmethod
    def parse_interval_days(value: Optional[str]) -> int:
        text = (value or "").strip()
        if not text.isdecimal():
            raise InvalidFormat("周期は1以上の整数で指定してください")
        days = int(text)
        if not 1 <= days <= MAX_INTERVAL_DAYS:
            raise OutOfRange(f"周期は1〜{MAX_INTERVAL_DAYS}日で指定してください")
        return days

    @staticmethod
    def parse_override_date(value: Optional[str], fallback_time_of_day: str, label: str) -> Optional[datetime]:
        """
        Parse ``YYYY/MM/DD`` or ``YYYY-MM-DD`` with an optional `` HH:MM`` as a home-zone instant.

        Args:
            value: Raw modal input; blank means "not supplied"
            fallback_time_of_day: Time used when the input has no time part
            label: Field name used in error messages

        Returns:
            Aware datetime, or None if value is blank

        Raises:
            InvalidFormat: If the text does not match or names an impossible date
        """
        text = (value or "").strip()
        if not text:
            return None
        match = OVERRIDE_DATE_PATTERN.match(text)
        if not match:
            raise InvalidFormat(f"{label}の形式が無効です")

        year, month, day = (int(match.group(i)) for i in (1, 2, 3))
        if match.group(4) is not None:
            time_of_day = normalize_time_of_day(f"{match.group(4)}:{int(match.group(5)):02d}")
        else:
            time_of_day = fallback_time_of_day
        hours, minutes = parse_time_of_day(time_of_day)
        try:
            return datetime(year, month, day, hours, minutes, tzinfo=HOME_TZ)
        except ValueError:
            raise InvalidFormat(f"{label}が無効です") from None

    @staticmethod
    def parse_overdue_limit(value: Optional[str]) -> Optional[int]:
        """Blank clears the limit; otherwise an integer of 0 or more."""
        text = (value or "").strip()
        if not text:
            return None
        if not text.isdecimal():
            raise InvalidFormat("期限超過通知の上限回数が無効です")
        return int(text)

    @staticmethod
    def delete_confirmation(value: Optional[str]) -> ValidationResult:
        if (value or "").strip() != DELETE_CONFIRMATION_WORD:
            return ValidationResult(False, f"削除するには「{DELETE_CONFIRMATION_WORD}」と入力してください")
        return ValidationResult(True)

    @staticmethod
    def sanitize(text: Optional[str]) -> Optional[str]:
        return text.strip() if text else text

    @staticmethod
    def parse_message_reference(value: Optional[str]) -> int:
        """Accept a raw message id or a ``https://discord.com/channels/<guild>/<channel>/<message>`` link."""
        text = (value or "").strip().rstrip("/")
        candidate = text.rsplit("/", 1)[-1]
        if not candidate.isdecimal():
            raise InvalidFormat("メッセージIDまたはメッセージリンクを指定してください")
        return int(candidate)
