from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .errors import InvalidFormat, OutOfRange, RemindError

DEFAULT_OVERDUE_NOTIFY_LIMIT = 5
DEFAULT_REMIND_BEFORE_MINUTES = 1440
MAX_REMIND_BEFORE_MINUTES = 10080
MAX_INTERVAL_DAYS = 3650

_TIME_OF_DAY_PATTERN = re.compile(r"^(?:[01]?\d|2[0-3]):[0-5]\d$")


@dataclass(frozen=True)
class InventoryItem:
    name: str
    stock: float
    consume: float

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "stock": self.stock, "consume": self.consume}


@dataclass(frozen=True)
class RemindTask:
    """One recurring obligation inside one channel.

    All instants are timezone-aware. ``last_remind_due_at`` only ever holds a
    previous ``next_due_at`` value, which is how pre-reminders are de-duplicated.
    """

    id: str
    channel_id: int
    title: str
    interval_days: int
    time_of_day: str
    remind_before_minutes: int
    start_at: datetime
    next_due_at: datetime
    created_at: datetime
    updated_at: datetime
    message_id: Optional[int] = None
    description: Optional[str] = None
    inventory_items: List[InventoryItem] = field(default_factory=list)
    last_done_at: Optional[datetime] = None
    last_remind_due_at: Optional[datetime] = None
    overdue_notify_count: int = 0
    overdue_notify_limit: Optional[int] = None
    last_overdue_notified_at: Optional[datetime] = None
    is_paused: bool = False

    @property
    def effective_overdue_limit(self) -> int:
        if self.overdue_notify_limit is None:
            return DEFAULT_OVERDUE_NOTIFY_LIMIT
        return self.overdue_notify_limit


@dataclass(frozen=True)
class RemindChannelMetadata:
    """Per-channel binding of the shared notification thread."""

    channel_id: int
    list_title: str
    last_sync_time: datetime
    remind_notice_thread_id: Optional[int] = None
    remind_notice_message_id: Optional[int] = None


@dataclass
class OperationResult:
    success: bool
    message: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls, message: Optional[str] = None, **fields: Any):
        return cls(success=True, message=message, **fields)

    @classmethod
    def fail(cls, error: RemindError, **fields: Any):
        return cls(success=False, message=error.message, code=error.code, **fields)


@dataclass
class TaskResult(OperationResult):
    task: Optional[RemindTask] = None


@dataclass
class CompletionResult(OperationResult):
    task: Optional[RemindTask] = None
    shortage_items: List[InventoryItem] = field(default_factory=list)
    depleted_items: List[InventoryItem] = field(default_factory=list)


@dataclass
class MessageResult(OperationResult):
    message_id: Optional[int] = None


@dataclass
class ThreadResult(OperationResult):
    thread_id: Optional[int] = None
    parent_message_id: Optional[int] = None


@dataclass
class MetadataResult(OperationResult):
    metadata: Optional[RemindChannelMetadata] = None


def create_remind_task(
    *,
    id: str,
    channel_id: int,
    title: str,
    interval_days: int,
    time_of_day: str,
    remind_before_minutes: int,
    start_at: datetime,
    next_due_at: datetime,
    created_at: datetime,
    updated_at: Optional[datetime] = None,
    message_id: Optional[int] = None,
    description: Optional[str] = None,
    inventory_items: Optional[List[InventoryItem]] = None,
    last_done_at: Optional[datetime] = None,
    last_remind_due_at: Optional[datetime] = None,
    overdue_notify_count: int = 0,
    overdue_notify_limit: Optional[int] = None,
    last_overdue_notified_at: Optional[datetime] = None,
    is_paused: bool = False,
) -> RemindTask:
    description = description.strip() if description else None
    return RemindTask(
        id=id.strip(),
        channel_id=channel_id,
        message_id=message_id,
        title=title.strip(),
        description=description or None,
        interval_days=interval_days,
        time_of_day=time_of_day,
        remind_before_minutes=remind_before_minutes,
        inventory_items=list(inventory_items or []),
        start_at=start_at,
        next_due_at=next_due_at,
        last_done_at=last_done_at,
        last_remind_due_at=last_remind_due_at,
        overdue_notify_count=overdue_notify_count,
        overdue_notify_limit=overdue_notify_limit,
        last_overdue_notified_at=last_overdue_notified_at,
        is_paused=is_paused,
        created_at=created_at,
        updated_at=updated_at or created_at,
    )


def validate_remind_task(task: RemindTask) -> None:
    """Raise ``InvalidFormat``/``OutOfRange`` if a field holds an impossible value."""
    if not task.id or not task.id.strip():
        raise InvalidFormat("idは必須です")
    if not task.title or not task.title.strip():
        raise InvalidFormat("タイトルは必須です")
    if not 1 <= task.interval_days <= MAX_INTERVAL_DAYS:
        raise OutOfRange(f"周期は1〜{MAX_INTERVAL_DAYS}日で指定してください")
    if not _TIME_OF_DAY_PATTERN.match(task.time_of_day):
        raise InvalidFormat("時刻の形式が無効です")
    if not 0 <= task.remind_before_minutes <= MAX_REMIND_BEFORE_MINUTES:
        raise OutOfRange("事前通知の範囲が無効です")
    if task.overdue_notify_count < 0:
        raise OutOfRange("期限超過通知の回数が無効です")
    if task.overdue_notify_limit is not None and task.overdue_notify_limit < 0:
        raise OutOfRange("期限超過通知の上限回数が無効です")
    names = set()
    for item in task.inventory_items:
        if not item.name or not item.name.strip():
            raise InvalidFormat("アイテム名が空です")
        if item.name in names:
            raise InvalidFormat("アイテム名が重複しています")
        names.add(item.name)
        if item.consume <= 0:
            raise OutOfRange("消費は0より大きい値を指定してください")
    for label, value in (
        ("start_at", task.start_at),
        ("next_due_at", task.next_due_at),
        ("created_at", task.created_at),
        ("updated_at", task.updated_at),
    ):
        if value.tzinfo is None:
            raise InvalidFormat(f"{label}にはタイムゾーンが必要です")
