from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import asyncpg

from .db import Database
from .errors import NotFound, PersistenceFailure
from .inventory import round_quantity
from .models import InventoryItem, OperationResult, RemindTask, create_remind_task
from .schedule import ensure_aware

logger = logging.getLogger(__name__)

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def _aware(value: Any) -> Any:
    return ensure_aware(value) if value is not None else None


def record_to_task(channel_id: int, record: Dict[str, Any]) -> RemindTask:
    items = []
    for raw in record.get("inventory_items") or []:
        if not isinstance(raw, dict) or not str(raw.get("name", "")).strip():
            continue
        try:
            stock = round_quantity(float(raw["stock"]))
            consume = round_quantity(float(raw["consume"]))
        except (KeyError, TypeError, ValueError):
            continue
        items.append(InventoryItem(name=str(raw["name"]), stock=stock, consume=consume))

    return create_remind_task(
        id=record["id"],
        channel_id=channel_id,
        message_id=record.get("message_id"),
        title=record["title"],
        description=record.get("description"),
        interval_days=record["interval_days"],
        time_of_day=record["time_of_day"],
        remind_before_minutes=record["remind_before_minutes"],
        inventory_items=items,
        start_at=_aware(record["start_at"]),
        next_due_at=_aware(record["next_due_at"]),
        last_done_at=_aware(record.get("last_done_at")),
        last_remind_due_at=_aware(record.get("last_remind_due_at")),
        overdue_notify_count=record.get("overdue_notify_count") or 0,
        overdue_notify_limit=record.get("overdue_notify_limit"),
        last_overdue_notified_at=_aware(record.get("last_overdue_notified_at")),
        is_paused=bool(record.get("is_paused")),
        created_at=_aware(record["created_at"]),
        updated_at=_aware(record["updated_at"]),
    )


def task_to_record(task: RemindTask) -> Dict[str, Any]:
    return {
        "message_id": task.message_id,
        "title": task.title,
        "description": task.description,
        "interval_days": task.interval_days,
        "time_of_day": task.time_of_day,
        "remind_before_minutes": task.remind_before_minutes,
        "inventory_items": [
            {"name": item.name, "stock": round_quantity(item.stock), "consume": round_quantity(item.consume)}
            for item in task.inventory_items
        ],
        "start_at": task.start_at,
        "next_due_at": task.next_due_at,
        "last_done_at": task.last_done_at,
        "last_remind_due_at": task.last_remind_due_at,
        "overdue_notify_count": task.overdue_notify_count,
        "overdue_notify_limit": task.overdue_notify_limit,
        "last_overdue_notified_at": task.last_overdue_notified_at,
        "is_paused": task.is_paused,
        "created_at": task.created_at,
        "updated_at": task.updated_at,
    }


class RemindTaskRepository:
    """CRUD over reminder tasks, keyed by channel and by rendered message."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def fetch_tasks(self, channel_id: int) -> List[RemindTask]:
        try:
            records = await self.db.fetch_remind_tasks(channel_id)
        except _DB_ERRORS as exc:
            raise PersistenceFailure("タスクの読み込みに失敗しました") from exc
        return [record_to_task(channel_id, record) for record in records]

    async def find_task_by_message_id(self, channel_id: int, message_id: int) -> Optional[RemindTask]:
        try:
            record = await self.db.fetch_remind_task_by_message(channel_id, message_id)
        except _DB_ERRORS as exc:
            raise PersistenceFailure("タスクの読み込みに失敗しました") from exc
        return record_to_task(channel_id, record) if record else None

    async def append_task(self, channel_id: int, task: RemindTask) -> OperationResult:
        try:
            await self.db.insert_remind_task(channel_id, task.id, task_to_record(task))
        except asyncpg.UniqueViolationError:
            return OperationResult.fail(PersistenceFailure(f"タスクIDが重複しています: {task.id}"))
        except _DB_ERRORS as exc:
            logger.warning("Failed to append task %s in channel %s: %s", task.id, channel_id, exc)
            return OperationResult.fail(PersistenceFailure("タスクの保存に失敗しました"))
        return OperationResult.ok()

    async def update_task(self, channel_id: int, task: RemindTask) -> OperationResult:
        try:
            updated = await self.db.update_remind_task(channel_id, task.id, task_to_record(task))
        except _DB_ERRORS as exc:
            logger.warning("Failed to update task %s in channel %s: %s", task.id, channel_id, exc)
            return OperationResult.fail(PersistenceFailure("タスクの更新に失敗しました"))
        if not updated:
            return OperationResult.fail(NotFound("タスクが見つかりません"))
        return OperationResult.ok()

    async def delete_task(self, channel_id: int, task_id: str) -> OperationResult:
        try:
            deleted = await self.db.delete_remind_task(channel_id, task_id)
        except _DB_ERRORS as exc:
            logger.warning("Failed to delete task %s in channel %s: %s", task_id, channel_id, exc)
            return OperationResult.fail(PersistenceFailure("タスクの削除に失敗しました"))
        if not deleted:
            return OperationResult.fail(NotFound("タスクが見つかりません"))
        return OperationResult.ok()
