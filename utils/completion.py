from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from .errors import InsufficientInventory, NotFound, RemindError
from .inventory import (
    consume_inventory,
    format_inventory_depleted,
    format_inventory_shortage,
    get_depleted_inventory_items,
    get_insufficient_inventory_items,
)
from .metadata import RemindMetadataStore
from .models import CompletionResult, RemindTask
from .notifier import NoticeBinding, RemindNotifier
from .schedule import calculate_next_due_at, ensure_aware

logger = logging.getLogger(__name__)


def shortage_notice(task: RemindTask, items) -> str:
    return f"@everyone {task.title}の在庫が不足しています: {format_inventory_shortage(items)}"


def depleted_notice(task: RemindTask, items) -> str:
    return f"@everyone {task.title}の在庫がなくなりました: {format_inventory_depleted(items)}"


def complete_task(task: RemindTask, now: datetime, *, consume: bool = True) -> RemindTask:
    """Record a completion: advance the due date and reset the notification state."""
    now = ensure_aware(now)
    items = consume_inventory(task.inventory_items) if consume else task.inventory_items
    return replace(
        task,
        inventory_items=items,
        last_done_at=now,
        next_due_at=calculate_next_due_at(
            interval_days=task.interval_days,
            time_of_day=task.time_of_day,
            start_at=task.start_at,
            last_done_at=now,
            now=now,
        ),
        last_remind_due_at=None,
        overdue_notify_count=0,
        last_overdue_notified_at=None,
        updated_at=now,
    )


class TaskCompletionHandler:
    """Handles the complete button on a rendered task message."""

    def __init__(
        self,
        repository,
        metadata: RemindMetadataStore,
        notifier: RemindNotifier,
    ) -> None:
        self.repository = repository
        self.metadata = metadata
        self.notifier = notifier

    async def _notify(self, channel_id: int, text: str) -> None:
        metadata = await self.metadata.ensure_channel_metadata(channel_id)
        if not metadata.success:
            logger.warning(f"No notice binding for channel {channel_id}: {metadata.message}")
            return
        result = await NoticeBinding(self.notifier, self.metadata, metadata.metadata).send(text)
        if not result.success:
            logger.warning(f"Failed to post notice in channel {channel_id}: {result.message}")

    async def complete(self, channel_id: int, message_id: int, now: Optional[datetime] = None) -> CompletionResult:
        now = ensure_aware(now) if now else datetime.now(timezone.utc)
        try:
            task = await self.repository.find_task_by_message_id(channel_id, message_id)
        except RemindError as e:
            return CompletionResult.fail(e)
        if task is None:
            return CompletionResult.fail(NotFound("タスクが見つかりません"))

        # Paused tasks record the completion without touching stock.
        track_inventory = bool(task.inventory_items) and not task.is_paused
        if track_inventory:
            shortage = get_insufficient_inventory_items(task.inventory_items)
            if shortage:
                logger.info(f"Completion of task {task.id} blocked by inventory shortage")
                await self._notify(channel_id, shortage_notice(task, shortage))
                error = InsufficientInventory(
                    f"在庫が不足しています: {format_inventory_shortage(shortage)}",
                    shortage,
                )
                return CompletionResult.fail(error, task=task, shortage_items=shortage)

        updated = complete_task(task, now, consume=track_inventory)
        depleted = get_depleted_inventory_items(updated.inventory_items) if track_inventory else []

        saved = await self.repository.update_task(channel_id, updated)
        if not saved.success:
            return CompletionResult(success=False, message=saved.message, code=saved.code, task=task)

        rendered = await self.notifier.update_task_message(channel_id, message_id, updated, now)
        if not rendered.success:
            logger.warning(f"Task {task.id} completed but its message was not refreshed: {rendered.message}")

        if depleted:
            await self._notify(channel_id, depleted_notice(updated, depleted))

        return CompletionResult.ok("完了として登録しました。", task=updated, depleted_items=depleted)
