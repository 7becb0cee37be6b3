from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from .duration import parse_remind_before_input
from .errors import InvalidFormat, NotFound, RemindError
from .inventory import parse_inventory_input
from .metadata import RemindMetadataStore
from .models import (
    DEFAULT_REMIND_BEFORE_MINUTES,
    MetadataResult,
    OperationResult,
    RemindTask,
    TaskResult,
    create_remind_task,
    validate_remind_task,
)
from .notifier import RemindNotifier
from .schedule import (
    DEFAULT_TIME_OF_DAY,
    calculate_next_due_at,
    calculate_start_at,
    ensure_aware,
    normalize_time_of_day,
)
from .validators import Validator

logger = logging.getLogger(__name__)


def generate_task_id() -> str:
    return f"task-{uuid.uuid4().hex[:12]}"


def _now(now: Optional[datetime]) -> datetime:
    return ensure_aware(now) if now else datetime.now(timezone.utc)


def _reset_notifications(task: RemindTask, **changes) -> RemindTask:
    return replace(
        task,
        last_remind_due_at=None,
        overdue_notify_count=0,
        last_overdue_notified_at=None,
        **changes,
    )


class RemindTaskService:
    """User-driven lifecycle of reminder tasks: add, edit, pause, delete, bind a channel."""

    def __init__(
        self,
        repository,
        metadata: RemindMetadataStore,
        notifier: RemindNotifier,
        *,
        default_list_title: Optional[str] = None,
        id_factory: Callable[[], str] = generate_task_id,
    ) -> None:
        self.repository = repository
        self.metadata = metadata
        self.notifier = notifier
        self.default_list_title = default_list_title
        self.id_factory = id_factory

    async def _load(self, channel_id: int, message_id: int) -> Union[RemindTask, TaskResult]:
        try:
            task = await self.repository.find_task_by_message_id(channel_id, message_id)
        except RemindError as e:
            return TaskResult.fail(e)
        if task is None:
            return TaskResult.fail(NotFound("タスクが見つかりません"))
        return task

    async def _save(self, channel_id: int, task: RemindTask, now: datetime, message: str) -> TaskResult:
        saved = await self.repository.update_task(channel_id, task)
        if not saved.success:
            return TaskResult(success=False, message=saved.message, code=saved.code)
        if task.message_id:
            rendered = await self.notifier.update_task_message(channel_id, task.message_id, task, now)
            if not rendered.success:
                logger.warning(f"Task {task.id} saved but its message was not refreshed: {rendered.message}")
        return TaskResult.ok(message, task=task)

    async def get_task(self, channel_id: int, message_id: int) -> TaskResult:
        loaded = await self._load(channel_id, message_id)
        if isinstance(loaded, TaskResult):
            return loaded
        return TaskResult.ok(task=loaded)

    async def add_task(
        self,
        channel_id: int,
        title: str,
        description: Optional[str],
        interval_text: str,
        time_of_day_text: Optional[str] = None,
        remind_before_text: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TaskResult:
        now = _now(now)
        title_check = Validator.task_title(title)
        if not title_check.ok:
            return TaskResult.fail(InvalidFormat(title_check.message))
        try:
            interval_days = Validator.parse_interval_days(interval_text)
            time_of_day = normalize_time_of_day(Validator.sanitize(time_of_day_text) or DEFAULT_TIME_OF_DAY)
            remind_before = (
                parse_remind_before_input(remind_before_text)
                if Validator.sanitize(remind_before_text)
                else DEFAULT_REMIND_BEFORE_MINUTES
            )
        except RemindError as e:
            return TaskResult.fail(e)

        bound = await self.metadata.ensure_channel_metadata(channel_id, self.default_list_title)
        if not bound.success:
            return TaskResult(success=False, message=bound.message, code=bound.code)

        start_at = calculate_start_at(now, time_of_day)
        task = create_remind_task(
            id=self.id_factory(),
            channel_id=channel_id,
            title=title,
            description=description,
            interval_days=interval_days,
            time_of_day=time_of_day,
            remind_before_minutes=remind_before,
            start_at=start_at,
            next_due_at=calculate_next_due_at(
                interval_days=interval_days,
                time_of_day=time_of_day,
                start_at=start_at,
                now=now,
            ),
            created_at=now,
        )
        try:
            validate_remind_task(task)
        except RemindError as e:
            return TaskResult.fail(e)

        appended = await self.repository.append_task(channel_id, task)
        if not appended.success:
            return TaskResult(success=False, message=appended.message, code=appended.code)

        posted = await self.notifier.create_task_message(channel_id, task, now)
        if not posted.success:
            return TaskResult(success=False, message=posted.message, code=posted.code, task=task)

        task = replace(task, message_id=posted.message_id, updated_at=now)
        saved = await self.repository.update_task(channel_id, task)
        if not saved.success:
            return TaskResult(success=False, message=saved.message, code=saved.code, task=task)
        logger.info(f"Added reminder {task.id} to channel {channel_id}")
        return TaskResult.ok("リマインドを追加しました。", task=task)

    async def update_basic(
        self,
        channel_id: int,
        message_id: int,
        title: str,
        description: Optional[str],
        interval_text: str,
        time_of_day_text: Optional[str] = None,
        remind_before_text: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TaskResult:
        """Edit the definition. Blank time/lead inputs keep the current values."""
        now = _now(now)
        loaded = await self._load(channel_id, message_id)
        if isinstance(loaded, TaskResult):
            return loaded
        task = loaded

        title_check = Validator.task_title(title)
        if not title_check.ok:
            return TaskResult.fail(InvalidFormat(title_check.message))
        try:
            interval_days = Validator.parse_interval_days(interval_text)
            time_of_day = normalize_time_of_day(Validator.sanitize(time_of_day_text) or task.time_of_day)
            remind_before = (
                parse_remind_before_input(remind_before_text)
                if Validator.sanitize(remind_before_text)
                else task.remind_before_minutes
            )
        except RemindError as e:
            return TaskResult.fail(e)

        start_at = calculate_start_at(task.created_at, time_of_day)
        description = Validator.sanitize(description)
        updated = _reset_notifications(
            task,
            title=title.strip(),
            description=description or None,
            interval_days=interval_days,
            time_of_day=time_of_day,
            remind_before_minutes=remind_before,
            start_at=start_at,
            next_due_at=calculate_next_due_at(
                interval_days=interval_days,
                time_of_day=time_of_day,
                start_at=start_at,
                last_done_at=task.last_done_at,
                now=now,
            ),
            updated_at=now,
        )
        return await self._save(channel_id, updated, now, "リマインドを更新しました。")

    async def override_schedule(
        self,
        channel_id: int,
        message_id: int,
        last_done_text: Optional[str],
        next_due_text: Optional[str],
        limit_text: Optional[str],
        now: Optional[datetime] = None,
    ) -> TaskResult:
        now = _now(now)
        loaded = await self._load(channel_id, message_id)
        if isinstance(loaded, TaskResult):
            return loaded
        task = loaded

        try:
            last_done_at = Validator.parse_override_date(last_done_text, task.time_of_day, "前回完了日")
            next_due_at = Validator.parse_override_date(next_due_text, task.time_of_day, "次回期限")
            limit = Validator.parse_overdue_limit(limit_text)
        except RemindError as e:
            return TaskResult.fail(e)

        if last_done_at is None and next_due_at is None and limit is None and task.overdue_notify_limit is None:
            return TaskResult.fail(InvalidFormat("前回完了日、次回期限、上限回数のいずれかを入力してください"))

        resolved_last_done = last_done_at or task.last_done_at
        resolved_next_due = next_due_at or task.next_due_at
        if resolved_last_done is not None and resolved_last_done > resolved_next_due:
            return TaskResult.fail(InvalidFormat("前回完了日は次回期限より前の日付を指定してください"))

        changes = dict(
            last_done_at=resolved_last_done,
            next_due_at=resolved_next_due,
            overdue_notify_limit=limit,
            updated_at=now,
        )
        if last_done_at is not None or next_due_at is not None:
            updated = _reset_notifications(task, **changes)
        else:
            updated = replace(task, **changes)
        return await self._save(channel_id, updated, now, "詳細設定を更新しました。")

    async def update_inventory(
        self,
        channel_id: int,
        message_id: int,
        text: Optional[str],
        now: Optional[datetime] = None,
    ) -> TaskResult:
        """Replace the inventory from modal text. Blank text clears it."""
        now = _now(now)
        loaded = await self._load(channel_id, message_id)
        if isinstance(loaded, TaskResult):
            return loaded
        try:
            items = parse_inventory_input(text)
        except RemindError as e:
            return TaskResult.fail(e)
        updated = replace(loaded, inventory_items=items, updated_at=now)
        return await self._save(channel_id, updated, now, "在庫を更新しました。")

    async def set_paused(
        self,
        channel_id: int,
        message_id: int,
        paused: bool,
        now: Optional[datetime] = None,
    ) -> TaskResult:
        now = _now(now)
        loaded = await self._load(channel_id, message_id)
        if isinstance(loaded, TaskResult):
            return loaded
        if loaded.is_paused == paused:
            state = "一時停止中" if paused else "有効"
            return TaskResult.ok(f"このリマインドは既に{state}です。", task=loaded)
        updated = replace(loaded, is_paused=paused, updated_at=now)
        message = "リマインドを一時停止しました。" if paused else "リマインドを再開しました。"
        return await self._save(channel_id, updated, now, message)

    async def delete_task(self, channel_id: int, message_id: int) -> TaskResult:
        loaded = await self._load(channel_id, message_id)
        if isinstance(loaded, TaskResult):
            return loaded
        deleted = await self.repository.delete_task(channel_id, loaded.id)
        if not deleted.success:
            return TaskResult(success=False, message=deleted.message, code=deleted.code)
        removed = await self.notifier.delete_task_message(channel_id, message_id)
        if not removed.success:
            logger.warning(f"Task {loaded.id} deleted but its message remains: {removed.message}")
        logger.info(f"Deleted reminder {loaded.id} from channel {channel_id}")
        return TaskResult.ok("リマインドを削除しました。", task=loaded)

    async def initialize_channel(
        self,
        channel_id: int,
        list_title: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MetadataResult:
        """Bind the channel, re-render every task message and ensure the notice thread."""
        now = _now(now)
        title = Validator.sanitize(list_title) or None
        bound = await self.metadata.ensure_channel_metadata(channel_id, title or self.default_list_title)
        if not bound.success:
            return bound
        metadata = bound.metadata
        if title and metadata.list_title != title:
            bound = await self.metadata.update_channel_metadata(channel_id, list_title=title)
            if not bound.success:
                return bound
            metadata = bound.metadata

        try:
            tasks = await self.repository.fetch_tasks(channel_id)
        except RemindError as e:
            return MetadataResult.fail(e)

        for task in tasks:
            await self._render(channel_id, task, now)

        thread = await self.notifier.ensure_reminder_thread(
            channel_id,
            metadata.remind_notice_thread_id,
            metadata.remind_notice_message_id,
            list_title=metadata.list_title,
        )
        if not thread.success:
            return MetadataResult(success=False, message=thread.message, code=thread.code, metadata=metadata)
        if (thread.thread_id, thread.parent_message_id) != (
            metadata.remind_notice_thread_id,
            metadata.remind_notice_message_id,
        ):
            bound = await self.metadata.update_channel_metadata(
                channel_id,
                remind_notice_thread_id=thread.thread_id,
                remind_notice_message_id=thread.parent_message_id,
            )
            if not bound.success:
                return bound
            metadata = bound.metadata

        logger.info(f"Initialized reminder list for channel {channel_id} ({len(tasks)} tasks)")
        return MetadataResult.ok(f"{metadata.list_title}を初期化しました。", metadata=metadata)

    async def _render(self, channel_id: int, task: RemindTask, now: datetime) -> OperationResult:
        if task.message_id:
            rendered = await self.notifier.update_task_message(channel_id, task.message_id, task, now)
            if rendered.success:
                return rendered
            logger.info(f"Re-posting task {task.id} in channel {channel_id}: {rendered.message}")

        posted = await self.notifier.create_task_message(channel_id, task, now)
        if not posted.success:
            logger.warning(f"Could not post task {task.id} in channel {channel_id}: {posted.message}")
            return posted
        return await self.repository.update_task(channel_id, replace(task, message_id=posted.message_id, updated_at=now))
