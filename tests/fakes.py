"""In-memory stand-ins for the repository, metadata store and notifier."""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from utils.errors import NotFound, NotifierFailure, PersistenceFailure
from utils.models import (
    MessageResult,
    MetadataResult,
    OperationResult,
    RemindChannelMetadata,
    RemindTask,
    ThreadResult,
    create_remind_task,
)
from utils.schedule import HOME_TZ

CHANNEL_ID = 111111111111111111


def home(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=HOME_TZ)


def make_task(**overrides) -> RemindTask:
    values = dict(
        id="task-1",
        channel_id=CHANNEL_ID,
        message_id=5001,
        title="フィルター交換",
        interval_days=7,
        time_of_day="09:00",
        remind_before_minutes=60,
        start_at=home(2025, 12, 29, 9, 0),
        next_due_at=home(2026, 1, 5, 9, 0),
        created_at=home(2025, 12, 29, 8, 0),
    )
    values.update(overrides)
    return create_remind_task(**values)


class FakeRepository:
    def __init__(self, tasks: Optional[List[RemindTask]] = None) -> None:
        self.tasks: Dict[int, List[RemindTask]] = {}
        self.updates: List[RemindTask] = []
        self.fail_updates = False
        self.fail_task_ids: set = set()
        for task in tasks or []:
            self.tasks.setdefault(task.channel_id, []).append(task)

    def get(self, channel_id: int, task_id: str) -> Optional[RemindTask]:
        for task in self.tasks.get(channel_id, []):
            if task.id == task_id:
                return task
        return None

    async def fetch_tasks(self, channel_id: int) -> List[RemindTask]:
        return list(self.tasks.get(channel_id, []))

    async def find_task_by_message_id(self, channel_id: int, message_id: int) -> Optional[RemindTask]:
        for task in self.tasks.get(channel_id, []):
            if task.message_id == message_id:
                return task
        return None

    async def append_task(self, channel_id: int, task: RemindTask) -> OperationResult:
        self.tasks.setdefault(channel_id, []).append(task)
        return OperationResult.ok()

    async def update_task(self, channel_id: int, task: RemindTask) -> OperationResult:
        if task.id in self.fail_task_ids:
            raise RuntimeError(f"boom while saving {task.id}")
        if self.fail_updates:
            return OperationResult.fail(PersistenceFailure("タスクの更新に失敗しました"))
        tasks = self.tasks.get(channel_id, [])
        for index, existing in enumerate(tasks):
            if existing.id == task.id:
                tasks[index] = task
                self.updates.append(task)
                return OperationResult.ok()
        return OperationResult.fail(NotFound("タスクが見つかりません"))

    async def delete_task(self, channel_id: int, task_id: str) -> OperationResult:
        tasks = self.tasks.get(channel_id, [])
        remaining = [task for task in tasks if task.id != task_id]
        if len(remaining) == len(tasks):
            return OperationResult.fail(NotFound("タスクが見つかりません"))
        self.tasks[channel_id] = remaining
        return OperationResult.ok()


class FakeMetadataStore:
    def __init__(self, channels: Optional[List[RemindChannelMetadata]] = None) -> None:
        self.channels: Dict[int, RemindChannelMetadata] = {c.channel_id: c for c in channels or []}
        self.update_calls: List[Tuple[int, dict]] = []
        self.fail_listing = False

    async def get_channel_metadata(self, channel_id: int) -> MetadataResult:
        metadata = self.channels.get(channel_id)
        if metadata is None:
            return MetadataResult.fail(NotFound("チャンネル情報が見つかりません"))
        return MetadataResult.ok(metadata=metadata)

    async def create_channel_metadata(self, channel_id: int, list_title: Optional[str] = None) -> MetadataResult:
        self.channels[channel_id] = RemindChannelMetadata(
            channel_id=channel_id,
            list_title=list_title or "リマインドリスト",
            last_sync_time=home(2026, 1, 1),
        )
        return MetadataResult.ok(metadata=self.channels[channel_id])

    async def ensure_channel_metadata(self, channel_id: int, list_title: Optional[str] = None) -> MetadataResult:
        if channel_id in self.channels:
            return MetadataResult.ok(metadata=self.channels[channel_id])
        return await self.create_channel_metadata(channel_id, list_title)

    async def update_channel_metadata(self, channel_id: int, **updates) -> MetadataResult:
        self.update_calls.append((channel_id, updates))
        metadata = self.channels.get(channel_id)
        if metadata is None:
            return MetadataResult.fail(NotFound("チャンネル情報が見つかりません"))
        self.channels[channel_id] = replace(metadata, **updates)
        return MetadataResult.ok(metadata=self.channels[channel_id])

    async def list_channel_metadata(self) -> List[RemindChannelMetadata]:
        if self.fail_listing:
            raise PersistenceFailure("チャンネル情報の読み込みに失敗しました")
        return list(self.channels.values())


class FakeNotifier:
    """Records every call. Each thread (re)creation hands out fresh ids."""

    def __init__(self) -> None:
        self.sent: List[Tuple[int, str]] = []
        self.created: List[Tuple[int, str]] = []
        self.updated: List[Tuple[int, int, RemindTask]] = []
        self.deleted: List[Tuple[int, int]] = []
        self.threads: Dict[int, Tuple[int, int]] = {}
        self.fail_sends = False
        self.fail_updates = False
        self.gate: Optional[asyncio.Event] = None
        self._ids = itertools.count(9000)

    def _resolve(self, channel_id: int, thread_id: Optional[int], parent_id: Optional[int]) -> Tuple[int, int]:
        bound = self.threads.get(channel_id)
        if bound and bound == (thread_id, parent_id):
            return bound
        bound = (next(self._ids), next(self._ids))
        self.threads[channel_id] = bound
        return bound

    async def ensure_reminder_thread(self, channel_id, thread_id=None, parent_message_id=None, *, list_title=None):
        thread, parent = self._resolve(channel_id, thread_id, parent_message_id)
        return ThreadResult.ok(thread_id=thread, parent_message_id=parent)

    async def send_reminder_to_thread(self, channel_id, thread_id, parent_message_id, text) -> ThreadResult:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_sends:
            return ThreadResult.fail(NotifierFailure("通知の送信に失敗しました"))
        thread, parent = self._resolve(channel_id, thread_id, parent_message_id)
        self.sent.append((channel_id, text))
        return ThreadResult.ok(thread_id=thread, parent_message_id=parent)

    async def create_task_message(self, channel_id: int, task: RemindTask, now: datetime) -> MessageResult:
        message_id = next(self._ids)
        self.created.append((channel_id, task.id))
        return MessageResult.ok(message_id=message_id)

    async def update_task_message(self, channel_id: int, message_id: int, task: RemindTask, now: datetime):
        if self.fail_updates:
            return OperationResult.fail(NotifierFailure("タスクメッセージの更新に失敗しました"))
        self.updated.append((channel_id, message_id, task))
        return OperationResult.ok()

    async def delete_task_message(self, channel_id: int, message_id: int) -> OperationResult:
        self.deleted.append((channel_id, message_id))
        return OperationResult.ok()
