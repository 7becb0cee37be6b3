from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from .completion import shortage_notice
from .duration import format_remaining_duration
from .errors import RemindError
from .inventory import get_insufficient_inventory_items
from .metadata import RemindMetadataStore
from .models import RemindChannelMetadata, RemindTask
from .notification_rules import should_send_overdue, should_send_pre_reminder
from .notifier import NoticeBinding, RemindNotifier
from .schedule import ensure_aware, to_home

DEFAULT_INTERVAL_SECONDS = 60


def pre_reminder_text(task: RemindTask) -> str:
    return f"@everyone {task.title}の期限まであと{format_remaining_duration(task.remind_before_minutes)}になりました。"


def overdue_text(task: RemindTask) -> str:
    return f"@everyone {task.title}の期限が切れています。"


class ReminderScheduler:
    """Periodic sweep sending pre-reminders and overdue notices for every bound channel."""

    def __init__(
        self,
        repository,
        metadata: RemindMetadataStore,
        notifier: RemindNotifier,
        logger: Optional[logging.Logger] = None,
        interval: int = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self.repository = repository
        self.metadata = metadata
        self.notifier = notifier
        self.logger = logger or logging.getLogger(__name__)
        self.interval = interval
        self._task: asyncio.Task | None = None
        self._stop = asyncio.Event()
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def start(self) -> None:
        if self._task and not self._task.done():
            self.logger.warning("Reminder scheduler already running, stopping existing task")
            await self.stop()
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name="remind-scheduler-loop")
        self.logger.info("Reminder scheduler started (every %ss)", self.interval)

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await self.run_once()
            except Exception as exc:  # pragma: no cover - defensive logging
                self.logger.exception("Reminder sweep failed: %s", exc)
            sleep_task = asyncio.create_task(asyncio.sleep(self.interval))
            stop_task = asyncio.create_task(self._stop.wait())
            done, pending = await asyncio.wait({sleep_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            if stop_task in done:
                break

    async def run_once(self, now: Optional[datetime] = None) -> bool:
        """Run one sweep. Returns False without doing anything if a sweep is in progress."""
        if self._is_running:
            self.logger.debug("Reminder sweep skipped, previous sweep still running")
            return False

        self._is_running = True
        started = time.monotonic()
        try:
            now = ensure_aware(now) if now else datetime.now(timezone.utc)
            try:
                channels = await self.metadata.list_channel_metadata()
            except RemindError as exc:
                self.logger.warning("Reminder sweep could not list channels: %s", exc.message)
                return True
            for channel in channels:
                try:
                    await self._process_channel(channel, now)
                except Exception:
                    self.logger.exception("Reminder sweep failed for channel %s", channel.channel_id)
        finally:
            self._is_running = False
            elapsed = time.monotonic() - started
            if elapsed > self.interval:
                self.logger.warning("Reminder sweep took %.1fs, longer than the %ss interval", elapsed, self.interval)
        return True

    async def _process_channel(self, channel: RemindChannelMetadata, now: datetime) -> None:
        tasks = await self.repository.fetch_tasks(channel.channel_id)
        binding = NoticeBinding(self.notifier, self.metadata, channel)
        refresh_progress = to_home(now).minute == 0

        for task in tasks:
            if task.is_paused:
                continue
            try:
                await self._process_task(binding, task, now, refresh_progress)
            except Exception:
                self.logger.exception("Reminder sweep failed for task %s in channel %s", task.id, channel.channel_id)

    async def _process_task(self, binding: NoticeBinding, task: RemindTask, now: datetime, refresh_progress: bool) -> None:
        channel_id = binding.channel_id

        if should_send_pre_reminder(task, now):
            shortage = get_insufficient_inventory_items(task.inventory_items)
            if shortage:
                result = await binding.send(shortage_notice(task, shortage))
                if not result.success:
                    self.logger.warning("Shortage notice for task %s failed: %s", task.id, result.message)
            result = await binding.send(pre_reminder_text(task))
            if not result.success:
                self.logger.warning("Pre-reminder for task %s failed: %s", task.id, result.message)
                return
            updated = replace(task, last_remind_due_at=task.next_due_at, updated_at=now)
            await self._save_and_render(channel_id, updated, now)
            return

        if should_send_overdue(task, now):
            result = await binding.send(overdue_text(task))
            if not result.success:
                self.logger.warning("Overdue notice for task %s failed: %s", task.id, result.message)
                return
            updated = replace(
                task,
                overdue_notify_count=task.overdue_notify_count + 1,
                last_overdue_notified_at=now,
                updated_at=now,
            )
            await self._save_and_render(channel_id, updated, now)
            return

        if refresh_progress and task.message_id:
            rendered = await self.notifier.update_task_message(channel_id, task.message_id, task, now)
            if not rendered.success:
                self.logger.debug("Progress refresh for task %s failed: %s", task.id, rendered.message)

    async def _save_and_render(self, channel_id: int, task: RemindTask, now: datetime) -> None:
        saved = await self.repository.update_task(channel_id, task)
        if not saved.success:
            self.logger.warning("Could not save reminder state for task %s: %s", task.id, saved.message)
            return
        if task.message_id:
            rendered = await self.notifier.update_task_message(channel_id, task.message_id, task, now)
            if not rendered.success:
                self.logger.warning("Could not refresh message for task %s: %s", task.id, rendered.message)
