"""Tests for the periodic reminder sweep."""

import asyncio

import pytest

from tests.fakes import CHANNEL_ID, FakeMetadataStore, FakeRepository, home, make_task
from utils.models import InventoryItem
from utils.reminders import ReminderScheduler, overdue_text, pre_reminder_text


def build_scheduler(repository, metadata, notifier):
    return ReminderScheduler(repository, metadata, notifier, interval=60)


class TestReminderTexts:
    def test_pre_reminder_text(self):
        assert pre_reminder_text(make_task(remind_before_minutes=90)) == (
            "@everyone フィルター交換の期限まであと1時間30分になりました。"
        )

    def test_overdue_text(self):
        assert overdue_text(make_task()) == "@everyone フィルター交換の期限が切れています。"


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_pre_reminder_is_sent_once_per_due_date(self, metadata, notifier):
        repository = FakeRepository([make_task()])
        scheduler = build_scheduler(repository, metadata, notifier)

        assert await scheduler.run_once(home(2026, 1, 5, 8, 30))
        assert await scheduler.run_once(home(2026, 1, 5, 8, 45))

        assert notifier.sent == [(CHANNEL_ID, "@everyone フィルター交換の期限まであと1時間になりました。")]
        stored = repository.get(CHANNEL_ID, "task-1")
        assert stored.last_remind_due_at == home(2026, 1, 5, 9, 0)
        assert notifier.updated[-1][2] == stored

    @pytest.mark.asyncio
    async def test_overdue_notice_once_per_day(self, metadata, notifier):
        repository = FakeRepository([make_task(last_remind_due_at=home(2026, 1, 5, 9, 0))])
        scheduler = build_scheduler(repository, metadata, notifier)

        await scheduler.run_once(home(2026, 1, 5, 10, 1))
        await scheduler.run_once(home(2026, 1, 5, 18, 1))
        await scheduler.run_once(home(2026, 1, 6, 10, 1))

        assert notifier.sent == [(CHANNEL_ID, "@everyone フィルター交換の期限が切れています。")] * 2
        stored = repository.get(CHANNEL_ID, "task-1")
        assert stored.overdue_notify_count == 2
        assert stored.last_overdue_notified_at == home(2026, 1, 6, 10, 1)

    @pytest.mark.asyncio
    async def test_paused_tasks_are_skipped(self, metadata, notifier):
        repository = FakeRepository([make_task(is_paused=True)])
        scheduler = build_scheduler(repository, metadata, notifier)

        await scheduler.run_once(home(2026, 1, 6, 10, 0))

        assert notifier.sent == []
        assert notifier.updated == []

    @pytest.mark.asyncio
    async def test_shortage_notice_precedes_pre_reminder(self, metadata, notifier):
        task = make_task(inventory_items=[InventoryItem("フィルター", 0.0, 0.5)])
        scheduler = build_scheduler(FakeRepository([task]), metadata, notifier)

        await scheduler.run_once(home(2026, 1, 5, 8, 30))

        assert [text for _, text in notifier.sent] == [
            "@everyone フィルター交換の在庫が不足しています: フィルター(在庫0/消費0.5)",
            "@everyone フィルター交換の期限まであと1時間になりました。",
        ]

    @pytest.mark.asyncio
    async def test_failed_send_leaves_state_for_retry(self, metadata, notifier):
        repository = FakeRepository([make_task()])
        notifier.fail_sends = True
        scheduler = build_scheduler(repository, metadata, notifier)

        await scheduler.run_once(home(2026, 1, 5, 8, 30))
        assert repository.updates == []

        notifier.fail_sends = False
        await scheduler.run_once(home(2026, 1, 5, 8, 31))
        assert len(notifier.sent) == 1
        assert repository.get(CHANNEL_ID, "task-1").last_remind_due_at == home(2026, 1, 5, 9, 0)

    @pytest.mark.asyncio
    async def test_thread_binding_is_persisted_once(self, metadata, notifier):
        repository = FakeRepository(
            [make_task(), make_task(id="task-2", message_id=5002, title="植木の水やり")]
        )
        scheduler = build_scheduler(repository, metadata, notifier)

        await scheduler.run_once(home(2026, 1, 5, 8, 30))

        assert len(notifier.sent) == 2
        assert len(metadata.update_calls) == 1
        channel_id, updates = metadata.update_calls[0]
        assert channel_id == CHANNEL_ID
        assert (updates["remind_notice_thread_id"], updates["remind_notice_message_id"]) == notifier.threads[CHANNEL_ID]

    @pytest.mark.asyncio
    async def test_failing_task_does_not_stop_the_sweep(self, metadata, notifier):
        repository = FakeRepository(
            [make_task(), make_task(id="task-2", message_id=5002, title="植木の水やり")]
        )
        repository.fail_task_ids.add("task-1")
        scheduler = build_scheduler(repository, metadata, notifier)

        assert await scheduler.run_once(home(2026, 1, 5, 8, 30))

        assert repository.get(CHANNEL_ID, "task-2").last_remind_due_at == home(2026, 1, 5, 9, 0)
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_progress_refresh_on_the_hour(self, metadata, notifier):
        task = make_task(next_due_at=home(2026, 1, 10, 9, 0))
        scheduler = build_scheduler(FakeRepository([task]), metadata, notifier)

        await scheduler.run_once(home(2026, 1, 6, 12, 30))
        assert notifier.updated == []

        await scheduler.run_once(home(2026, 1, 6, 13, 0))
        assert notifier.updated == [(CHANNEL_ID, 5001, task)]
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_overlapping_sweep_is_skipped(self, metadata, notifier):
        repository = FakeRepository([make_task()])
        notifier.gate = asyncio.Event()
        scheduler = build_scheduler(repository, metadata, notifier)

        first = asyncio.create_task(scheduler.run_once(home(2026, 1, 5, 8, 30)))
        for _ in range(5):
            await asyncio.sleep(0)
        assert scheduler.is_running

        assert await scheduler.run_once(home(2026, 1, 5, 8, 31)) is False

        notifier.gate.set()
        assert await first is True
        assert len(notifier.sent) == 1
        assert not scheduler.is_running


    @pytest.mark.asyncio
    async def test_channel_listing_failure_is_logged(self, repository, notifier, caplog):
        metadata = FakeMetadataStore()
        metadata.fail_listing = True
        scheduler = build_scheduler(repository, metadata, notifier)

        assert await scheduler.run_once(home(2026, 1, 5, 8, 30)) is True

        assert not scheduler.is_running
        assert notifier.sent == []
        assert "could not list channels" in caplog.text


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, repository, metadata, notifier):
        scheduler = ReminderScheduler(repository, metadata, notifier, interval=3600)
        await scheduler.start()
        assert scheduler._task is not None
        await scheduler.stop()
        assert scheduler._task is None
