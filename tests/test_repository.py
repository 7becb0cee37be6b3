"""Tests for the mapping between task rows and task objects."""

from datetime import datetime

import pytest

from tests.fakes import CHANNEL_ID, home, make_task
from utils.errors import PersistenceFailure
from utils.models import InventoryItem
from utils.repository import RemindTaskRepository, record_to_task, task_to_record


class FakeDatabase:
    def __init__(self):
        self.rows = {}
        self.error = None

    def _check(self):
        if self.error:
            raise self.error

    async def fetch_remind_tasks(self, channel_id):
        self._check()
        return [dict(row) for (channel, _), row in self.rows.items() if channel == channel_id]

    async def fetch_remind_task_by_message(self, channel_id, message_id):
        self._check()
        for (channel, _), row in self.rows.items():
            if channel == channel_id and row["message_id"] == message_id:
                return dict(row)
        return None

    async def insert_remind_task(self, channel_id, task_id, values):
        self._check()
        self.rows[(channel_id, task_id)] = dict(values, id=task_id)

    async def update_remind_task(self, channel_id, task_id, values):
        self._check()
        if (channel_id, task_id) not in self.rows:
            return False
        self.rows[(channel_id, task_id)] = dict(values, id=task_id)
        return True

    async def delete_remind_task(self, channel_id, task_id):
        self._check()
        return self.rows.pop((channel_id, task_id), None) is not None


class TestRecordMapping:
    def test_record_roundtrip_keeps_fields(self):
        task = make_task(inventory_items=[InventoryItem("洗剤", 1.5, 0.5)], overdue_notify_limit=3)
        record = dict(task_to_record(task), id=task.id)
        assert record_to_task(CHANNEL_ID, record) == task

    def test_naive_timestamps_are_utc(self):
        record = dict(task_to_record(make_task()), id="task-1")
        record["next_due_at"] = datetime(2026, 1, 5, 0, 0)
        task = record_to_task(CHANNEL_ID, record)
        assert task.next_due_at == home(2026, 1, 5, 9, 0)
        assert task.next_due_at.tzinfo is not None

    def test_malformed_inventory_entries_are_dropped(self):
        record = dict(task_to_record(make_task()), id="task-1")
        record["inventory_items"] = [
            {"name": "洗剤", "stock": "2", "consume": 0.5},
            {"name": "", "stock": 1, "consume": 1},
            {"name": "スポンジ", "stock": None, "consume": 1},
            "junk",
        ]
        task = record_to_task(CHANNEL_ID, record)
        assert task.inventory_items == [InventoryItem("洗剤", 2.0, 0.5)]

    def test_record_rounds_quantities(self):
        task = make_task(inventory_items=[InventoryItem("洗剤", 1.25, 0.45)])
        assert task_to_record(task)["inventory_items"] == [{"name": "洗剤", "stock": 1.3, "consume": 0.5}]


class TestRemindTaskRepository:
    @pytest.mark.asyncio
    async def test_append_and_find(self):
        repository = RemindTaskRepository(FakeDatabase())
        task = make_task()

        assert (await repository.append_task(CHANNEL_ID, task)).success
        assert await repository.find_task_by_message_id(CHANNEL_ID, 5001) == task
        assert await repository.find_task_by_message_id(CHANNEL_ID, 1) is None
        assert await repository.fetch_tasks(CHANNEL_ID) == [task]

    @pytest.mark.asyncio
    async def test_update_missing_task(self):
        repository = RemindTaskRepository(FakeDatabase())
        result = await repository.update_task(CHANNEL_ID, make_task())
        assert result.code == "not_found"

    @pytest.mark.asyncio
    async def test_delete(self):
        db = FakeDatabase()
        repository = RemindTaskRepository(db)
        await repository.append_task(CHANNEL_ID, make_task())

        assert (await repository.delete_task(CHANNEL_ID, "task-1")).success
        assert (await repository.delete_task(CHANNEL_ID, "task-1")).code == "not_found"

    @pytest.mark.asyncio
    async def test_connection_errors_become_persistence_failures(self):
        db = FakeDatabase()
        db.error = OSError("connection reset")
        repository = RemindTaskRepository(db)

        result = await repository.update_task(CHANNEL_ID, make_task())
        assert result.code == "persistence_failure"

        with pytest.raises(PersistenceFailure):
            await repository.fetch_tasks(CHANNEL_ID)
