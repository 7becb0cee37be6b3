"""Tests for importing and exporting the legacy spreadsheet layout."""

import json

from tests.fakes import CHANNEL_ID, home, make_task
from utils.models import InventoryItem
from utils.sheet_mapper import SHEET_HEADERS, from_sheet_row, to_sheet_row

NOW = home(2026, 1, 1, 0, 0)

BASE = [
    "task-1",
    "5001",
    "フィルター交換",
    "",
    "7",
    "09:00",
    "60",
]
DATES = [
    "2025-12-29T09:00:00+09:00",
    "2026-01-05T09:00:00+09:00",
    "",
    "2026-01-05T09:00:00+09:00",
    "2",
]
TAIL = [
    "2026-01-05T10:00:00+09:00",
    "0",
    "2025-12-29T08:00:00+09:00",
    "2025-12-30T08:00:00Z",
]


class TestFromSheetRow:
    def test_current_layout(self):
        inventory = json.dumps([{"name": "フィルター", "stock": 2, "consume": 0.5}], ensure_ascii=False)
        row = BASE + [inventory] + DATES + ["4"] + TAIL
        assert len(row) == len(SHEET_HEADERS)

        task = from_sheet_row(row, CHANNEL_ID, now=NOW)

        assert task.inventory_items == [InventoryItem("フィルター", 2.0, 0.5)]
        assert task.overdue_notify_limit == 4
        assert task.overdue_notify_count == 2
        assert task.next_due_at == home(2026, 1, 5, 9, 0)
        assert task.last_overdue_notified_at == home(2026, 1, 5, 10, 0)
        assert task.updated_at == home(2025, 12, 30, 17, 0)
        assert task.message_id == 5001

    def test_layout_without_inventory(self):
        row = BASE + DATES + ["3"] + TAIL
        task = from_sheet_row(row, CHANNEL_ID, now=NOW)

        assert task.inventory_items == []
        assert task.overdue_notify_limit == 3
        assert task.start_at == home(2025, 12, 29, 9, 0)
        assert task.created_at == home(2025, 12, 29, 8, 0)

    def test_layout_without_inventory_or_limit(self):
        row = BASE + DATES + TAIL
        task = from_sheet_row(row, CHANNEL_ID, now=NOW)

        assert task.overdue_notify_limit is None
        assert task.last_remind_due_at == home(2026, 1, 5, 9, 0)
        assert task.last_overdue_notified_at == home(2026, 1, 5, 10, 0)
        assert task.is_paused is False

    def test_bad_cells_fall_back(self):
        row = BASE[:4] + ["", "", "", "not json"] + ["garbage"] * 5 + ["", "", "1", "", ""]
        task = from_sheet_row(row, CHANNEL_ID, now=NOW)

        assert task.interval_days == 1
        assert task.time_of_day == "00:00"
        assert task.remind_before_minutes == 1440
        assert task.inventory_items == []
        assert task.start_at == NOW
        assert task.is_paused is True


class TestToSheetRow:
    def test_export_reads_back(self):
        task = make_task(
            description="メモ",
            inventory_items=[InventoryItem("洗剤", 1.5, 0.5)],
            overdue_notify_limit=2,
            is_paused=True,
        )
        row = to_sheet_row(task)

        assert len(row) == len(SHEET_HEADERS)
        assert row[8] == "2025-12-29T09:00:00+09:00"
        assert row[15] == "1"
        assert from_sheet_row(row, CHANNEL_ID, now=NOW) == task
