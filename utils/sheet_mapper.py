"""Row mapping for the legacy spreadsheet layout of a channel's reminder list.

Three layouts exist in the wild, told apart by row length:
18 columns (current), 17 (no ``inventory_items``), 16 (no ``inventory_items``
and no ``overdue_notify_limit``).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from dateutil import parser

from .inventory import round_quantity
from .models import DEFAULT_REMIND_BEFORE_MINUTES, InventoryItem, RemindTask, create_remind_task
from .schedule import DEFAULT_TIME_OF_DAY, to_home

logger = logging.getLogger(__name__)

SHEET_HEADERS = [
    "id",
    "message_id",
    "title",
    "description",
    "interval_days",
    "time_of_day",
    "remind_before_minutes",
    "inventory_items",
    "start_at",
    "next_due_at",
    "last_done_at",
    "last_remind_due_at",
    "overdue_notify_count",
    "overdue_notify_limit",
    "last_overdue_notified_at",
    "is_paused",
    "created_at",
    "updated_at",
]


def _cell(row: Sequence[str], index: Optional[int]) -> str:
    if index is None or index >= len(row):
        return ""
    return (row[index] or "").strip()


def _parse_int(value: str, fallback: Optional[int]) -> Optional[int]:
    if not value:
        return fallback
    try:
        return int(float(value))
    except ValueError:
        return fallback


def _parse_date(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = parser.isoparse(value)
    except ValueError:
        logger.debug(f"Ignoring unparseable timestamp {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_inventory(value: str) -> List[InventoryItem]:
    if not value:
        return []
    try:
        raw_items = json.loads(value)
    except json.JSONDecodeError:
        return []
    if not isinstance(raw_items, list):
        return []
    items = []
    for raw in raw_items:
        if not isinstance(raw, dict) or not isinstance(raw.get("name"), str) or not raw["name"].strip():
            continue
        try:
            stock = float(raw.get("stock"))
            consume = float(raw.get("consume"))
        except (TypeError, ValueError):
            continue
        items.append(InventoryItem(name=raw["name"], stock=round_quantity(stock), consume=round_quantity(consume)))
    return items


def _format_date(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return to_home(value).strftime("%Y-%m-%dT%H:%M:%S+09:00")


def from_sheet_row(row: Sequence[str], channel_id: int, now: Optional[datetime] = None) -> RemindTask:
    """Build a task from any of the three row layouts. Missing timestamps fall back to ``now``."""
    now = now or datetime.now(timezone.utc)
    has_inventory = len(row) >= 18
    has_limit = has_inventory or len(row) >= 17
    offset = 1 if has_inventory else 0

    limit_index = 12 + offset if has_limit else None
    tail = 13 + offset if has_limit else 12 + offset

    message_text = _cell(row, 1)
    message_id = int(message_text) if message_text.isdecimal() else None
    return create_remind_task(
        id=_cell(row, 0),
        channel_id=channel_id,
        message_id=message_id,
        title=_cell(row, 2),
        description=_cell(row, 3) or None,
        interval_days=_parse_int(_cell(row, 4), 1),
        time_of_day=_cell(row, 5) or DEFAULT_TIME_OF_DAY,
        remind_before_minutes=_parse_int(_cell(row, 6), DEFAULT_REMIND_BEFORE_MINUTES),
        inventory_items=_parse_inventory(_cell(row, 7)) if has_inventory else [],
        start_at=_parse_date(_cell(row, 7 + offset)) or now,
        next_due_at=_parse_date(_cell(row, 8 + offset)) or now,
        last_done_at=_parse_date(_cell(row, 9 + offset)),
        last_remind_due_at=_parse_date(_cell(row, 10 + offset)),
        overdue_notify_count=_parse_int(_cell(row, 11 + offset), 0),
        overdue_notify_limit=_parse_int(_cell(row, limit_index), None),
        last_overdue_notified_at=_parse_date(_cell(row, tail)),
        is_paused=_cell(row, tail + 1) == "1",
        created_at=_parse_date(_cell(row, tail + 2)) or now,
        updated_at=_parse_date(_cell(row, tail + 3)) or now,
    )


def to_sheet_row(task: RemindTask) -> List[str]:
    inventory = ""
    if task.inventory_items:
        inventory = json.dumps([item.to_dict() for item in task.inventory_items], ensure_ascii=False)
    return [
        task.id,
        str(task.message_id) if task.message_id else "",
        task.title,
        task.description or "",
        str(task.interval_days),
        task.time_of_day,
        str(task.remind_before_minutes),
        inventory,
        _format_date(task.start_at),
        _format_date(task.next_due_at),
        _format_date(task.last_done_at),
        _format_date(task.last_remind_due_at),
        str(task.overdue_notify_count),
        "" if task.overdue_notify_limit is None else str(task.overdue_notify_limit),
        _format_date(task.last_overdue_notified_at),
        "1" if task.is_paused else "0",
        _format_date(task.created_at),
        _format_date(task.updated_at),
    ]
