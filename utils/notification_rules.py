from __future__ import annotations

from datetime import datetime, timedelta

from .models import RemindTask
from .schedule import ensure_aware, is_same_home_date


def pre_reminder_window_start(task: RemindTask) -> datetime:
    return task.next_due_at - timedelta(minutes=task.remind_before_minutes)


def should_send_pre_reminder(task: RemindTask, now: datetime) -> bool:
    """True inside ``[next_due_at - lead, next_due_at]`` unless already sent for this due date."""
    if task.is_paused:
        return False
    now = ensure_aware(now)
    if not pre_reminder_window_start(task) <= now <= task.next_due_at:
        return False
    return task.last_remind_due_at != task.next_due_at


def should_send_overdue(task: RemindTask, now: datetime) -> bool:
    """At most once per home-zone day and ``effective_overdue_limit`` times per cycle."""
    if task.is_paused:
        return False
    now = ensure_aware(now)
    if now <= task.next_due_at:
        return False
    if task.overdue_notify_count >= task.effective_overdue_limit:
        return False
    if task.last_overdue_notified_at is not None and is_same_home_date(task.last_overdue_notified_at, now):
        return False
    return True
