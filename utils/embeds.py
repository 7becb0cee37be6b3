from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Optional

import discord

from .duration import format_remind_before_display
from .inventory import format_inventory_detail, format_inventory_summary
from .models import RemindTask
from .schedule import ensure_aware, format_home_datetime

TASK_COLOR = discord.Color(0xFFA726)
NOTICE_COLOR = discord.Color.from_rgb(118, 75, 162)
PROGRESS_BAR_LENGTH = 40
NOTICE_TITLE = "通知用スレッド"

_SUCCESS = discord.Color.from_rgb(46, 204, 113)
_WARNING = discord.Color.from_rgb(243, 156, 18)
_ERROR = discord.Color.from_rgb(231, 76, 60)


def _create_progress_bar(task: RemindTask, now: datetime, length: int = PROGRESS_BAR_LENGTH) -> str:
    """Elapsed share of the current cycle, from the last completion (or start) to the due date."""
    interval_start = task.last_done_at or task.start_at
    total = (task.next_due_at - interval_start).total_seconds()
    elapsed = (ensure_aware(now) - interval_start).total_seconds()
    ratio = 1.0 if total <= 0 else min(1.0, max(0.0, elapsed / total))
    filled = int(ratio * length + 0.5)
    return "█" * filled + "░" * (length - filled)


def _format_hours_minutes(seconds: float) -> str:
    total_minutes = max(0, math.ceil(seconds / 60))
    hours, minutes = divmod(total_minutes, 60)
    if hours == 0:
        return f"{minutes}分"
    return f"{hours}時間{minutes}分"


def format_status_line(task: RemindTask, now: datetime) -> str:
    remaining = (task.next_due_at - ensure_aware(now)).total_seconds()
    if remaining < 0:
        return "**期限切れ**"
    if 0 < remaining < 24 * 60 * 60:
        return f"-# 残り: {_format_hours_minutes(remaining)}"
    remaining_days = math.ceil(remaining / (24 * 60 * 60))
    if remaining_days < 30:
        return f"-# 残り: {remaining_days}日"
    return f"-# 期限: {format_home_datetime(task.next_due_at)}"


def format_summary_text(task: RemindTask, now: datetime) -> str:
    lines = [format_status_line(task, now)]
    summary = format_inventory_summary(task.inventory_items)
    if summary:
        lines.append(f"-# {summary}")
    if task.is_paused:
        lines.append("-# ⏸️ 一時停止中")
    return "\n".join(lines)


def format_detail_text(task: RemindTask) -> str:
    lines = [
        f"期限: {format_home_datetime(task.next_due_at)}",
        f"周期: {task.interval_days}日",
        f"事前通知: {format_remind_before_display(task.remind_before_minutes)}",
    ]
    detail = format_inventory_detail(task.inventory_items)
    if detail:
        lines.append(detail)
    return "\n".join(lines)


class EmbedFactory:
    def __init__(self, color: Optional[discord.Color] = None) -> None:
        self.color = color or TASK_COLOR

    def _finalize(self, embed: discord.Embed, timestamp: Optional[datetime] = None) -> discord.Embed:
        embed.timestamp = timestamp or datetime.now(timezone.utc)
        return embed

    def message(
        self,
        title: str,
        description: str,
        *,
        emoji: Optional[str] = None,
        color: Optional[discord.Color] = None,
    ) -> discord.Embed:
        heading = f"{emoji} {title}" if emoji else title
        if color is None:
            if emoji in ("✅", "✨", "🎉"):
                color = _SUCCESS
            elif emoji in ("⚠️", "🔔", "📦"):
                color = _WARNING
            elif emoji in ("❌", "🚫"):
                color = _ERROR
            else:
                color = self.color
        embed = discord.Embed(title=heading, description=description, color=color)
        return self._finalize(embed)

    def task_card(self, task: RemindTask, now: datetime) -> discord.Embed:
        """The rendered task message: title, progress bar and remaining time."""
        description = f"```\n{_create_progress_bar(task, now)}\n```\n{format_summary_text(task, now)}"
        embed = discord.Embed(title=task.title, description=description, color=self.color)
        return self._finalize(embed, ensure_aware(now))

    def task_detail(self, task: RemindTask) -> discord.Embed:
        embed = discord.Embed(title=f"📋 {task.title}", description=format_detail_text(task), color=self.color)
        if task.last_done_at:
            embed.add_field(name="前回完了", value=format_home_datetime(task.last_done_at), inline=True)
        if task.overdue_notify_limit is not None:
            embed.add_field(name="期限超過通知上限", value=f"{task.overdue_notify_limit}回", inline=True)
        if task.is_paused:
            embed.add_field(name="状態", value="⏸️ 一時停止中", inline=True)
        if task.description:
            embed.add_field(name="説明", value=task.description[:1024], inline=False)
        return self._finalize(embed)

    def notice(self, list_title: Optional[str] = None) -> discord.Embed:
        """Parent message of the per-channel notification thread."""
        description = "リマインドの通知はこのメッセージのスレッドに投稿されます。"
        if list_title:
            description = f"**{list_title}**\n{description}"
        embed = discord.Embed(title=NOTICE_TITLE, description=description, color=NOTICE_COLOR)
        return self._finalize(embed)
