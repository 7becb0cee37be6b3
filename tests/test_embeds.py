"""Tests for task message rendering."""

from datetime import timedelta

from tests.fakes import home, make_task
from utils.embeds import (
    PROGRESS_BAR_LENGTH,
    EmbedFactory,
    _create_progress_bar,
    format_status_line,
    format_summary_text,
)
from utils.models import InventoryItem


class TestStatusLine:
    def test_overdue(self):
        assert format_status_line(make_task(), home(2026, 1, 5, 9, 1)) == "**期限切れ**"

    def test_hours_and_minutes_left(self):
        assert format_status_line(make_task(), home(2026, 1, 5, 7, 30)) == "-# 残り: 1時間30分"

    def test_minutes_are_rounded_up(self):
        now = home(2026, 1, 5, 8, 50) + timedelta(seconds=30)
        assert format_status_line(make_task(), now) == "-# 残り: 10分"

    def test_days_left(self):
        assert format_status_line(make_task(), home(2026, 1, 2, 10, 0)) == "-# 残り: 3日"

    def test_far_due_date_shows_date(self):
        task = make_task(next_due_at=home(2026, 3, 1, 9, 0))
        assert format_status_line(task, home(2026, 1, 5, 9, 0)) == "-# 期限: 2026/3/1 09:00"


class TestProgressBar:
    def test_empty_at_cycle_start(self):
        bar = _create_progress_bar(make_task(), home(2025, 12, 29, 9, 0))
        assert bar == "░" * PROGRESS_BAR_LENGTH

    def test_half_way(self):
        bar = _create_progress_bar(make_task(), home(2026, 1, 1, 21, 0))
        assert bar.count("█") == PROGRESS_BAR_LENGTH // 2

    def test_full_when_overdue(self):
        bar = _create_progress_bar(make_task(), home(2026, 1, 9, 9, 0))
        assert bar == "█" * PROGRESS_BAR_LENGTH

    def test_measured_from_last_completion(self):
        task = make_task(last_done_at=home(2026, 1, 5, 9, 0), next_due_at=home(2026, 1, 12, 9, 0))
        assert _create_progress_bar(task, home(2026, 1, 5, 9, 0)).count("█") == 0


class TestEmbeds:
    def test_summary_shows_inventory_and_pause(self):
        task = make_task(is_paused=True, inventory_items=[InventoryItem("洗剤", 2.0, 0.5)])
        lines = format_summary_text(task, home(2026, 1, 2, 10, 0)).splitlines()
        assert lines == ["-# 残り: 3日", "-# 在庫: 洗剤 2", "-# ⏸️ 一時停止中"]

    def test_task_card(self):
        now = home(2026, 1, 2, 10, 0)
        embed = EmbedFactory().task_card(make_task(), now)
        assert embed.title == "フィルター交換"
        assert embed.description.startswith("```\n")
        assert embed.description.endswith("-# 残り: 3日")

    def test_task_detail_fields(self):
        task = make_task(description="メモ", overdue_notify_limit=3, last_done_at=home(2025, 12, 29, 10, 0))
        embed = EmbedFactory().task_detail(task)
        names = [field.name for field in embed.fields]
        assert names == ["前回完了", "期限超過通知上限", "説明"]
        assert "事前通知: 01時間00分前" in embed.description

    def test_message_color_follows_emoji(self):
        factory = EmbedFactory()
        assert factory.message("完了", "ok", emoji="✅").title == "✅ 完了"
        assert factory.message("失敗", "ng", emoji="❌").color != factory.message("完了", "ok", emoji="✅").color
