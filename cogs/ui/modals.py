from __future__ import annotations

from typing import TYPE_CHECKING

import discord

from utils.duration import format_remind_before_input
from utils.inventory import format_inventory_input
from utils.schedule import DEFAULT_TIME_OF_DAY
from utils.validators import DELETE_CONFIRMATION_WORD, Validator

from .helpers import resolve_channel_id, send_error, send_result

if TYPE_CHECKING:
    from discord.ext import commands

    from utils.models import RemindTask


class RemindAddModal(discord.ui.Modal):
    """Modal for creating a new reminder in the current channel."""

    def __init__(self, bot: "commands.Bot") -> None:
        super().__init__(title="リマインドを追加", timeout=300)
        self.bot = bot
        self.task_title = discord.ui.TextInput(
            label="タスク名",
            placeholder="例: フィルター交換",
            max_length=Validator.TASK_TITLE_LIMIT,
            required=True,
        )
        self.description = discord.ui.TextInput(
            label="説明",
            placeholder="任意",
            max_length=Validator.DESCRIPTION_LIMIT,
            required=False,
            style=discord.TextStyle.paragraph,
        )
        self.interval_days = discord.ui.TextInput(
            label="周期(日)",
            placeholder="例: 7",
            default="7",
            max_length=4,
            required=True,
        )
        self.time_of_day = discord.ui.TextInput(
            label="期限時刻(HH:MM)",
            placeholder=DEFAULT_TIME_OF_DAY,
            max_length=5,
            required=False,
        )
        self.remind_before = discord.ui.TextInput(
            label="事前通知(日:時:分 または 時:分)",
            placeholder="1:00:00",
            max_length=8,
            required=False,
        )
        for item in (self.task_title, self.description, self.interval_days, self.time_of_day, self.remind_before):
            self.add_item(item)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        channel_id = resolve_channel_id(interaction)
        if channel_id is None:
            await send_error(interaction, self.bot.embeds, "リマインドの追加", "チャンネル情報が取得できません")
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.bot.task_service.add_task(
            channel_id,
            self.task_title.value,
            self.description.value,
            self.interval_days.value,
            self.time_of_day.value,
            self.remind_before.value,
        )
        await send_result(interaction, self.bot.embeds, result, "リマインドの追加")


class RemindUpdateModal(discord.ui.Modal):
    """Edits the definition of a task; prefilled with its current values."""

    def __init__(self, bot: "commands.Bot", task: "RemindTask") -> None:
        super().__init__(title="基本設定を更新", timeout=300)
        self.bot = bot
        self.message_id = task.message_id
        self.task_title = discord.ui.TextInput(
            label="タスク名",
            default=task.title,
            max_length=Validator.TASK_TITLE_LIMIT,
            required=True,
        )
        self.description = discord.ui.TextInput(
            label="説明",
            default=task.description or "",
            max_length=Validator.DESCRIPTION_LIMIT,
            required=False,
            style=discord.TextStyle.paragraph,
        )
        self.interval_days = discord.ui.TextInput(
            label="周期(日)",
            default=str(task.interval_days),
            max_length=4,
            required=True,
        )
        self.time_of_day = discord.ui.TextInput(
            label="期限時刻(HH:MM)",
            default=task.time_of_day,
            max_length=5,
            required=False,
        )
        self.remind_before = discord.ui.TextInput(
            label="事前通知(日:時:分 または 時:分)",
            default=format_remind_before_input(task.remind_before_minutes),
            max_length=8,
            required=False,
        )
        for item in (self.task_title, self.description, self.interval_days, self.time_of_day, self.remind_before):
            self.add_item(item)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.bot.task_service.update_basic(
            resolve_channel_id(interaction),
            self.message_id,
            self.task_title.value,
            self.description.value,
            self.interval_days.value,
            self.time_of_day.value,
            self.remind_before.value,
        )
        await send_result(interaction, self.bot.embeds, result, "基本設定の更新")


class RemindOverrideModal(discord.ui.Modal):
    """Manual overrides of the last completion, the due date and the overdue notice limit."""

    def __init__(self, bot: "commands.Bot", task: "RemindTask") -> None:
        super().__init__(title="詳細設定を更新", timeout=300)
        self.bot = bot
        self.message_id = task.message_id
        self.last_done_at = discord.ui.TextInput(
            label="前回完了日(YYYY/MM/DD [HH:MM])",
            placeholder="例: 2026/01/05 09:00",
            max_length=16,
            required=False,
        )
        self.next_due_at = discord.ui.TextInput(
            label="次回期限(YYYY/MM/DD [HH:MM])",
            placeholder="例: 2026/01/12",
            max_length=16,
            required=False,
        )
        self.overdue_limit = discord.ui.TextInput(
            label="期限超過通知の上限回数(空欄で既定値)",
            default="" if task.overdue_notify_limit is None else str(task.overdue_notify_limit),
            max_length=3,
            required=False,
        )
        for item in (self.last_done_at, self.next_due_at, self.overdue_limit):
            self.add_item(item)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.bot.task_service.override_schedule(
            resolve_channel_id(interaction),
            self.message_id,
            self.last_done_at.value,
            self.next_due_at.value,
            self.overdue_limit.value,
        )
        await send_result(interaction, self.bot.embeds, result, "詳細設定の更新")


class RemindInventoryModal(discord.ui.Modal):
    def __init__(self, bot: "commands.Bot", task: "RemindTask") -> None:
        super().__init__(title="在庫を設定", timeout=300)
        self.bot = bot
        self.message_id = task.message_id
        self.inventory = discord.ui.TextInput(
            label="在庫(1行に1アイテム: 名前,在庫数,消費数)",
            placeholder="フィルター,在庫3,消費1",
            default=format_inventory_input(task.inventory_items),
            max_length=1000,
            required=False,
            style=discord.TextStyle.paragraph,
        )
        self.add_item(self.inventory)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.bot.task_service.update_inventory(
            resolve_channel_id(interaction),
            self.message_id,
            self.inventory.value,
        )
        await send_result(interaction, self.bot.embeds, result, "在庫の更新")


class RemindDeleteModal(discord.ui.Modal):
    """Deletion requires typing the confirmation word."""

    def __init__(self, bot: "commands.Bot", message_id: int) -> None:
        super().__init__(title="リマインドを削除", timeout=300)
        self.bot = bot
        self.message_id = message_id
        self.confirmation = discord.ui.TextInput(
            label=f"削除する場合は「{DELETE_CONFIRMATION_WORD}」と入力",
            placeholder=DELETE_CONFIRMATION_WORD,
            max_length=10,
            required=True,
        )
        self.add_item(self.confirmation)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        validation = Validator.delete_confirmation(self.confirmation.value)
        if not validation.ok:
            await send_error(interaction, self.bot.embeds, "削除をキャンセルしました", validation.message)
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.bot.task_service.delete_task(resolve_channel_id(interaction), self.message_id)
        await send_result(interaction, self.bot.embeds, result, "リマインドの削除")
