from __future__ import annotations

from typing import TYPE_CHECKING

import discord

from .helpers import resolve_channel_id, send_error, send_result
from .modals import (
    RemindAddModal,
    RemindDeleteModal,
    RemindInventoryModal,
    RemindOverrideModal,
    RemindUpdateModal,
)

if TYPE_CHECKING:
    from discord.ext import commands

    from utils.models import RemindTask


TASK_DETAIL_ID = "remind-task-detail"
TASK_UPDATE_ID = "remind-task-update"
TASK_COMPLETE_ID = "remind-task-complete"
TASK_DELETE_ID = "remind-task-delete"
TASK_ADD_ID = "remind-task-add"


class RemindTaskView(discord.ui.View):
    """Persistent buttons under every task message.

    The task is resolved from the message the button belongs to, so one
    registered instance serves every task message after a restart.
    """

    def __init__(self, bot: "commands.Bot") -> None:
        super().__init__(timeout=None)
        self.bot = bot

    async def _load(self, interaction: discord.Interaction):
        result = await self.bot.task_service.get_task(resolve_channel_id(interaction), interaction.message.id)
        if not result.success:
            await send_result(interaction, self.bot.embeds, result, "タスクの取得")
            return None
        return result.task

    @discord.ui.button(label="詳細", style=discord.ButtonStyle.secondary, custom_id=TASK_DETAIL_ID)
    async def detail_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        task = await self._load(interaction)
        if task is None:
            return
        await interaction.response.send_message(embed=self.bot.embeds.task_detail(task), ephemeral=True)

    @discord.ui.button(label="更新", style=discord.ButtonStyle.primary, custom_id=TASK_UPDATE_ID)
    async def update_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        task = await self._load(interaction)
        if task is None:
            return
        await interaction.response.send_message(
            embed=self.bot.embeds.message("更新メニュー", f"**{task.title}** の更新内容を選択してください。", emoji="📝"),
            view=RemindUpdateMenuView(self.bot, task),
            ephemeral=True,
        )

    @discord.ui.button(label="完了", style=discord.ButtonStyle.success, custom_id=TASK_COMPLETE_ID)
    async def complete_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        channel_id = resolve_channel_id(interaction)
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.bot.completion.complete(channel_id, interaction.message.id)
        await send_result(interaction, self.bot.embeds, result, "完了登録")

    @discord.ui.button(label="削除", style=discord.ButtonStyle.danger, custom_id=TASK_DELETE_ID)
    async def delete_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await interaction.response.send_modal(RemindDeleteModal(self.bot, interaction.message.id))


class RemindNoticeView(discord.ui.View):
    """Persistent add button on the notice-thread parent message."""

    def __init__(self, bot: "commands.Bot") -> None:
        super().__init__(timeout=None)
        self.bot = bot

    @discord.ui.button(label="新規作成", style=discord.ButtonStyle.primary, custom_id=TASK_ADD_ID)
    async def add_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await interaction.response.send_modal(RemindAddModal(self.bot))


class RemindUpdateMenuView(discord.ui.View):
    """Ephemeral menu choosing which part of a task to edit."""

    def __init__(self, bot: "commands.Bot", task: "RemindTask", *, timeout: float = 180.0) -> None:
        super().__init__(timeout=timeout)
        self.bot = bot
        self.task = task
        if task.is_paused:
            self.pause_button.label = "再開"
            self.pause_button.style = discord.ButtonStyle.success

    @discord.ui.button(label="基本設定", style=discord.ButtonStyle.primary)
    async def basic_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await interaction.response.send_modal(RemindUpdateModal(self.bot, self.task))
        self.stop()

    @discord.ui.button(label="詳細設定", style=discord.ButtonStyle.secondary)
    async def override_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await interaction.response.send_modal(RemindOverrideModal(self.bot, self.task))
        self.stop()

    @discord.ui.button(label="在庫設定", style=discord.ButtonStyle.secondary)
    async def inventory_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await interaction.response.send_modal(RemindInventoryModal(self.bot, self.task))
        self.stop()

    @discord.ui.button(label="一時停止", style=discord.ButtonStyle.secondary, row=1)
    async def pause_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        channel_id = resolve_channel_id(interaction)
        if channel_id is None or self.task.message_id is None:
            await send_error(interaction, self.bot.embeds, "状態の変更", "タスク情報が取得できません")
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.bot.task_service.set_paused(channel_id, self.task.message_id, not self.task.is_paused)
        await send_result(interaction, self.bot.embeds, result, "状態の変更")
        self.stop()

    @discord.ui.button(label="キャンセル", style=discord.ButtonStyle.secondary, row=1)
    async def cancel_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await interaction.response.edit_message(
            embed=self.bot.embeds.message("更新をキャンセルしました", "変更はありません。"),
            view=None,
        )
        self.stop()
