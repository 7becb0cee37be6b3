from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from utils import EmbedFactory, RemindTaskService
from utils.errors import InvalidFormat
from utils.validators import Validator

from .ui.helpers import resolve_channel_id, send_error, send_result


class RemindersCog(commands.Cog):
    def __init__(self, bot: commands.Bot, task_service: RemindTaskService, embeds: EmbedFactory) -> None:
        self.bot = bot
        self.task_service = task_service
        self.embeds = embeds

    @app_commands.command(name="init-remind-list", description="このチャンネルをリマインドリストとして初期化します")
    @app_commands.describe(title="リストのタイトル(省略時は既定値)")
    @app_commands.checks.has_permissions(manage_channels=True)
    @app_commands.checks.cooldown(1, 30.0)
    async def init_remind_list(self, interaction: discord.Interaction, title: Optional[str] = None) -> None:
        channel_id = resolve_channel_id(interaction)
        if not interaction.guild_id or channel_id is None:
            await send_error(interaction, self.embeds, "サーバー専用", "このコマンドはサーバーのチャンネルで使用してください。")
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.task_service.initialize_channel(channel_id, title)
        await send_result(interaction, self.embeds, result, "リマインドリストの初期化")

    @app_commands.command(name="add-remind", description="リマインドを追加します")
    @app_commands.checks.cooldown(1, 5.0)
    async def add_remind(self, interaction: discord.Interaction) -> None:
        from .ui import RemindAddModal

        if not interaction.guild_id:
            await send_error(interaction, self.embeds, "サーバー専用", "このコマンドはサーバーのチャンネルで使用してください。")
            return
        await interaction.response.send_modal(RemindAddModal(self.bot))

    @app_commands.command(name="pause-remind", description="リマインドを一時停止します")
    @app_commands.describe(message="タスクメッセージのリンクまたはID")
    async def pause_remind(self, interaction: discord.Interaction, message: str) -> None:
        await self._set_paused(interaction, message, True)

    @app_commands.command(name="resume-remind", description="一時停止したリマインドを再開します")
    @app_commands.describe(message="タスクメッセージのリンクまたはID")
    async def resume_remind(self, interaction: discord.Interaction, message: str) -> None:
        await self._set_paused(interaction, message, False)

    async def _set_paused(self, interaction: discord.Interaction, reference: str, paused: bool) -> None:
        channel_id = resolve_channel_id(interaction)
        if not interaction.guild_id or channel_id is None:
            await send_error(interaction, self.embeds, "サーバー専用", "このコマンドはサーバーのチャンネルで使用してください。")
            return
        try:
            message_id = Validator.parse_message_reference(reference)
        except InvalidFormat as exc:
            await send_error(interaction, self.embeds, "メッセージが無効です", exc.message)
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.task_service.set_paused(channel_id, message_id, paused)
        await send_result(interaction, self.embeds, result, "一時停止" if paused else "再開")
