from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import discord

if TYPE_CHECKING:
    from utils import EmbedFactory
    from utils.models import OperationResult


def resolve_channel_id(interaction: discord.Interaction) -> Optional[int]:
    """
    Channel that owns the reminder list for this interaction.
    Interactions from inside the notice thread resolve to the thread's parent.
    """
    channel = interaction.channel
    if isinstance(channel, discord.Thread):
        return channel.parent_id
    return interaction.channel_id


async def send_result(
    interaction: discord.Interaction,
    embeds: "EmbedFactory",
    result: "OperationResult",
    title: str,
) -> None:
    """Report a service result ephemerally, whether or not the interaction was deferred."""
    if result.success:
        embed = embeds.message(title, result.message or "完了しました。", emoji="✅")
    else:
        emoji = "📦" if result.code == "insufficient_inventory" else "⚠️"
        embed = embeds.message(f"{title}に失敗しました", result.message or "不明なエラーです。", emoji=emoji)

    if interaction.response.is_done():
        await interaction.followup.send(embed=embed, ephemeral=True)
    else:
        await interaction.response.send_message(embed=embed, ephemeral=True)


async def send_error(interaction: discord.Interaction, embeds: "EmbedFactory", title: str, message: str) -> None:
    embed = embeds.message(title, message, emoji="⚠️")
    if interaction.response.is_done():
        await interaction.followup.send(embed=embed, ephemeral=True)
    else:
        await interaction.response.send_message(embed=embed, ephemeral=True)
