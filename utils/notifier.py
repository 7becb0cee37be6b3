"""Discord delivery for reminder tasks.

This module provides:
- RemindNotifier: renders task messages and owns the per-channel notice thread
- NoticeBinding: sends notices and persists thread re-creation
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Optional, Tuple

import discord

from .embeds import EmbedFactory
from .errors import NotifierFailure
from .models import MessageResult, OperationResult, RemindChannelMetadata, RemindTask, ThreadResult

if TYPE_CHECKING:
    from discord.ext import commands

logger = logging.getLogger(__name__)

DEFAULT_THREAD_NAME = "通知用スレッド"
THREAD_AUTO_ARCHIVE_MINUTES = 1440


class RemindNotifier:
    """Posts task messages and notices into a channel's notification thread."""

    def __init__(
        self,
        bot: commands.Bot,
        embeds: EmbedFactory,
        *,
        thread_name: str = DEFAULT_THREAD_NAME,
    ) -> None:
        self.bot = bot
        self.embeds = embeds
        self.thread_name = thread_name

    # Views live in the cog package and need the running bot, so import lazily.

    def _task_view(self) -> discord.ui.View:
        from cogs.ui.views import RemindTaskView

        return RemindTaskView(self.bot)

    def _notice_view(self) -> discord.ui.View:
        from cogs.ui.views import RemindNoticeView

        return RemindNoticeView(self.bot)

    async def _fetch_channel(self, channel_id: int) -> Optional[discord.abc.GuildChannel]:
        channel = self.bot.get_channel(channel_id)
        if channel is not None:
            return channel
        try:
            return await self.bot.fetch_channel(channel_id)
        except (discord.NotFound, discord.Forbidden):
            return None

    async def _fetch_text_channel(self, channel_id: int) -> discord.TextChannel:
        channel = await self._fetch_channel(channel_id)
        if not isinstance(channel, discord.TextChannel):
            raise NotifierFailure("チャンネルが見つかりません")
        return channel

    async def _fetch_thread(self, thread_id: int) -> Optional[discord.Thread]:
        thread = await self._fetch_channel(thread_id)
        return thread if isinstance(thread, discord.Thread) else None

    async def _unarchive(self, thread: discord.Thread) -> None:
        if not thread.archived:
            return
        try:
            await thread.edit(archived=False)
        except discord.HTTPException as e:
            logger.debug(f"Could not unarchive thread {thread.id}: {e}")

    async def _ensure_thread(
        self,
        channel_id: int,
        thread_id: Optional[int],
        parent_message_id: Optional[int],
        list_title: Optional[str],
    ) -> Tuple[discord.Thread, int]:
        channel = await self._fetch_text_channel(channel_id)

        if thread_id and parent_message_id:
            thread = await self._fetch_thread(thread_id)
            if thread is not None:
                try:
                    await channel.fetch_message(parent_message_id)
                except discord.NotFound:
                    logger.info(f"Notice message {parent_message_id} is gone in channel {channel_id}, recreating")
                else:
                    await self._unarchive(thread)
                    return thread, parent_message_id

        parent = await channel.send(embed=self.embeds.notice(list_title), view=self._notice_view())
        try:
            await parent.pin()
        except discord.HTTPException as e:
            logger.debug(f"Could not pin notice message in channel {channel_id}: {e}")
        thread = await parent.create_thread(
            name=self.thread_name,
            auto_archive_duration=THREAD_AUTO_ARCHIVE_MINUTES,
        )
        logger.info(f"Created notice thread {thread.id} in channel {channel_id}")
        return thread, parent.id

    async def ensure_reminder_thread(
        self,
        channel_id: int,
        thread_id: Optional[int] = None,
        parent_message_id: Optional[int] = None,
        *,
        list_title: Optional[str] = None,
    ) -> ThreadResult:
        """Reuse the bound thread when it and its parent resolve, otherwise create both.

        The returned ids may differ from the ones passed in; callers persist them.
        """
        try:
            thread, parent_id = await self._ensure_thread(channel_id, thread_id, parent_message_id, list_title)
        except NotifierFailure as e:
            return ThreadResult.fail(e)
        except discord.HTTPException as e:
            logger.warning(f"Failed to ensure notice thread in channel {channel_id}: {e}")
            return ThreadResult.fail(NotifierFailure("通知用スレッドの準備に失敗しました"))
        return ThreadResult.ok(thread_id=thread.id, parent_message_id=parent_id)

    async def send_reminder_to_thread(
        self,
        channel_id: int,
        thread_id: Optional[int],
        parent_message_id: Optional[int],
        text: str,
    ) -> ThreadResult:
        try:
            thread, parent_id = await self._ensure_thread(channel_id, thread_id, parent_message_id, None)
            await thread.send(text, allowed_mentions=discord.AllowedMentions(everyone=True))
        except NotifierFailure as e:
            return ThreadResult.fail(e)
        except discord.HTTPException as e:
            logger.warning(f"Failed to send reminder in channel {channel_id}: {e}")
            return ThreadResult.fail(NotifierFailure("通知の送信に失敗しました"))
        return ThreadResult.ok(thread_id=thread.id, parent_message_id=parent_id)

    async def create_task_message(self, channel_id: int, task: RemindTask, now: datetime) -> MessageResult:
        try:
            channel = await self._fetch_text_channel(channel_id)
            message = await channel.send(embed=self.embeds.task_card(task, now), view=self._task_view())
        except NotifierFailure as e:
            return MessageResult.fail(e)
        except discord.HTTPException as e:
            logger.warning(f"Failed to post task {task.id} in channel {channel_id}: {e}")
            return MessageResult.fail(NotifierFailure("タスクメッセージの作成に失敗しました"))
        return MessageResult.ok(message_id=message.id)

    async def update_task_message(
        self,
        channel_id: int,
        message_id: int,
        task: RemindTask,
        now: datetime,
    ) -> OperationResult:
        try:
            channel = await self._fetch_text_channel(channel_id)
            message = channel.get_partial_message(message_id)
            await message.edit(content=None, embed=self.embeds.task_card(task, now), view=self._task_view())
        except NotifierFailure as e:
            return OperationResult.fail(e)
        except discord.NotFound:
            return OperationResult.fail(NotifierFailure("タスクメッセージが見つかりません"))
        except discord.HTTPException as e:
            logger.warning(f"Failed to update message {message_id} in channel {channel_id}: {e}")
            return OperationResult.fail(NotifierFailure("タスクメッセージの更新に失敗しました"))
        return OperationResult.ok()

    async def delete_task_message(self, channel_id: int, message_id: int) -> OperationResult:
        try:
            channel = await self._fetch_text_channel(channel_id)
            await channel.get_partial_message(message_id).delete()
        except NotifierFailure as e:
            return OperationResult.fail(e)
        except discord.NotFound:
            logger.debug(f"Message {message_id} in channel {channel_id} was already deleted")
        except discord.HTTPException as e:
            logger.warning(f"Failed to delete message {message_id} in channel {channel_id}: {e}")
            return OperationResult.fail(NotifierFailure("タスクメッセージの削除に失敗しました"))
        return OperationResult.ok()


class NoticeBinding:
    """One channel's notice-thread binding, kept current across several sends.

    When the notifier has to recreate the thread, the new ids are written back
    through the metadata store before the next send reuses them.
    """

    def __init__(self, notifier: RemindNotifier, metadata_store, metadata: RemindChannelMetadata) -> None:
        self.notifier = notifier
        self.metadata_store = metadata_store
        self.channel_id = metadata.channel_id
        self.thread_id = metadata.remind_notice_thread_id
        self.message_id = metadata.remind_notice_message_id

    async def send(self, text: str) -> ThreadResult:
        result = await self.notifier.send_reminder_to_thread(self.channel_id, self.thread_id, self.message_id, text)
        if not result.success or not result.thread_id or not result.parent_message_id:
            return result
        if (result.thread_id, result.parent_message_id) != (self.thread_id, self.message_id):
            self.thread_id = result.thread_id
            self.message_id = result.parent_message_id
            updated = await self.metadata_store.update_channel_metadata(
                self.channel_id,
                remind_notice_thread_id=self.thread_id,
                remind_notice_message_id=self.message_id,
            )
            if not updated.success:
                logger.warning(f"Could not persist notice thread for channel {self.channel_id}: {updated.message}")
        return result
