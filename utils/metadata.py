from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import asyncpg

from .db import Database
from .errors import NotFound, PersistenceFailure
from .models import MetadataResult, RemindChannelMetadata
from .schedule import ensure_aware

logger = logging.getLogger(__name__)

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)
_UPDATABLE_FIELDS = {"list_title", "remind_notice_thread_id", "remind_notice_message_id"}


def _to_metadata(row: Dict[str, Any]) -> RemindChannelMetadata:
    return RemindChannelMetadata(
        channel_id=row["channel_id"],
        list_title=row["list_title"],
        last_sync_time=ensure_aware(row["last_sync_time"]),
        remind_notice_thread_id=row.get("remind_notice_thread_id"),
        remind_notice_message_id=row.get("remind_notice_message_id"),
    )


class RemindMetadataStore:
    """Per-channel reminder configuration, including the notice thread binding."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def get_channel_metadata(self, channel_id: int) -> MetadataResult:
        try:
            row = await self.db.get_remind_channel(channel_id)
        except _DB_ERRORS as exc:
            logger.warning("Failed to load metadata for channel %s: %s", channel_id, exc)
            return MetadataResult.fail(PersistenceFailure("チャンネル情報の取得に失敗しました"))
        if not row:
            return MetadataResult.fail(NotFound("チャンネル情報が見つかりません"))
        return MetadataResult.ok(metadata=_to_metadata(row))

    async def create_channel_metadata(self, channel_id: int, list_title: Optional[str] = None) -> MetadataResult:
        try:
            await self.db.ensure_remind_channel(channel_id, list_title=list_title)
        except _DB_ERRORS as exc:
            logger.warning("Failed to create metadata for channel %s: %s", channel_id, exc)
            return MetadataResult.fail(PersistenceFailure("チャンネル情報の作成に失敗しました"))
        return await self.get_channel_metadata(channel_id)

    async def ensure_channel_metadata(self, channel_id: int, list_title: Optional[str] = None) -> MetadataResult:
        existing = await self.get_channel_metadata(channel_id)
        if existing.success:
            return existing
        if existing.code != NotFound.code:
            return existing
        return await self.create_channel_metadata(channel_id, list_title)

    async def update_channel_metadata(self, channel_id: int, **updates: Any) -> MetadataResult:
        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            raise TypeError(f"Unknown channel metadata fields: {', '.join(sorted(unknown))}")
        try:
            row = await self.db.update_remind_channel(channel_id, **updates)
        except _DB_ERRORS as exc:
            logger.warning("Failed to update metadata for channel %s: %s", channel_id, exc)
            return MetadataResult.fail(PersistenceFailure("チャンネル情報の更新に失敗しました"))
        if not row:
            return MetadataResult.fail(NotFound("チャンネル情報が見つかりません"))
        return MetadataResult.ok(metadata=_to_metadata(row))

    async def list_channel_metadata(self) -> List[RemindChannelMetadata]:
        try:
            rows = await self.db.list_remind_channels()
        except _DB_ERRORS as exc:
            raise PersistenceFailure("チャンネル一覧の取得に失敗しました") from exc
        return [_to_metadata(row) for row in rows]
