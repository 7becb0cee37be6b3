from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import asyncpg

DEFAULT_LIST_TITLE = "リマインドリスト"

# Columns written by insert/update, in the order of the remind_tasks table.
TASK_COLUMNS = (
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
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_command_tag(tag: str) -> int:
    try:
        return int(tag.rsplit(" ", 1)[1])
    except (IndexError, ValueError):
        return 0


def _decode_task_row(row: Any) -> Dict[str, Any]:
    task = dict(row)
    items = task.get("inventory_items")
    if isinstance(items, str):
        task["inventory_items"] = json.loads(items) if items else []
    elif items is None:
        task["inventory_items"] = []
    return task


class Database:
    """Async wrapper around PostgreSQL holding reminder tasks and channel bindings."""

    def __init__(self, dsn: str, *, default_list_title: str = DEFAULT_LIST_TITLE) -> None:
        self.dsn = dsn
        self.default_list_title = default_list_title
        self._pool: Optional[asyncpg.Pool] = None

    async def init(self) -> None:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(dsn=self.dsn, min_size=1, max_size=10, timeout=10.0)
        async with self._pool.acquire() as conn:
            schema_statements = [
                """
                CREATE TABLE IF NOT EXISTS remind_channels (
                    channel_id BIGINT PRIMARY KEY,
                    list_title TEXT NOT NULL,
                    remind_notice_thread_id BIGINT,
                    remind_notice_message_id BIGINT,
                    last_sync_time TIMESTAMPTZ NOT NULL
                )
                """,
                """
                CREATE TABLE IF NOT EXISTS remind_tasks (
                    channel_id BIGINT NOT NULL REFERENCES remind_channels(channel_id) ON DELETE CASCADE,
                    id TEXT NOT NULL,
                    message_id BIGINT,
                    title TEXT NOT NULL,
                    description TEXT,
                    interval_days INTEGER NOT NULL CHECK (interval_days >= 1),
                    time_of_day TEXT NOT NULL,
                    remind_before_minutes INTEGER NOT NULL,
                    inventory_items JSONB NOT NULL DEFAULT '[]'::jsonb,
                    start_at TIMESTAMPTZ NOT NULL,
                    next_due_at TIMESTAMPTZ NOT NULL,
                    last_done_at TIMESTAMPTZ,
                    last_remind_due_at TIMESTAMPTZ,
                    overdue_notify_count INTEGER NOT NULL DEFAULT 0,
                    overdue_notify_limit INTEGER,
                    last_overdue_notified_at TIMESTAMPTZ,
                    is_paused BOOLEAN NOT NULL DEFAULT FALSE,
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL,
                    PRIMARY KEY (channel_id, id)
                )
                """,
                "CREATE INDEX IF NOT EXISTS idx_remind_tasks_message ON remind_tasks(channel_id, message_id)",
                "CREATE INDEX IF NOT EXISTS idx_remind_tasks_due ON remind_tasks(next_due_at)",
            ]
            for statement in schema_statements:
                await conn.execute(statement)

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None

    # Channel bindings

    async def ensure_remind_channel(self, channel_id: int, *, list_title: Optional[str] = None) -> bool:
        """Insert the channel row if missing. Returns True when a row was created."""
        result = await self._execute(
            """
            INSERT INTO remind_channels (channel_id, list_title, last_sync_time)
            VALUES ($1, $2, $3)
            ON CONFLICT (channel_id) DO NOTHING
            """,
            (channel_id, list_title or self.default_list_title, _utcnow()),
            rowcount=True,
        )
        return bool(result)

    async def get_remind_channel(self, channel_id: int) -> Optional[Dict[str, Any]]:
        row = await self._execute(
            "SELECT * FROM remind_channels WHERE channel_id = $1",
            (channel_id,),
            fetchone=True,
        )
        return dict(row) if row else None

    async def list_remind_channels(self) -> List[Dict[str, Any]]:
        rows = await self._execute(
            "SELECT * FROM remind_channels ORDER BY channel_id",
            fetchall=True,
        )
        return [dict(row) for row in rows or []]

    async def update_remind_channel(self, channel_id: int, **fields: Any) -> Optional[Dict[str, Any]]:
        fields["last_sync_time"] = _utcnow()
        assignments = []
        params: List[Any] = []
        for idx, (key, value) in enumerate(fields.items(), start=1):
            assignments.append(f"{key} = ${idx}")
            params.append(value)
        params.append(channel_id)
        row = await self._execute(
            f"UPDATE remind_channels SET {', '.join(assignments)} WHERE channel_id = ${len(params)} RETURNING *",
            tuple(params),
            fetchone=True,
        )
        return dict(row) if row else None

    # Tasks

    def _insert_task_query(self, channel_id: int, task_id: str, values: Dict[str, Any]) -> Tuple[str, Tuple[Any, ...]]:
        columns = ("channel_id", "id") + TASK_COLUMNS
        placeholders = []
        for idx, column in enumerate(columns, start=1):
            placeholders.append(f"${idx}::jsonb" if column == "inventory_items" else f"${idx}")
        params = [channel_id, task_id] + [self._encode(column, values.get(column)) for column in TASK_COLUMNS]
        query = f"INSERT INTO remind_tasks ({', '.join(columns)}) VALUES ({', '.join(placeholders)})"
        return query, tuple(params)

    async def insert_remind_task(self, channel_id: int, task_id: str, values: Dict[str, Any]) -> None:
        query, params = self._insert_task_query(channel_id, task_id, values)
        await self._execute(query, params)

    async def replace_channel_tasks(self, channel_id: int, tasks: Sequence[Tuple[str, Dict[str, Any]]]) -> int:
        """Swap a channel's tasks for ``tasks`` atomically. Nothing changes if any insert fails."""
        if self._pool is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM remind_tasks WHERE channel_id = $1", channel_id)
                for task_id, values in tasks:
                    query, params = self._insert_task_query(channel_id, task_id, values)
                    await conn.execute(query, *params)
        return len(tasks)

    async def fetch_remind_tasks(self, channel_id: int) -> List[Dict[str, Any]]:
        rows = await self._execute(
            "SELECT * FROM remind_tasks WHERE channel_id = $1 ORDER BY created_at, id",
            (channel_id,),
            fetchall=True,
        )
        return [_decode_task_row(row) for row in rows or []]

    async def fetch_remind_task_by_message(self, channel_id: int, message_id: int) -> Optional[Dict[str, Any]]:
        row = await self._execute(
            "SELECT * FROM remind_tasks WHERE channel_id = $1 AND message_id = $2",
            (channel_id, message_id),
            fetchone=True,
        )
        return _decode_task_row(row) if row else None

    async def update_remind_task(self, channel_id: int, task_id: str, values: Dict[str, Any]) -> bool:
        assignments = []
        params: List[Any] = []
        for idx, column in enumerate(TASK_COLUMNS, start=1):
            cast = "::jsonb" if column == "inventory_items" else ""
            assignments.append(f"{column} = ${idx}{cast}")
            params.append(self._encode(column, values.get(column)))
        params.extend([channel_id, task_id])
        result = await self._execute(
            f"UPDATE remind_tasks SET {', '.join(assignments)} "
            f"WHERE channel_id = ${len(params) - 1} AND id = ${len(params)}",
            tuple(params),
            rowcount=True,
        )
        return bool(result)

    async def delete_remind_task(self, channel_id: int, task_id: str) -> bool:
        result = await self._execute(
            "DELETE FROM remind_tasks WHERE channel_id = $1 AND id = $2",
            (channel_id, task_id),
            rowcount=True,
        )
        return bool(result)

    async def delete_channel_tasks(self, channel_id: int) -> int:
        return await self._execute(
            "DELETE FROM remind_tasks WHERE channel_id = $1",
            (channel_id,),
            rowcount=True,
        )

    @staticmethod
    def _encode(column: str, value: Any) -> Any:
        if column == "inventory_items":
            return json.dumps(value or [], ensure_ascii=False)
        return value

    async def _execute(
        self,
        query: str,
        params: Iterable[Any] = (),
        *,
        fetchone: bool = False,
        fetchall: bool = False,
        rowcount: bool = False,
    ) -> Any:
        if self._pool is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        params_seq: Sequence[Any] = tuple(params)
        async with self._pool.acquire() as conn:
            if fetchone:
                return await conn.fetchrow(query, *params_seq)
            if fetchall:
                return await conn.fetch(query, *params_seq)
            status = await conn.execute(query, *params_seq)
            if rowcount:
                return _parse_command_tag(status)
            return status
