"""SQLite storage implementation."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import Event, QueueMessage, TraceEvent


def _to_utc_iso(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat()


class IStorage(Protocol):
    """Persistent storage for in-flight queue messages and trace events (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Queue messages
    async def insert_queue_message(self, message: QueueMessage) -> None:
        """Persist a newly enqueued message."""
        ...

    async def claim_queue_messages(
        self, queue_name: str, limit: int, now: float, hidden_until: float
    ) -> list[QueueMessage]:
        """Return up to `limit` visible messages and hide them until `hidden_until`."""
        ...

    async def delete_queue_message(self, queue_name: str, message_id: str) -> bool:
        """Delete a message. Returns False if it did not exist."""
        ...

    async def make_queue_message_visible(
        self, queue_name: str, message_id: str, now: float
    ) -> bool:
        """Make a hidden message visible at `now`. Returns False if not hidden."""
        ...

    async def move_queue_message(
        self, message_id: str, from_queue: str, to_queue: str, now: float
    ) -> bool:
        """Move a message to another queue, visible and with a fresh receive count."""
        ...

    async def count_queue_messages(self, queue_name: str, now: float) -> tuple[int, int]:
        """Return (visible, hidden) counts for a queue."""
        ...

    async def purge_queue(self, queue_name: str) -> int:
        """Delete all messages of a queue. Returns the number deleted."""
        ...

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        event_id: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(str(self._db_path))

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # Queue messages
    async def insert_queue_message(self, message: QueueMessage) -> None:
        """Persist a newly enqueued message."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO queue_messages
            (id, queue_name, event, enqueued_at, visible_at, receive_count)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                message.message_id,
                message.queue_name,
                json.dumps(message.event.to_dict(), ensure_ascii=False),
                message.enqueued_at,
                message.visible_at,
                message.receive_count,
            ),
        )
        await conn.commit()

    async def claim_queue_messages(
        self, queue_name: str, limit: int, now: float, hidden_until: float
    ) -> list[QueueMessage]:
        """Return up to `limit` visible messages and hide them until `hidden_until`.

        Not safe against interleaving callers on its own; DurableQueue
        serializes claims per queue. The connection is shared, so a failure
        here never rolls back: that would discard other callers' pending writes.
        The UPDATE is a single statement and leaves no partial claim behind.
        """
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, queue_name, event, enqueued_at, receive_count
            FROM queue_messages
            WHERE queue_name = ? AND visible_at <= ?
            ORDER BY seq ASC
            LIMIT ?
            """,
            (queue_name, now, limit),
        )
        rows = await cursor.fetchall()

        ids = [row[0] for row in rows]
        if ids:
            placeholders = ",".join("?" * len(ids))
            await conn.execute(
                f"""
                UPDATE queue_messages
                SET visible_at = ?, receive_count = receive_count + 1
                WHERE id IN ({placeholders})
                """,
                [hidden_until, *ids],
            )
        await conn.commit()

        return [
            QueueMessage(
                message_id=row[0],
                queue_name=row[1],
                event=Event.from_dict(json.loads(row[2])),
                enqueued_at=row[3],
                visible_at=hidden_until,
                receive_count=row[4] + 1,
            )
            for row in rows
        ]

    async def delete_queue_message(self, queue_name: str, message_id: str) -> bool:
        """Delete a message. Returns False if it did not exist."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "DELETE FROM queue_messages WHERE queue_name = ? AND id = ?",
            (queue_name, message_id),
        )
        await conn.commit()
        return (cursor.rowcount or 0) > 0

    async def make_queue_message_visible(
        self, queue_name: str, message_id: str, now: float
    ) -> bool:
        """Make a hidden message visible at `now`. Returns False if not hidden."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            UPDATE queue_messages
            SET visible_at = ?
            WHERE queue_name = ? AND id = ? AND visible_at > ?
            """,
            (now, queue_name, message_id, now),
        )
        await conn.commit()
        return (cursor.rowcount or 0) > 0

    async def move_queue_message(
        self, message_id: str, from_queue: str, to_queue: str, now: float
    ) -> bool:
        """Move a message to another queue, visible and with a fresh receive count."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            UPDATE queue_messages
            SET queue_name = ?, visible_at = ?, enqueued_at = ?, receive_count = 0
            WHERE queue_name = ? AND id = ?
            """,
            (to_queue, now, now, from_queue, message_id),
        )
        await conn.commit()
        return (cursor.rowcount or 0) > 0

    async def count_queue_messages(self, queue_name: str, now: float) -> tuple[int, int]:
        """Return (visible, hidden) counts for a queue."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT
                COALESCE(SUM(CASE WHEN visible_at <= ? THEN 1 ELSE 0 END), 0),
                COALESCE(SUM(CASE WHEN visible_at > ? THEN 1 ELSE 0 END), 0)
            FROM queue_messages
            WHERE queue_name = ?
            """,
            (now, now, queue_name),
        )
        row = await cursor.fetchone()
        return (row[0], row[1])

    async def purge_queue(self, queue_name: str) -> int:
        """Delete all messages of a queue. Returns the number deleted."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "DELETE FROM queue_messages WHERE queue_name = ?", (queue_name,)
        )
        await conn.commit()
        return cursor.rowcount or 0

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO trace_events (id, event_type, actor, data, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.id or str(uuid.uuid4()),
                event.event_type,
                event.actor,
                json.dumps(event.data, default=str),
                _to_utc_iso(event.timestamp),
            ),
        )
        await conn.commit()

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        event_id: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters (newest first).

        `event_id` matches the routed event recorded in the trace data, so one
        event can be followed across bus hops, the queue and the consumer.
        """
        conn = self._require_conn()

        # Build query dynamically
        conditions = []
        params: list = []

        if after:
            conditions.append("timestamp > ?")
            params.append(_to_utc_iso(after))
        if event_types:
            placeholders = ",".join("?" * len(event_types))
            conditions.append(f"event_type IN ({placeholders})")
            params.extend(event_types)
        if actor:
            conditions.append("actor = ?")
            params.append(actor)
        if event_id:
            conditions.append("json_extract(data, '$.event_id') = ?")
            params.append(event_id)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT id, event_type, actor, data, timestamp
            FROM trace_events
            {where_clause}
            ORDER BY timestamp DESC, rowid DESC
            LIMIT ?
        """
        params.append(limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        return [
            TraceEvent(
                id=row[0],
                event_type=row[1],
                actor=row[2],
                data=json.loads(row[3]),
                timestamp=datetime.fromisoformat(row[4]),
            )
            for row in rows
        ]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        for table in ["queue_messages", "trace_events"]:
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()
