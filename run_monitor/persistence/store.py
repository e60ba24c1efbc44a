"""SQLite-backed persistence for conversations and monitored runs.

Used for:
- Conversation → remote thread mapping (so /chat can continue a thread)
- Outcome of every monitored run (status, error, elapsed time)

The agent service stays the source of truth for run status; rows here are
a record of what the monitor observed, never an input to it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import aiosqlite

from run_monitor.monitor.models import MonitorResult, RunHandle

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "data/run_monitor.db"


@dataclass
class ConversationRecord:
    """A persisted conversation row."""

    conversation_id: str
    thread_id: str
    agent_id: str
    created_at: str = ""


@dataclass
class RunRecord:
    run_id: str
    thread_id: str
    status: str
    error_code: str | None = None
    error_message: str | None = None
    elapsed_seconds: float = 0.0
    finished_at: str = ""


class ConversationStore:
    """Async SQLite-backed conversation and run store."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH) -> None:
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def init_db(self) -> None:
        """Create tables if they don't exist."""
        self._conn = await aiosqlite.connect(self.db_path)
        await self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS conversations (
                conversation_id TEXT PRIMARY KEY,
                thread_id TEXT NOT NULL,
                agent_id TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        await self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS runs (
                run_id TEXT PRIMARY KEY,
                thread_id TEXT NOT NULL,
                status TEXT NOT NULL,
                error_code TEXT,
                error_message TEXT,
                elapsed_seconds REAL DEFAULT 0,
                finished_at TEXT NOT NULL
            )
            """
        )
        await self._conn.commit()

    async def _ensure_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            await self.init_db()
        assert self._conn is not None
        return self._conn

    async def get_conversation(
        self, conversation_id: str
    ) -> ConversationRecord | None:
        conn = await self._ensure_conn()
        cursor = await conn.execute(
            "SELECT conversation_id, thread_id, agent_id, created_at "
            "FROM conversations WHERE conversation_id = ?",
            (conversation_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return ConversationRecord(
            conversation_id=row[0],
            thread_id=row[1],
            agent_id=row[2],
            created_at=row[3],
        )

    async def upsert_conversation(self, record: ConversationRecord) -> None:
        """Insert or update a conversation. created_at is kept from the first insert."""
        conn = await self._ensure_conn()
        await conn.execute(
            """
            INSERT INTO conversations (conversation_id, thread_id, agent_id, created_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(conversation_id) DO UPDATE SET
                thread_id = excluded.thread_id,
                agent_id = excluded.agent_id
            """,
            (
                record.conversation_id,
                record.thread_id,
                record.agent_id,
                record.created_at or _now_iso(),
            ),
        )
        await conn.commit()

    async def record_run(self, handle: RunHandle, result: MonitorResult) -> None:
        """Store the outcome of a monitored run (last write wins)."""
        conn = await self._ensure_conn()
        await conn.execute(
            """
            INSERT OR REPLACE INTO runs
                (run_id, thread_id, status, error_code, error_message,
                 elapsed_seconds, finished_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                handle.run_id,
                handle.thread_id,
                result.status.value,
                result.error.code if result.error else None,
                result.error.message if result.error else None,
                result.elapsed_seconds,
                _now_iso(),
            ),
        )
        await conn.commit()

    async def list_runs(self, limit: int = 50) -> list[RunRecord]:
        """Most recently finished runs first."""
        conn = await self._ensure_conn()
        cursor = await conn.execute(
            "SELECT run_id, thread_id, status, error_code, error_message, "
            "elapsed_seconds, finished_at FROM runs "
            "ORDER BY finished_at DESC, rowid DESC LIMIT ?",
            (limit,),
        )
        rows = await cursor.fetchall()
        return [
            RunRecord(
                run_id=r[0],
                thread_id=r[1],
                status=r[2],
                error_code=r[3],
                error_message=r[4],
                elapsed_seconds=r[5],
                finished_at=r[6],
            )
            for r in rows
        ]

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(timezone.utc).isoformat()
