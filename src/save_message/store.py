from __future__ import annotations

import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import anyio

from .logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class TopicStoreError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class Topic:
    chat_id: int
    name: str
    thread_id: int | None
    created_by: int | None = None
    created_at: str | None = None


@dataclass(frozen=True, slots=True)
class StoredUser:
    id: int
    username: str | None
    first_name: str | None
    last_name: str | None
    created_at: str | None = None


def _init_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY,
            username TEXT,
            first_name TEXT,
            last_name TEXT,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS topics (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            chat_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            message_thread_id INTEGER,
            created_by INTEGER,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(chat_id, name)
        )
        """
    )
    conn.commit()


def _topic(row: tuple) -> Topic:
    chat_id, name, thread_id, created_by, created_at = row
    return Topic(
        chat_id=chat_id,
        name=name,
        thread_id=thread_id,
        created_by=created_by,
        created_at=created_at,
    )


class TopicStore:
    """SQLite cache of the topics and users the bot has seen.

    sqlite3 calls block, so each one runs in a worker thread; a lock keeps
    the shared connection to one statement at a time.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        if str(path) != ":memory:":
            self._path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(str(path), check_same_thread=False)
            _init_schema(self._conn)
        except sqlite3.Error as e:
            raise TopicStoreError(f"Failed to open topic store {path}: {e}") from e
        self._lock = anyio.Lock()

    async def _run(self, func: Callable[[sqlite3.Connection], T]) -> T:
        async with self._lock:
            try:
                return await anyio.to_thread.run_sync(func, self._conn)
            except sqlite3.Error as e:
                logger.error(
                    "store.query_failed",
                    path=str(self._path),
                    error=str(e),
                    error_type=e.__class__.__name__,
                )
                raise TopicStoreError(str(e)) from e

    async def close(self) -> None:
        async with self._lock:
            self._conn.close()

    async def add_topic(
        self,
        chat_id: int,
        name: str,
        thread_id: int | None,
        created_by: int | None = None,
    ) -> bool:
        """Persist a topic unless a case-insensitive match already exists."""

        def _add(conn: sqlite3.Connection) -> bool:
            existing = conn.execute(
                "SELECT 1 FROM topics WHERE chat_id = ? AND name = ? COLLATE NOCASE",
                (chat_id, name),
            ).fetchone()
            if existing is not None:
                return False
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO topics (
                    chat_id, name, message_thread_id, created_by
                ) VALUES (?, ?, ?, ?)
                """,
                (chat_id, name, thread_id, created_by),
            )
            conn.commit()
            return cur.rowcount > 0

        added = await self._run(_add)
        if added:
            logger.info(
                "store.topic.added", chat_id=chat_id, name=name, thread_id=thread_id
            )
        return added

    async def get_topics_by_chat(self, chat_id: int) -> list[Topic]:
        def _list(conn: sqlite3.Connection) -> list[Topic]:
            rows = conn.execute(
                """
                SELECT chat_id, name, message_thread_id, created_by, created_at
                FROM topics WHERE chat_id = ? ORDER BY name
                """,
                (chat_id,),
            ).fetchall()
            return [_topic(row) for row in rows]

        return await self._run(_list)

    async def topic_exists(self, chat_id: int, name: str) -> bool:
        def _exists(conn: sqlite3.Connection) -> bool:
            row = conn.execute(
                "SELECT 1 FROM topics WHERE chat_id = ? AND name = ? COLLATE NOCASE",
                (chat_id, name),
            ).fetchone()
            return row is not None

        return await self._run(_exists)

    async def get_topic_by_thread(self, chat_id: int, thread_id: int) -> Topic | None:
        def _get(conn: sqlite3.Connection) -> Topic | None:
            row = conn.execute(
                """
                SELECT chat_id, name, message_thread_id, created_by, created_at
                FROM topics WHERE chat_id = ? AND message_thread_id = ?
                """,
                (chat_id, thread_id),
            ).fetchone()
            return _topic(row) if row is not None else None

        return await self._run(_get)

    async def upsert_user(
        self,
        user_id: int,
        username: str | None,
        first_name: str | None,
        last_name: str | None,
    ) -> None:
        def _upsert(conn: sqlite3.Connection) -> None:
            conn.execute(
                """
                INSERT INTO users (id, username, first_name, last_name)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    username = excluded.username,
                    first_name = excluded.first_name,
                    last_name = excluded.last_name
                """,
                (user_id, username, first_name, last_name),
            )
            conn.commit()

        await self._run(_upsert)

    async def get_user(self, user_id: int) -> StoredUser | None:
        def _get(conn: sqlite3.Connection) -> StoredUser | None:
            row = conn.execute(
                "SELECT id, username, first_name, last_name, created_at "
                "FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
            if row is None:
                return None
            return StoredUser(*row)

        return await self._run(_get)
