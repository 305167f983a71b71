"""SQLite chat history backend.

Provides persistent chat storage using a SQLite database.
Uses aiosqlite for async access.
"""

import json
import logging
from datetime import datetime
from pathlib import Path

import aiosqlite

from ..chat.models import Message
from ..config import DEFAULT_CHAT_TYPE
from ..errors import ChatNotFoundError
from .base import ChatHistoryStore, clean_title
from .models import ChatRecord, sanitize_messages, utcnow

logger = logging.getLogger(__name__)

_COLUMNS = "id, user_id, title, type, messages, created_at, updated_at"


def _row_to_record(row: tuple) -> ChatRecord:
    chat_id, user_id, title, chat_type, messages_json, created_at, updated_at = row
    return ChatRecord(
        id=chat_id,
        user_id=user_id,
        title=title,
        type=chat_type,
        messages=[Message.model_validate(m) for m in json.loads(messages_json)],
        created_at=datetime.fromisoformat(created_at),
        updated_at=datetime.fromisoformat(updated_at),
    )


def _dump_messages(messages: list[Message]) -> str:
    return json.dumps([m.model_dump(mode="json", exclude_none=True) for m in messages])


class SQLiteChatHistory(ChatHistoryStore):
    """SQLite-backed chat history.

    Stores one row per chat with its messages as a JSON array.
    Supports persistent storage across sessions.
    """

    def __init__(self, path: str | Path = "./questro_history.db"):
        self._db_path = Path(path)
        self._connection: aiosqlite.Connection | None = None

    @property
    def _conn(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("SQLite history is not connected; call connect() first")
        return self._connection

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self._db_path)
        await self._create_schema()
        logger.debug("Opened chat history database at %s", self._db_path)

    async def _create_schema(self) -> None:
        """Create database tables."""
        await self._conn.execute("""
            CREATE TABLE IF NOT EXISTS chat_history (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                title TEXT NOT NULL,
                type TEXT NOT NULL DEFAULT 'chat',
                messages TEXT NOT NULL DEFAULT '[]',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        await self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_chat_history_user
            ON chat_history(user_id, type, updated_at)
        """)

        await self._conn.commit()

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def create_chat(
        self,
        user_id: str,
        title: str,
        messages: list[Message],
        chat_type: str = DEFAULT_CHAT_TYPE
    ) -> ChatRecord:
        record = ChatRecord(
            user_id=user_id,
            title=clean_title(title),
            type=chat_type,
            messages=sanitize_messages(messages),
        )

        await self._conn.execute(f"""
            INSERT INTO chat_history ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            record.id,
            record.user_id,
            record.title,
            record.type,
            _dump_messages(record.messages),
            record.created_at.isoformat(timespec="microseconds"),
            record.updated_at.isoformat(timespec="microseconds"),
        ))
        await self._conn.commit()
        return record

    async def get_chat(self, user_id: str, chat_id: str) -> ChatRecord | None:
        async with self._conn.execute(
            f"SELECT {_COLUMNS} FROM chat_history WHERE id = ? AND user_id = ?",
            (chat_id, user_id)
        ) as cursor:
            row = await cursor.fetchone()

        return _row_to_record(row) if row else None

    async def list_chats(
        self,
        user_id: str,
        chat_type: str | None = DEFAULT_CHAT_TYPE
    ) -> list[ChatRecord]:
        query = f"SELECT {_COLUMNS} FROM chat_history WHERE user_id = ?"
        params: tuple = (user_id,)
        if chat_type is not None:
            query += " AND type = ?"
            params += (chat_type,)
        query += " ORDER BY updated_at DESC"

        async with self._conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()

        return [_row_to_record(row) for row in rows]

    async def _require(self, user_id: str, chat_id: str) -> ChatRecord:
        record = await self.get_chat(user_id, chat_id)
        if record is None:
            raise ChatNotFoundError(chat_id)
        return record

    async def update_chat(
        self,
        user_id: str,
        chat_id: str,
        messages: list[Message]
    ) -> ChatRecord:
        record = await self._require(user_id, chat_id)
        record.messages = sanitize_messages(messages)
        record.updated_at = utcnow()

        await self._conn.execute(
            "UPDATE chat_history SET messages = ?, updated_at = ? WHERE id = ? AND user_id = ?",
            (_dump_messages(record.messages), record.updated_at.isoformat(timespec="microseconds"), chat_id, user_id)
        )
        await self._conn.commit()
        return record

    async def rename_chat(self, user_id: str, chat_id: str, title: str) -> ChatRecord:
        new_title = clean_title(title)
        record = await self._require(user_id, chat_id)
        record.title = new_title
        record.updated_at = utcnow()

        await self._conn.execute(
            "UPDATE chat_history SET title = ?, updated_at = ? WHERE id = ? AND user_id = ?",
            (record.title, record.updated_at.isoformat(timespec="microseconds"), chat_id, user_id)
        )
        await self._conn.commit()
        return record

    async def delete_chat(self, user_id: str, chat_id: str) -> bool:
        cursor = await self._conn.execute(
            "DELETE FROM chat_history WHERE id = ? AND user_id = ?",
            (chat_id, user_id)
        )
        await self._conn.commit()
        return cursor.rowcount > 0

    async def clear(self, user_id: str) -> int:
        cursor = await self._conn.execute(
            "DELETE FROM chat_history WHERE user_id = ?",
            (user_id,)
        )
        await self._conn.commit()
        return cursor.rowcount

    @property
    def backend_type(self) -> str:
        return "sqlite"

    @property
    def db_path(self) -> Path:
        return self._db_path
