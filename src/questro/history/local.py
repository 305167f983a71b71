"""Key-value chat history backend.

Keeps every chat in a single JSON document stored under one key of an
injected ``KeyValueStore``. The document is read at connect, rewritten on
every mutation and removed when the last record is cleared, mirroring how
a browser's local storage is used for offline history.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from ..chat.models import Message
from ..config import DEFAULT_CHAT_TYPE, HISTORY_STORAGE_KEY
from ..errors import ChatNotFoundError
from .base import ChatHistoryStore, clean_title
from .models import ChatRecord, sanitize_messages

logger = logging.getLogger(__name__)

_records_adapter = TypeAdapter(list[ChatRecord])


class KeyValueStore(ABC):
    """Minimal string key-value storage."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key if present."""


class DictKeyValueStore(KeyValueStore):
    """Process-local key-value store."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileKeyValueStore(KeyValueStore):
    """One file per key inside a directory."""

    def __init__(self, directory: str | Path):
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory


class LocalChatHistory(ChatHistoryStore):
    """Chat history persisted as one JSON document in a key-value store."""

    def __init__(
        self,
        store: KeyValueStore | None = None,
        path: str | Path | None = None,
        key: str = HISTORY_STORAGE_KEY
    ):
        """Initialize the backend.

        Args:
            store: Key-value store to use (takes precedence over path)
            path: Directory for a FileKeyValueStore
            key: Key holding the history document
        """
        if store is None:
            store = FileKeyValueStore(path) if path is not None else DictKeyValueStore()
        self._store = store
        self._key = key
        self._loaded: list[ChatRecord] | None = None

    @property
    def _records(self) -> list[ChatRecord]:
        if self._loaded is None:
            raise RuntimeError("Local history is not connected; call connect() first")
        return self._loaded

    @_records.setter
    def _records(self, records: list[ChatRecord]) -> None:
        self._loaded = records

    async def connect(self) -> None:
        """Load the history document."""
        self._records = self._load()

    async def disconnect(self) -> None:
        """Drop the in-memory copy; every mutation is already written."""
        self._loaded = None

    def _load(self) -> list[ChatRecord]:
        try:
            raw = self._store.get(self._key)
            if not raw:
                return []
            return _records_adapter.validate_json(raw)
        except (ValidationError, UnicodeDecodeError) as e:
            logger.error("Error parsing chat history, starting empty: %s", e)
            return []

    def _save(self) -> None:
        self._records.sort(key=lambda r: r.updated_at, reverse=True)
        if not self._records:
            self._store.delete(self._key)
            return
        self._store.set(self._key, json.dumps(_records_adapter.dump_python(self._records, mode="json")))

    def _owned(self, user_id: str, chat_id: str) -> ChatRecord:
        for record in self._records:
            if record.id == chat_id and record.user_id == user_id:
                return record
        raise ChatNotFoundError(chat_id)

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
        self._records.insert(0, record)
        self._save()
        return record.model_copy(deep=True)

    async def get_chat(self, user_id: str, chat_id: str) -> ChatRecord | None:
        try:
            return self._owned(user_id, chat_id).model_copy(deep=True)
        except ChatNotFoundError:
            return None

    async def list_chats(
        self,
        user_id: str,
        chat_type: str | None = DEFAULT_CHAT_TYPE
    ) -> list[ChatRecord]:
        records = [
            r for r in self._records
            if r.user_id == user_id and (chat_type is None or r.type == chat_type)
        ]
        records.sort(key=lambda r: r.updated_at, reverse=True)
        return [r.model_copy(deep=True) for r in records]

    async def update_chat(
        self,
        user_id: str,
        chat_id: str,
        messages: list[Message]
    ) -> ChatRecord:
        record = self._owned(user_id, chat_id)
        record.messages = sanitize_messages(messages)
        record.touch()
        self._save()
        return record.model_copy(deep=True)

    async def rename_chat(self, user_id: str, chat_id: str, title: str) -> ChatRecord:
        new_title = clean_title(title)
        record = self._owned(user_id, chat_id)
        record.title = new_title
        record.touch()
        self._save()
        return record.model_copy(deep=True)

    async def delete_chat(self, user_id: str, chat_id: str) -> bool:
        try:
            record = self._owned(user_id, chat_id)
        except ChatNotFoundError:
            return False
        self._records.remove(record)
        self._save()
        return True

    async def clear(self, user_id: str) -> int:
        before = len(self._records)
        self._records = [r for r in self._records if r.user_id != user_id]
        removed = before - len(self._records)
        if removed:
            self._save()
        return removed

    @property
    def backend_type(self) -> str:
        return "local"
