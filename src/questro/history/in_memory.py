"""In-memory chat history backend.

Simple dict-based storage for session-only history.
Data is lost when the application exits.
"""

from ..chat.models import Message
from ..config import DEFAULT_CHAT_TYPE
from ..errors import ChatNotFoundError
from .base import ChatHistoryStore, clean_title
from .models import ChatRecord, sanitize_messages


class InMemoryChatHistory(ChatHistoryStore):
    """In-memory chat history (session-only).

    Suitable for single-session use or testing. Records are returned as
    copies so callers cannot mutate stored state.
    """

    def __init__(self) -> None:
        self._records: dict[str, ChatRecord] = {}

    async def connect(self) -> None:
        """Initialize storage (no-op for in-memory)."""
        pass

    async def disconnect(self) -> None:
        """Close storage (no-op for in-memory)."""
        pass

    def _owned(self, user_id: str, chat_id: str) -> ChatRecord:
        record = self._records.get(chat_id)
        if record is None or record.user_id != user_id:
            raise ChatNotFoundError(chat_id)
        return record

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
        self._records[record.id] = record
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
            r for r in self._records.values()
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
        return record.model_copy(deep=True)

    async def rename_chat(self, user_id: str, chat_id: str, title: str) -> ChatRecord:
        new_title = clean_title(title)
        record = self._owned(user_id, chat_id)
        record.title = new_title
        record.touch()
        return record.model_copy(deep=True)

    async def delete_chat(self, user_id: str, chat_id: str) -> bool:
        try:
            self._owned(user_id, chat_id)
        except ChatNotFoundError:
            return False
        del self._records[chat_id]
        return True

    async def clear(self, user_id: str) -> int:
        doomed = [cid for cid, r in self._records.items() if r.user_id == user_id]
        for chat_id in doomed:
            del self._records[chat_id]
        return len(doomed)

    @property
    def backend_type(self) -> str:
        return "memory"
