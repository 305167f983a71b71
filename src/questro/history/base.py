"""Abstract base class for chat history backends.

This module defines the interface for chat history storage.
The abstraction hides:
- Storage format (JSON document, SQLite rows, etc.)
- Persistence mechanism (file, database, in-memory)
- Connection management

Every operation is scoped to an owning user id; records of other users
are invisible.
"""

from abc import ABC, abstractmethod

from ..chat.models import Message
from ..config import DEFAULT_CHAT_TYPE
from .models import ChatRecord


class ChatHistoryStore(ABC):
    """Abstract chat history backend."""

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the backend."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the backend gracefully."""

    @abstractmethod
    async def create_chat(
        self,
        user_id: str,
        title: str,
        messages: list[Message],
        chat_type: str = DEFAULT_CHAT_TYPE
    ) -> ChatRecord:
        """Create a record. Attachments are stripped before storage."""

    @abstractmethod
    async def get_chat(self, user_id: str, chat_id: str) -> ChatRecord | None:
        """Fetch one record, or None if it does not exist for the user."""

    @abstractmethod
    async def list_chats(
        self,
        user_id: str,
        chat_type: str | None = DEFAULT_CHAT_TYPE
    ) -> list[ChatRecord]:
        """List records, most recently updated first.

        Args:
            user_id: Owning user
            chat_type: Type tag to filter on (None lists every type)
        """

    @abstractmethod
    async def update_chat(
        self,
        user_id: str,
        chat_id: str,
        messages: list[Message]
    ) -> ChatRecord:
        """Replace a record's messages and bump ``updated_at``.

        Raises:
            ChatNotFoundError: If the record does not exist for the user
        """

    @abstractmethod
    async def rename_chat(self, user_id: str, chat_id: str, title: str) -> ChatRecord:
        """Change a record's title.

        Raises:
            ValueError: If the title is blank
            ChatNotFoundError: If the record does not exist for the user
        """

    @abstractmethod
    async def delete_chat(self, user_id: str, chat_id: str) -> bool:
        """Delete a record. Returns False if nothing was deleted."""

    @abstractmethod
    async def clear(self, user_id: str) -> int:
        """Delete all of a user's records. Returns the number removed."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""

    async def __aenter__(self) -> "ChatHistoryStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()


def clean_title(title: str) -> str:
    """Strip a title, rejecting blank ones."""
    cleaned = title.strip()
    if not cleaned:
        raise ValueError("Chat title must not be blank")
    return cleaned
