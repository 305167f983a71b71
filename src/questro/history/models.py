"""Data models for chat history.

These models define the structure of persisted chats, independent of
the storage backend used.
"""

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field

from ..chat.models import Message
from ..config import DEFAULT_CHAT_TYPE


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sanitize_messages(messages: list[Message]) -> list[Message]:
    """Copy messages without attachment data.

    Attachments hold rendered previews (often base64 data), which are
    never stored.
    """
    return [Message(role=msg.role, content=msg.content) for msg in messages]


class ChatRecord(BaseModel):
    """A persisted conversation owned by one user."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str = Field(description="Owning user id")
    title: str = Field(description="Display title")
    type: str = Field(default=DEFAULT_CHAT_TYPE, description="Record type tag")
    messages: list[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def touch(self) -> None:
        self.updated_at = utcnow()
