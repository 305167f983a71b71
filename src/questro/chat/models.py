from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Role of a message sender."""

    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A chat message.

    Assistant placeholders start with empty content and grow in place
    while their stream is active.
    """

    role: Role = Field(description="Role of the message sender")
    content: str = Field(default="", description="Content of the message")
    attachment: str | None = Field(
        default=None,
        description="Reference to a rendered preview of an attached file"
    )

    def to_wire(self) -> dict[str, str]:
        """Message as sent to the chat endpoint (no attachment)."""
        return {"role": self.role.value, "content": self.content}


class Attachment(BaseModel):
    """A file sent alongside the last user message."""

    model_config = ConfigDict(frozen=True)

    data_base64: str = Field(description="Base64-encoded file content")
    mime_type: str = Field(description="MIME type of the file")
    name: str | None = Field(default=None, description="Original file name")


class ChatRequest(BaseModel):
    """Body of a chat endpoint call."""

    model_config = ConfigDict(frozen=True)

    messages: list[Message] = Field(description="Conversation history, oldest first")
    attachment: Attachment | None = Field(default=None, description="Optional attached file")

    def to_payload(self) -> dict[str, Any]:
        """JSON body in the endpoint's wire format."""
        payload: dict[str, Any] = {
            "messages": [msg.to_wire() for msg in self.messages],
        }
        if self.attachment is not None:
            payload["fileBase64"] = self.attachment.data_base64
            payload["fileType"] = self.attachment.mime_type
        return payload
