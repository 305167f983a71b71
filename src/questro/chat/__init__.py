from .attachments import load_attachment
from .client import ChatClient, classify_error
from .models import Attachment, ChatRequest, Message, Role
from .session import ChatSession, derive_title

__all__ = [
    "Attachment",
    "ChatClient",
    "ChatRequest",
    "ChatSession",
    "Message",
    "Role",
    "classify_error",
    "derive_title",
    "load_attachment",
]
