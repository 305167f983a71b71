"""
Questro: an AI study assistant client with streamed chat and chat history.

This package follows Parnas's information hiding principles,
where each module hides a specific design decision.
"""

__version__ = "0.1.0"

from .chat import Attachment, ChatClient, ChatRequest, ChatSession, Message, Role
from .errors import (
    ChatBusyError,
    ChatNotFoundError,
    ChatRequestError,
    QuestroError,
    QuotaExceededError,
    RateLimitError,
    StreamCancelledError,
    StreamInterruptedError,
    StreamStalledError,
    TransportError,
)
from .history import ChatHistoryStore, ChatRecord, create_chat_history
from .streaming import AssembledResponse, StreamingResponseAssembler, StreamState

__all__ = [
    "AssembledResponse",
    "Attachment",
    "ChatBusyError",
    "ChatClient",
    "ChatHistoryStore",
    "ChatNotFoundError",
    "ChatRecord",
    "ChatRequest",
    "ChatRequestError",
    "ChatSession",
    "Message",
    "QuestroError",
    "QuotaExceededError",
    "RateLimitError",
    "Role",
    "StreamCancelledError",
    "StreamInterruptedError",
    "StreamStalledError",
    "StreamState",
    "StreamingResponseAssembler",
    "TransportError",
    "create_chat_history",
]
