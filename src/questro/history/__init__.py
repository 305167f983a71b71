"""Chat history module for questro.

Provides per-user persistent storage of finished conversations.
"""

from .base import ChatHistoryStore
from .factory import create_chat_history
from .local import DictKeyValueStore, FileKeyValueStore, KeyValueStore
from .models import ChatRecord

__all__ = [
    "ChatHistoryStore",
    "ChatRecord",
    "DictKeyValueStore",
    "FileKeyValueStore",
    "KeyValueStore",
    "create_chat_history",
]
