"""Factory for creating chat history backends."""

from typing import Any

from .base import ChatHistoryStore


def create_chat_history(
    backend: str = "memory",
    **kwargs: Any
) -> ChatHistoryStore:
    """Create a chat history backend.

    Args:
        backend: Backend type ("memory", "sqlite" or "local")
        **kwargs: Backend-specific configuration
            For sqlite:
                - path: str | Path (default: './questro_history.db')
            For local:
                - store: KeyValueStore | None
                - path: str | Path | None (directory for file storage)
                - key: str (default: 'questro_chat_history')

    Returns:
        ChatHistoryStore instance

    Raises:
        ValueError: If backend type is not supported
    """
    if backend == "memory":
        from .in_memory import InMemoryChatHistory
        return InMemoryChatHistory(**kwargs)

    elif backend == "sqlite":
        from .sqlite import SQLiteChatHistory
        return SQLiteChatHistory(**kwargs)

    elif backend == "local":
        from .local import LocalChatHistory
        return LocalChatHistory(**kwargs)

    raise ValueError(
        f"Unsupported history backend: {backend}. "
        f"Supported backends: memory, sqlite, local"
    )
