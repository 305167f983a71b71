"""Configuration constants and settings.

Centralizes protocol constants, defaults and the environment-driven
settings used by the client, the history backends and the CLI.
"""

import os

from pydantic import BaseModel, Field

# Event-stream framing
DATA_PREFIX = "data: "
COMMENT_PREFIX = ":"
DONE_SENTINEL = "[DONE]"

# Streaming configuration
DEFAULT_IDLE_TIMEOUT = 30.0  # Seconds without a chunk before a stream counts as stalled
DEFAULT_CONNECT_TIMEOUT = 10.0

# Chat history configuration
HISTORY_STORAGE_KEY = "questro_chat_history"
DEFAULT_CHAT_TYPE = "chat"
TITLE_MAX_LENGTH = 50  # Characters of the first user message used as a chat title
DEFAULT_CHAT_TITLE = "New chat"

# User-facing error messages
RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again in a moment."
QUOTA_EXCEEDED_MESSAGE = "AI service quota exceeded. Please contact support."
GENERIC_FAILURE_MESSAGE = "Failed to get AI response"

# Attachment prompt used when the user sends a file without text
DEFAULT_ATTACHMENT_PROMPT = "Analyze this file and solve any questions or problems shown."


class Settings(BaseModel):
    """Runtime settings for the chat client and history store."""

    chat_url: str | None = Field(default=None, description="Chat endpoint URL")
    api_key: str | None = Field(default=None, description="Bearer credential for the chat endpoint")
    user_id: str = Field(default="local", description="Owner of persisted chat records")
    history_backend: str = Field(default="local", description="History backend: memory, sqlite or local")
    history_path: str | None = Field(default=None, description="Path for sqlite/local history data")
    idle_timeout: float | None = Field(
        default=DEFAULT_IDLE_TIMEOUT,
        gt=0,
        description="Seconds of stream inactivity tolerated (None disables)"
    )
    log_level: str = Field(default="warning", description="Logging level for the CLI")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``QUESTRO_*`` environment variables.

        Environment variables:
            QUESTRO_CHAT_URL: Chat endpoint URL
            QUESTRO_API_KEY: Bearer credential
            QUESTRO_USER_ID: Owning user id (default: local)
            QUESTRO_HISTORY_BACKEND: memory, sqlite or local (default: local)
            QUESTRO_HISTORY_PATH: Database file or directory for history
            QUESTRO_IDLE_TIMEOUT: Stream idle timeout in seconds, 0 disables (default: 30)
            QUESTRO_LOG_LEVEL: debug, info, warning or error (default: warning)

        Raises:
            ValueError: If a variable holds an invalid value
        """
        idle_raw = os.getenv("QUESTRO_IDLE_TIMEOUT")
        idle_timeout: float | None = DEFAULT_IDLE_TIMEOUT
        if idle_raw is not None:
            try:
                idle_timeout = float(idle_raw) or None
            except ValueError:
                raise ValueError(f"QUESTRO_IDLE_TIMEOUT must be a number of seconds, got {idle_raw!r}") from None

        return cls(
            chat_url=os.getenv("QUESTRO_CHAT_URL"),
            api_key=os.getenv("QUESTRO_API_KEY"),
            user_id=os.getenv("QUESTRO_USER_ID", "local"),
            history_backend=os.getenv("QUESTRO_HISTORY_BACKEND", "local").lower(),
            history_path=os.getenv("QUESTRO_HISTORY_PATH"),
            idle_timeout=idle_timeout,
            log_level=os.getenv("QUESTRO_LOG_LEVEL", "warning").lower(),
        )
