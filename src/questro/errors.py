"""Exception hierarchy for chat requests, streaming and history.

Callers catch ``QuestroError`` for anything user-facing. Rate limiting and
quota exhaustion are distinct subclasses so they can be reported with an
actionable message. Malformed frames and undecodable bytes never surface
here; the assembler recovers from them locally.
"""

from .config import GENERIC_FAILURE_MESSAGE, QUOTA_EXCEEDED_MESSAGE, RATE_LIMIT_MESSAGE


class QuestroError(Exception):
    """Base class for all Questro errors."""

    @property
    def user_message(self) -> str:
        """Message suitable for showing to the user."""
        return str(self)


class TransportError(QuestroError):
    """Network failure or a successful response without a body."""


class StreamInterruptedError(TransportError):
    """The response body failed after streaming had started."""


class StreamStalledError(StreamInterruptedError):
    """No chunk arrived within the idle timeout."""

    def __init__(self, idle_timeout: float):
        self.idle_timeout = idle_timeout
        super().__init__(f"Stream stalled: no data received for {idle_timeout:g}s")


class StreamCancelledError(QuestroError):
    """The stream was cancelled by the caller."""


class ChatRequestError(QuestroError):
    """The chat endpoint answered with a non-success status."""

    default_message = GENERIC_FAILURE_MESSAGE

    def __init__(self, status_code: int, message: str | None = None):
        self.status_code = status_code
        self.message = message or self.default_message
        super().__init__(f"Chat request failed ({status_code}): {self.message}")

    @property
    def user_message(self) -> str:
        return self.message


class RateLimitError(ChatRequestError):
    """HTTP 429 from the chat endpoint."""

    default_message = RATE_LIMIT_MESSAGE


class QuotaExceededError(ChatRequestError):
    """HTTP 402 from the chat endpoint."""

    default_message = QUOTA_EXCEEDED_MESSAGE


class ChatBusyError(QuestroError):
    """A request is already in flight for this session."""


class ChatNotFoundError(QuestroError):
    """No chat record with the given id exists for the user."""

    def __init__(self, chat_id: str):
        self.chat_id = chat_id
        super().__init__(f"Chat not found: {chat_id}")
