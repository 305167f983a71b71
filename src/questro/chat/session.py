"""Conversation state around streamed chat requests.

A session owns the in-memory message sequence of one conversation. Each
``send`` appends the user's message and an empty assistant placeholder,
grows the placeholder in place as deltas arrive, and hands the finished
exchange to the history store. On any failure the placeholder is removed
so no truncated reply is ever shown or stored.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from ..config import DEFAULT_ATTACHMENT_PROMPT, DEFAULT_CHAT_TITLE, TITLE_MAX_LENGTH
from ..errors import ChatBusyError, ChatNotFoundError
from .client import ChatClient
from .models import Attachment, ChatRequest, Message, Role

if TYPE_CHECKING:
    from ..history.base import ChatHistoryStore

logger = logging.getLogger(__name__)


def derive_title(messages: list[Message], max_length: int = TITLE_MAX_LENGTH) -> str:
    """Title a chat after its first user message.

    Args:
        messages: Conversation messages
        max_length: Characters kept before appending "..."

    Returns:
        Title text, or the default title when there is no user text
    """
    for msg in messages:
        text = " ".join(msg.content.split())
        if msg.role is Role.USER and text:
            return text[:max_length] + "..." if len(text) > max_length else text
    return DEFAULT_CHAT_TITLE


class ChatSession:
    """One conversation with at most one request in flight.

    A second ``send`` while a reply is streaming raises ChatBusyError;
    use ``cancel`` to abandon the current reply first.
    """

    def __init__(
        self,
        client: ChatClient,
        history: "ChatHistoryStore | None" = None,
        user_id: str = "local",
        chat_id: str | None = None,
        messages: list[Message] | None = None,
    ):
        self._client = client
        self._history = history
        self._user_id = user_id
        self._chat_id = chat_id
        self._messages: list[Message] = list(messages or [])
        self._cancel_event: asyncio.Event | None = None

    @classmethod
    async def resume(
        cls,
        client: ChatClient,
        history: "ChatHistoryStore",
        user_id: str,
        chat_id: str,
    ) -> "ChatSession":
        """Continue a stored conversation.

        Raises:
            ChatNotFoundError: If the chat does not exist for the user
        """
        record = await history.get_chat(user_id, chat_id)
        if record is None:
            raise ChatNotFoundError(chat_id)
        return cls(client, history, user_id=user_id, chat_id=record.id, messages=record.messages)

    @property
    def chat_id(self) -> str | None:
        """Id of the persisted record (None until the first exchange completes)."""
        return self._chat_id

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def busy(self) -> bool:
        return self._cancel_event is not None

    def cancel(self) -> bool:
        """Abandon the in-flight reply. Returns False if nothing was streaming."""
        if self._cancel_event is None:
            return False
        self._cancel_event.set()
        return True

    def new_chat(self) -> None:
        """Start an empty conversation."""
        if self.busy:
            raise ChatBusyError("Cannot start a new chat while a reply is streaming")
        self._messages = []
        self._chat_id = None

    async def send(
        self,
        text: str,
        attachment: Attachment | None = None,
        on_delta: Callable[[str], None] | None = None,
    ) -> Message:
        """Send a user message and stream the assistant's reply.

        Args:
            text: User message
            attachment: Optional file sent with the message
            on_delta: Called with the cumulative reply after each delta

        Returns:
            The completed assistant message

        Raises:
            ChatBusyError: A reply is already streaming
            ValueError: Neither text nor attachment was given
            QuestroError: Request or stream failure (placeholder removed)
        """
        if self.busy:
            raise ChatBusyError("A reply is already streaming for this chat")

        content = text.strip()
        if not content and attachment is None:
            raise ValueError("Message must not be empty")

        user_message = Message(
            role=Role.USER,
            content=content or DEFAULT_ATTACHMENT_PROMPT,
            attachment=attachment.name if attachment else None,
        )
        self._messages.append(user_message)
        request = ChatRequest(messages=list(self._messages), attachment=attachment)

        placeholder = Message(role=Role.ASSISTANT, content="")
        self._messages.append(placeholder)
        self._cancel_event = asyncio.Event()

        def apply_delta(assembled: str) -> None:
            placeholder.content = assembled
            if on_delta is not None:
                on_delta(assembled)

        try:
            result = await self._client.stream_chat(
                request,
                apply_delta,
                cancel_event=self._cancel_event,
            )
        except (Exception, asyncio.CancelledError) as e:
            self._discard(placeholder)
            logger.info("Discarded partial reply after failure: %s", e.__class__.__name__)
            raise
        finally:
            self._cancel_event = None

        placeholder.content = result.text
        await self._persist()
        return placeholder

    def _discard(self, placeholder: Message) -> None:
        if self._messages and self._messages[-1] is placeholder:
            self._messages.pop()

    async def _persist(self) -> None:
        """Write the conversation once the exchange has completed."""
        if self._history is None:
            return

        if self._chat_id is None:
            record = await self._history.create_chat(
                self._user_id,
                derive_title(self._messages),
                self._messages,
            )
            self._chat_id = record.id
            logger.debug("Created chat %s", record.id)
        else:
            await self._history.update_chat(self._user_id, self._chat_id, self._messages)
            logger.debug("Updated chat %s", self._chat_id)
