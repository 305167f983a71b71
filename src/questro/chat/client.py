import asyncio
import logging
from typing import Any

import httpx

from ..config import DEFAULT_CONNECT_TIMEOUT, DEFAULT_IDLE_TIMEOUT
from ..errors import (
    ChatRequestError,
    QuotaExceededError,
    RateLimitError,
    TransportError,
)
from ..streaming import AssembledResponse, StreamingResponseAssembler
from ..streaming.assembler import DeltaSink
from .models import ChatRequest

logger = logging.getLogger(__name__)

_STATUS_ERRORS: dict[int, type[ChatRequestError]] = {
    429: RateLimitError,
    402: QuotaExceededError,
}


def _error_message(response: httpx.Response) -> str | None:
    """Extract ``error`` from a JSON error body, if present."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return None


def classify_error(response: httpx.Response) -> ChatRequestError:
    """Map a non-success response to the matching error type."""
    error_cls = _STATUS_ERRORS.get(response.status_code, ChatRequestError)
    return error_cls(response.status_code, _error_message(response))


class ChatClient:
    """Client for the streaming chat endpoint.

    Hidden design decisions:
    - HTTP client setup and bearer authentication
    - Request body wire format
    - Status classification (rate limit, quota, generic failure)
    - Handing the response body to the stream assembler

    Supports async context manager protocol for proper resource cleanup:
        async with ChatClient(url, api_key) as client:
            result = await client.stream_chat(request, on_delta=print)
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        idle_timeout: float | None = DEFAULT_IDLE_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
        **client_kwargs: Any
    ):
        """Initialize the chat client.

        Args:
            endpoint: URL of the chat function
            api_key: Session or service credential sent as a bearer token
            idle_timeout: Seconds of stream inactivity before failing (None disables)
            http_client: Existing httpx client to use (not closed by this client)
            **client_kwargs: Additional kwargs for httpx.AsyncClient
        """
        self._endpoint = endpoint
        self._api_key = api_key
        self._idle_timeout = idle_timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(idle_timeout, connect=DEFAULT_CONNECT_TIMEOUT),
            **client_kwargs
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    async def stream_chat(
        self,
        request: ChatRequest,
        on_delta: DeltaSink | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AssembledResponse:
        """Send a chat request and assemble the streamed reply.

        Args:
            request: Conversation history and optional attachment
            on_delta: Called with the cumulative reply after each delta
            cancel_event: Set to abandon the stream at the next chunk read

        Returns:
            AssembledResponse with the complete reply

        Raises:
            RateLimitError: Endpoint answered 429
            QuotaExceededError: Endpoint answered 402
            ChatRequestError: Any other non-success status
            TransportError: Network failure, missing body or broken stream
            StreamCancelledError: cancel_event was set
        """
        logger.debug(
            "POST %s with %d messages (attachment=%s)",
            self._endpoint, len(request.messages), request.attachment is not None,
        )
        try:
            async with self._client.stream(
                "POST",
                self._endpoint,
                json=request.to_payload(),
                headers=self._headers(),
            ) as response:
                if not response.is_success:
                    await response.aread()
                    error = classify_error(response)
                    logger.warning("Chat endpoint returned %d: %s", response.status_code, error.message)
                    raise error

                if response.status_code == 204:
                    raise TransportError("Chat endpoint returned no response body")

                assembler = StreamingResponseAssembler(
                    on_delta,
                    idle_timeout=self._idle_timeout,
                    cancel_event=cancel_event,
                )
                return await assembler.consume(response.aiter_bytes())
        except httpx.HTTPError as e:
            logger.warning("Chat request to %s failed: %s", self._endpoint, e)
            raise TransportError(f"Chat request failed: {e}") from e

    async def close(self) -> None:
        """Close the underlying HTTP client if this client created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup.

        Note: Suppresses "Event loop is closed" errors during cleanup,
        a known race in httpx/anyio: https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise
