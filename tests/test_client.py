"""Unit tests for the chat client."""
import json

import httpx
import pytest

from conftest import CHAT_URL, sse_body
from questro.chat import Attachment, ChatClient, ChatRequest, Message, Role, classify_error
from questro.errors import (
    ChatRequestError,
    QuotaExceededError,
    RateLimitError,
    StreamInterruptedError,
    TransportError,
)


def hello_request() -> ChatRequest:
    return ChatRequest(messages=[Message(role=Role.USER, content="Say hello")])


class TestChatRequest:
    """Tests for the request wire format."""

    def test_payload_without_attachment(self):
        request = ChatRequest(messages=[
            Message(role=Role.USER, content="Hi", attachment="preview.png"),
            Message(role=Role.ASSISTANT, content="Hello!"),
        ])

        assert request.to_payload() == {
            "messages": [
                {"role": "user", "content": "Hi"},
                {"role": "assistant", "content": "Hello!"},
            ]
        }

    def test_payload_with_attachment(self):
        request = ChatRequest(
            messages=[Message(role=Role.USER, content="Solve this")],
            attachment=Attachment(data_base64="aGk=", mime_type="image/png", name="q.png"),
        )
        payload = request.to_payload()

        assert payload["fileBase64"] == "aGk="
        assert payload["fileType"] == "image/png"


class TestClassifyError:
    """Tests for status classification."""

    def test_rate_limit_uses_body_message(self):
        response = httpx.Response(429, json={"error": "Slow down"})
        error = classify_error(response)

        assert isinstance(error, RateLimitError)
        assert error.status_code == 429
        assert error.user_message == "Slow down"

    def test_quota_without_body_uses_default_message(self):
        error = classify_error(httpx.Response(402, content=b""))

        assert isinstance(error, QuotaExceededError)
        assert "quota" in error.user_message.lower()

    def test_other_status_is_generic(self):
        error = classify_error(httpx.Response(500, text="<html>oops</html>"))

        assert type(error) is ChatRequestError
        assert error.status_code == 500
        assert error.user_message == "Failed to get AI response"

    def test_non_string_error_field_is_ignored(self):
        error = classify_error(httpx.Response(400, json={"error": {"code": 1}}))
        assert error.user_message == "Failed to get AI response"


class TestChatClient:
    """Tests for ChatClient against a mock transport."""

    @pytest.mark.asyncio
    async def test_request_shape(self, make_client, hello_body: bytes):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["content_type"] = request.headers["Content-Type"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=hello_body)

        client = make_client(handler)
        await client.stream_chat(hello_request())

        assert seen["method"] == "POST"
        assert seen["url"] == CHAT_URL
        assert seen["auth"] == "Bearer test-token"
        assert seen["content_type"] == "application/json"
        assert seen["body"] == {"messages": [{"role": "user", "content": "Say hello"}]}

    @pytest.mark.asyncio
    async def test_streams_deltas_to_sink(self, make_client, hello_body: bytes):
        client = make_client(lambda request: httpx.Response(200, content=hello_body))
        calls: list[str] = []

        result = await client.stream_chat(hello_request(), calls.append)

        assert calls == ["Hel", "Hello"]
        assert result.text == "Hello"
        assert result.finished_by_sentinel

    @pytest.mark.asyncio
    async def test_chunked_body(self, make_client):
        body = sse_body("Grüße", " aus ", "Köln")

        async def chunks():
            for i in range(0, len(body), 3):
                yield body[i:i + 3]

        client = make_client(lambda request: httpx.Response(200, content=chunks()))
        result = await client.stream_chat(hello_request())

        assert result.text == "Grüße aus Köln"

    @pytest.mark.asyncio
    async def test_rate_limited_response_never_reaches_assembler(self, make_client):
        client = make_client(
            lambda request: httpx.Response(429, json={"error": "Rate limit exceeded. Please try again in a moment."})
        )
        calls: list[str] = []

        with pytest.raises(RateLimitError) as exc_info:
            await client.stream_chat(hello_request(), calls.append)

        assert calls == []
        assert "Rate limit" in exc_info.value.user_message

    @pytest.mark.asyncio
    async def test_quota_exhausted(self, make_client):
        client = make_client(lambda request: httpx.Response(402, json={"error": "AI service quota exceeded."}))

        with pytest.raises(QuotaExceededError):
            await client.stream_chat(hello_request())

    @pytest.mark.asyncio
    async def test_server_error(self, make_client):
        client = make_client(lambda request: httpx.Response(500, json={"error": "AI service not configured"}))

        with pytest.raises(ChatRequestError) as exc_info:
            await client.stream_chat(hello_request())

        assert exc_info.value.status_code == 500
        assert exc_info.value.user_message == "AI service not configured"

    @pytest.mark.asyncio
    async def test_no_content_response_is_transport_error(self, make_client):
        client = make_client(lambda request: httpx.Response(204))

        with pytest.raises(TransportError):
            await client.stream_chat(hello_request())

    @pytest.mark.asyncio
    async def test_connection_failure_is_transport_error(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(TransportError) as exc_info:
            await client.stream_chat(hello_request())

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_broken_stream_is_interrupted(self, make_client):
        async def chunks():
            yield sse_body("par", done=False)
            raise httpx.ReadError("reset by peer")

        client = make_client(lambda request: httpx.Response(200, content=chunks()))
        calls: list[str] = []

        with pytest.raises(StreamInterruptedError):
            await client.stream_chat(hello_request(), calls.append)

        assert calls == ["par"]

    @pytest.mark.asyncio
    async def test_close_leaves_external_client_open(self):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        try:
            async with ChatClient(CHAT_URL, "token", http_client=http_client):
                pass
            assert not http_client.is_closed
        finally:
            await http_client.aclose()

    @pytest.mark.asyncio
    async def test_close_owned_client(self):
        client = ChatClient(CHAT_URL, "token")
        await client.close()
        assert client._client.is_closed
