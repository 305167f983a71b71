"""Pytest configuration and shared fixtures."""
import json

import httpx
import pytest

from questro.chat import ChatClient

CHAT_URL = "https://questro.test/functions/v1/chat"


def data_frame(content: str) -> str:
    """One event-stream line carrying a text delta."""
    payload = {"choices": [{"delta": {"content": content}}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n"


def sse_body(*contents: str, done: bool = True) -> bytes:
    """Encode deltas (and optionally the sentinel) as a response body."""
    body = "".join(data_frame(c) for c in contents)
    if done:
        body += "data: [DONE]\n"
    return body.encode("utf-8")


async def iterate(chunks):
    """Async iterator over a fixed sequence of chunks."""
    for chunk in chunks:
        yield chunk


@pytest.fixture
def hello_body():
    """Body streaming "Hel" + "lo" and the sentinel."""
    return sse_body("Hel", "lo")


@pytest.fixture
async def make_client():
    """Build a ChatClient whose HTTP traffic goes to a handler function."""
    http_clients = []

    def _make(handler, **kwargs) -> ChatClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        http_clients.append(http_client)
        return ChatClient(CHAT_URL, "test-token", http_client=http_client, **kwargs)

    yield _make

    for http_client in http_clients:
        await http_client.aclose()
