"""Tests for the command-line interface."""
import asyncio
import os
import re
import signal
import sys

import httpx
import pytest
from typer.testing import CliRunner

from conftest import CHAT_URL, sse_body
from questro.chat import ChatClient, ChatSession
from questro.cli import app as cli_app
from questro.cli.app import app
from questro.config import Settings
from questro.errors import StreamCancelledError

runner = CliRunner()


@pytest.fixture(autouse=True)
def questro_env(monkeypatch, tmp_path):
    """Point the CLI at a temporary local history."""
    monkeypatch.setenv("QUESTRO_HISTORY_BACKEND", "local")
    monkeypatch.setenv("QUESTRO_HISTORY_PATH", str(tmp_path / "history"))
    monkeypatch.setenv("QUESTRO_USER_ID", "student")
    monkeypatch.delenv("QUESTRO_CHAT_URL", raising=False)
    monkeypatch.delenv("QUESTRO_API_KEY", raising=False)
    monkeypatch.delenv("QUESTRO_IDLE_TIMEOUT", raising=False)


@pytest.fixture
def mock_endpoint(monkeypatch):
    """Replace the chat client with one backed by a handler."""
    def install(handler):
        def get_client(settings, console=None):
            http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
            return ChatClient(CHAT_URL, "token", http_client=http_client)

        monkeypatch.setattr(cli_app, "get_client", get_client)

    return install


class TestHistoryCommands:
    """Tests for the history sub-commands."""

    def test_list_empty(self):
        result = runner.invoke(app, ["history", "list"])
        assert result.exit_code == 0
        assert "No saved chats" in result.output

    def test_show_unknown(self):
        result = runner.invoke(app, ["history", "show", "missing"])
        assert result.exit_code == 1
        assert "Chat not found" in result.output

    def test_delete_unknown(self):
        result = runner.invoke(app, ["history", "delete", "missing"])
        assert result.exit_code == 1

    def test_clear_with_confirmation_declined(self):
        result = runner.invoke(app, ["history", "clear"], input="n\n")
        assert "Aborted" in result.output


class TestAskCommand:
    """Tests for the ask command."""

    def test_ask_streams_and_saves(self, mock_endpoint):
        mock_endpoint(lambda request: httpx.Response(200, content=sse_body("Hel", "lo")))

        result = runner.invoke(app, ["ask", "Say hello"])

        assert result.exit_code == 0, result.output
        assert "Hello" in result.output
        assert "Saved as" in result.output

        chat_id = re.search(r"Saved as ([0-9a-f-]{36})", result.output).group(1)
        shown = runner.invoke(app, ["history", "show", chat_id])
        assert shown.exit_code == 0, shown.output
        assert "Say hello" in shown.output
        assert "Hello" in shown.output

        renamed = runner.invoke(app, ["history", "rename", chat_id, "Greetings"])
        assert "Greetings" in renamed.output

        deleted = runner.invoke(app, ["history", "delete", chat_id])
        assert deleted.exit_code == 0
        assert "No saved chats" in runner.invoke(app, ["history", "list"]).output

    def test_ask_without_saving(self, mock_endpoint):
        mock_endpoint(lambda request: httpx.Response(200, content=sse_body("ok")))

        result = runner.invoke(app, ["ask", "quick", "--no-save"])

        assert result.exit_code == 0, result.output
        assert "Saved as" not in result.output
        assert "No saved chats" in runner.invoke(app, ["history", "list"]).output

    def test_ask_rate_limited(self, mock_endpoint):
        mock_endpoint(lambda request: httpx.Response(429, json={"error": "Rate limit exceeded."}))

        result = runner.invoke(app, ["ask", "hi"])

        assert result.exit_code == 1
        assert "Rate limited" in result.output
        assert "No saved chats" in runner.invoke(app, ["history", "list"]).output

    def test_ask_requires_endpoint(self):
        result = runner.invoke(app, ["ask", "hi"])
        assert result.exit_code == 1
        assert "QUESTRO_CHAT_URL" in result.output


class TestHealthCommand:
    """Tests for the health command."""

    def test_missing_configuration_fails(self):
        result = runner.invoke(app, ["health"])
        assert result.exit_code == 1
        assert "NOT SET" in result.output

    def test_configured(self, monkeypatch):
        monkeypatch.setenv("QUESTRO_CHAT_URL", CHAT_URL)
        monkeypatch.setenv("QUESTRO_API_KEY", "token")

        result = runner.invoke(app, ["health"])

        assert result.exit_code == 0, result.output
        assert "History storage (local): OK" in result.output


class TestConfigurationErrors:
    """Invalid settings end commands with a message, not a traceback."""

    def test_non_numeric_idle_timeout(self, monkeypatch):
        monkeypatch.setenv("QUESTRO_IDLE_TIMEOUT", "soon")

        with pytest.raises(ValueError, match="QUESTRO_IDLE_TIMEOUT"):
            Settings.from_env()

        result = runner.invoke(app, ["history", "list"])
        assert result.exit_code == 1
        assert "QUESTRO_IDLE_TIMEOUT" in result.output
        assert not isinstance(result.exception, ValueError)

    def test_negative_idle_timeout(self, monkeypatch):
        monkeypatch.setenv("QUESTRO_IDLE_TIMEOUT", "-5")

        result = runner.invoke(app, ["health"])

        assert result.exit_code == 1
        assert "invalid configuration" in result.output
        assert not isinstance(result.exception, ValueError)

    def test_zero_idle_timeout_disables(self, monkeypatch):
        monkeypatch.setenv("QUESTRO_IDLE_TIMEOUT", "0")
        assert Settings.from_env().idle_timeout is None


class TestInterruptHandling:
    """Ctrl-C while a reply streams cancels the reply, not the program."""

    @pytest.mark.skipif(sys.platform == "win32", reason="needs Unix event loop signal handlers")
    @pytest.mark.asyncio
    async def test_interrupt_cancels_streaming_reply(self, make_client):
        never = asyncio.Event()

        async def chunks():
            yield sse_body("half", done=False)
            os.kill(os.getpid(), signal.SIGINT)
            await never.wait()
            yield b""

        client = make_client(lambda request: httpx.Response(200, content=chunks()), idle_timeout=None)
        session = ChatSession(client)

        with pytest.raises(StreamCancelledError):
            await cli_app._stream_reply(session, "question", None)

        assert [m.content for m in session.messages] == ["question"]
        assert not session.busy

    def test_cancelled_reply_is_reported(self, capsys):
        cli_app._report_error(StreamCancelledError("Stream cancelled"))
        assert "Reply cancelled" in capsys.readouterr().out
