"""Provider factory functions for CLI.

Centralizes creation of settings, the chat client and the history store
from environment variables. Hides configuration details from command
implementations.
"""

import logging
from enum import Enum
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from ..chat import ChatClient
from ..config import Settings
from ..history import ChatHistoryStore, create_chat_history

# Default console for output
_console = Console()

DEFAULT_DATA_DIR = Path.home() / ".questro"


class LogLevel(str, Enum):
    """Log levels accepted by --log-level."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def configure_logging(level: str) -> None:
    """Send package logs to stderr through Rich at the given level."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # Keep transport chatter out of debug output unless asked for explicitly
    logging.getLogger("httpx").setLevel(max(logging.getLogger().level, logging.WARNING))
    logging.getLogger("httpcore").setLevel(max(logging.getLogger().level, logging.WARNING))


def get_settings(console: Console | None = None) -> Settings:
    """Load settings from environment variables.

    Raises:
        SystemExit: If a variable holds an invalid value
    """
    try:
        return Settings.from_env()
    except ValueError as e:
        (console or _console).print(f"[red]Error: invalid configuration: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)


def get_client(settings: Settings, console: Console | None = None) -> ChatClient:
    """Create the chat client.

    Args:
        settings: Loaded settings
        console: Optional Rich console for output

    Returns:
        ChatClient instance

    Raises:
        SystemExit: If QUESTRO_CHAT_URL or QUESTRO_API_KEY is not set
    """
    con = console or _console
    if not settings.chat_url:
        con.print("[red]Error: QUESTRO_CHAT_URL not set in environment[/red]")
        raise typer.Exit(code=1)
    if not settings.api_key:
        con.print("[red]Error: QUESTRO_API_KEY not set in environment[/red]")
        raise typer.Exit(code=1)

    return ChatClient(settings.chat_url, settings.api_key, idle_timeout=settings.idle_timeout)


def get_history(settings: Settings, console: Console | None = None) -> ChatHistoryStore:
    """Create the chat history backend.

    Environment variables:
        QUESTRO_HISTORY_BACKEND: memory, sqlite or local (default: local)
        QUESTRO_HISTORY_PATH: sqlite database file or local storage directory
            (default: ~/.questro/history.db or ~/.questro)
    """
    con = console or _console
    backend = settings.history_backend

    if backend == "memory":
        return create_chat_history("memory")

    if backend == "sqlite":
        path = settings.history_path or DEFAULT_DATA_DIR / "history.db"
        return create_chat_history("sqlite", path=path)

    if backend == "local":
        path = settings.history_path or DEFAULT_DATA_DIR
        return create_chat_history("local", path=path)

    con.print(f"[red]Error: Unknown history backend: {backend}[/red]")
    raise typer.Exit(code=1)
