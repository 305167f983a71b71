"""Main CLI application using Typer."""
import asyncio
import contextlib
import signal
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.table import Table

from ..chat import ChatSession, load_attachment
from ..errors import (
    ChatRequestError,
    QuestroError,
    QuotaExceededError,
    RateLimitError,
    StreamCancelledError,
)
from .providers import LogLevel, configure_logging, get_client, get_history, get_settings

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="questro",
    help="AI study assistant: streamed chat with persistent history",
    no_args_is_help=True,
    add_completion=True,
)
history_app = typer.Typer(help="Manage saved chats", no_args_is_help=True)
app.add_typer(history_app, name="history")

# Console for rich output
console = Console()


@app.callback()
def main_options(
    log_level: LogLevel | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level: debug, info, warning or error (default: QUESTRO_LOG_LEVEL or warning)"
    ),
):
    """Configure logging for every command."""
    configure_logging((log_level.value if log_level else None) or get_settings(console).log_level)


def _report_error(error: QuestroError) -> None:
    """Print a user-facing message for a failed request."""
    if isinstance(error, StreamCancelledError):
        console.print("[dim]Reply cancelled[/dim]")
    elif isinstance(error, RateLimitError):
        console.print(f"[yellow]Rate limited:[/yellow] {error.user_message}")
    elif isinstance(error, QuotaExceededError):
        console.print(f"[yellow]Quota exhausted:[/yellow] {error.user_message}")
    elif isinstance(error, ChatRequestError):
        console.print(f"[red]Error ({error.status_code}): {error.user_message}[/red]")
    else:
        console.print(f"[red]Error: {error.user_message}[/red]")


@contextlib.contextmanager
def _cancel_on_interrupt(session: ChatSession):
    """Route Ctrl-C to ``session.cancel()`` while a reply streams."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, session.cancel)
        installed = True
    except (NotImplementedError, RuntimeError):
        # Loop signal handlers need a Unix loop in the main thread; Ctrl-C keeps its default behaviour
        installed = False
    try:
        yield
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


async def _stream_reply(session: ChatSession, text: str, file: Path | None) -> None:
    """Send one message and render the reply as it streams.

    Ctrl-C abandons the reply; StreamCancelledError is raised to the caller.
    """
    attachment = load_attachment(file) if file else None

    with _cancel_on_interrupt(session), \
            Live(Markdown(""), console=console, refresh_per_second=12, transient=True) as live:
        reply = await session.send(
            text,
            attachment=attachment,
            on_delta=lambda assembled: live.update(Markdown(assembled)),
        )

    console.print(Markdown(reply.content))


@app.command()
def ask(
    text: str = typer.Argument(..., help="Question to ask"),
    file: Path | None = typer.Option(
        None,
        "--file",
        "-f",
        exists=True,
        dir_okay=False,
        help="Image or PDF to send with the question"
    ),
    save: bool = typer.Option(
        True,
        "--save/--no-save",
        help="Store the exchange in chat history"
    ),
):
    """Ask a single question and stream the answer."""
    async def _ask():
        settings = get_settings(console)
        history = get_history(settings, console) if save else None

        async with get_client(settings, console) as client:
            if history is not None:
                await history.connect()
            try:
                session = ChatSession(client, history, user_id=settings.user_id)
                await _stream_reply(session, text, file)
                if session.chat_id:
                    console.print(f"[dim]Saved as {session.chat_id}[/dim]")
            except QuestroError as e:
                _report_error(e)
                raise typer.Exit(code=1)
            finally:
                if history is not None:
                    await history.disconnect()

    asyncio.run(_ask())


@app.command()
def chat(
    resume: str | None = typer.Option(
        None,
        "--resume",
        "-r",
        help="Continue a saved chat by id"
    ),
):
    """Interactive chat mode with streamed replies."""
    async def _chat():
        settings = get_settings(console)
        history = get_history(settings, console)

        async with get_client(settings, console) as client:
            await history.connect()
            try:
                if resume:
                    session = await ChatSession.resume(client, history, settings.user_id, resume)
                    for msg in session.messages:
                        label = "You" if msg.role == "user" else "Questro"
                        console.print(f"[bold]{label}:[/bold] {msg.content}")
                else:
                    session = ChatSession(client, history, user_id=settings.user_id)
            except QuestroError as e:
                _report_error(e)
                await history.disconnect()
                raise typer.Exit(code=1)

            console.print("[bold cyan]Questro Chat[/bold cyan]")
            console.print("[dim]Type 'exit', 'quit', or 'q' to leave; '/new' starts a new chat; "
                          "'/file <path> <message>' attaches a file[/dim]\n")

            try:
                while True:
                    try:
                        user_input = console.input("[bold yellow]You:[/bold yellow] ").strip()
                    except (KeyboardInterrupt, EOFError):
                        console.print("\n[dim]Goodbye![/dim]")
                        break

                    if not user_input:
                        continue

                    if user_input.lower() in ('exit', 'quit', 'q'):
                        console.print("[dim]Goodbye![/dim]")
                        break

                    if user_input == "/new":
                        session.new_chat()
                        console.print("[dim]Started a new chat[/dim]\n")
                        continue

                    file = None
                    if user_input.startswith("/file "):
                        _, path, *rest = user_input.split(" ", 2)
                        file = Path(path)
                        user_input = rest[0] if rest else ""
                        if not file.is_file():
                            console.print(f"[red]Error: file not found: {file}[/red]\n")
                            continue

                    console.print("[bold green]Questro:[/bold green]")
                    try:
                        await _stream_reply(session, user_input, file)
                    except QuestroError as e:
                        _report_error(e)
                    console.print()
            finally:
                await history.disconnect()

    asyncio.run(_chat())


@app.command()
def health():
    """Check configuration and history storage."""
    async def _health():
        settings = get_settings(console)
        all_healthy = True

        if settings.chat_url:
            console.print(f"[green]+[/green] Chat endpoint: {settings.chat_url}")
        else:
            console.print("[red]x[/red] Chat endpoint: NOT SET")
            all_healthy = False

        if settings.api_key:
            console.print("[green]+[/green] API key: SET")
        else:
            console.print("[red]x[/red] API key: NOT SET")
            all_healthy = False

        history = get_history(settings, console)
        try:
            await history.connect()
            console.print(f"[green]+[/green] History storage ({history.backend_type}): OK")
            await history.disconnect()
        except Exception as e:
            console.print(f"[red]x[/red] History storage: FAILED ({e})")
            all_healthy = False

        if not all_healthy:
            raise typer.Exit(code=1)

    asyncio.run(_health())


@history_app.command("list")
def history_list(
    chat_type: str = typer.Option(
        "chat",
        "--type",
        "-t",
        help="Record type to list ('all' for every type)"
    ),
):
    """List saved chats, most recent first."""
    async def _list():
        settings = get_settings(console)
        async with get_history(settings, console) as history:
            records = await history.list_chats(
                settings.user_id,
                None if chat_type == "all" else chat_type,
            )

        if not records:
            console.print("[yellow]No saved chats[/yellow]")
            return

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Id", style="dim")
        table.add_column("Title", style="cyan")
        table.add_column("Type", style="yellow", width=8)
        table.add_column("Messages", justify="right", width=8)
        table.add_column("Updated", style="green")

        for record in records:
            table.add_row(
                record.id,
                record.title,
                record.type,
                str(len(record.messages)),
                record.updated_at.strftime("%Y-%m-%d %H:%M"),
            )

        console.print(table)

    asyncio.run(_list())


@history_app.command("show")
def history_show(chat_id: str = typer.Argument(..., help="Chat id")):
    """Print a saved chat."""
    async def _show():
        settings = get_settings(console)
        async with get_history(settings, console) as history:
            record = await history.get_chat(settings.user_id, chat_id)

        if record is None:
            console.print(f"[red]Error: Chat not found: {chat_id}[/red]")
            raise typer.Exit(code=1)

        console.print(f"[bold cyan]{record.title}[/bold cyan]\n")
        for msg in record.messages:
            label = "You" if msg.role == "user" else "Questro"
            console.print(f"[bold]{label}:[/bold]")
            console.print(Markdown(msg.content))
            console.print()

    asyncio.run(_show())


@history_app.command("rename")
def history_rename(
    chat_id: str = typer.Argument(..., help="Chat id"),
    title: str = typer.Argument(..., help="New title"),
):
    """Rename a saved chat."""
    async def _rename():
        settings = get_settings(console)
        async with get_history(settings, console) as history:
            try:
                record = await history.rename_chat(settings.user_id, chat_id, title)
            except (QuestroError, ValueError) as e:
                console.print(f"[red]Error: {e}[/red]")
                raise typer.Exit(code=1)

        console.print(f"[green]Renamed to:[/green] {record.title}")

    asyncio.run(_rename())


@history_app.command("delete")
def history_delete(chat_id: str = typer.Argument(..., help="Chat id")):
    """Delete a saved chat."""
    async def _delete():
        settings = get_settings(console)
        async with get_history(settings, console) as history:
            deleted = await history.delete_chat(settings.user_id, chat_id)

        if not deleted:
            console.print(f"[red]Error: Chat not found: {chat_id}[/red]")
            raise typer.Exit(code=1)
        console.print("[green]Chat deleted[/green]")

    asyncio.run(_delete())


@history_app.command("clear")
def history_clear(
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip confirmation prompt"
    )
):
    """Delete every saved chat."""
    async def _clear():
        if not yes:
            console.print("[yellow]WARNING: This will delete all saved chats![/yellow]")
            confirm = typer.confirm("Are you sure you want to continue?")
            if not confirm:
                console.print("[dim]Aborted.[/dim]")
                return

        settings = get_settings(console)
        async with get_history(settings, console) as history:
            removed = await history.clear(settings.user_id)

        console.print(f"[green]Success! Deleted {removed} chats.[/green]")

    asyncio.run(_clear())


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
