"""Command line front end using Typer."""
import asyncio
import signal
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.table import Table

from .chat import ChatController, ChatStore, Message
from .config import get_config, get_config_dir
from .ollama import ChatOptions, OllamaClient, OllamaError

app = typer.Typer(
    name="studio",
    help="Local chat client and streaming relay for Ollama",
    no_args_is_help=True,
)

console = Console()

_HELP = (
    "[dim]/new  start a new chat    /history  list chats    /open <id>  switch chat\n"
    "/delete <id>  delete a chat    /models  list models    /model <name>  switch model\n"
    "/quit  leave    Ctrl-C while a reply streams stops it[/dim]"
)


def _client() -> OllamaClient:
    config = get_config().ollama
    return OllamaClient(config.base_url, config.timeout)


def _format_size(size: Optional[int]) -> str:
    if not size:
        return "-"
    return f"{size / 1e9:.1f} GB"


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Listen port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
):
    """Run the relay server and chat viewer."""
    import uvicorn

    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

    server = get_config().server
    host = host or server.host
    port = port or server.port
    console.print(f"[bold cyan]Qwen Studio[/bold cyan]  http://{host}:{port}")
    console.print("[dim]Ollama: ollama serve    Models: ollama list[/dim]")
    uvicorn.run("studio.main:app", host=host, port=port, reload=reload)


@app.command()
def models():
    """List the models installed on the inference server."""
    async def _models():
        async with _client() as client:
            try:
                found = await client.list_models()
            except OllamaError as e:
                console.print(f"[red]Cannot fetch models from Ollama: {e}[/red]")
                raise typer.Exit(code=1)

        table = Table(title="Installed models")
        table.add_column("Name", style="cyan")
        table.add_column("Size", justify="right")
        table.add_column("Modified", style="dim")
        for m in found:
            table.add_row(m.name, _format_size(m.size), m.modified or "-")
        console.print(table)

    asyncio.run(_models())


@app.command()
def health():
    """Check that the inference server is reachable."""
    async def _health():
        async with _client() as client:
            online = await client.ping()
            if not online:
                console.print(f"[red]Offline[/red]  ({client.base_url})")
                raise typer.Exit(code=1)
            try:
                count = len(await client.list_models())
            except OllamaError:
                count = 0
            console.print(f"[green]Online[/green] • {count} models  ({client.base_url})")

    asyncio.run(_health())


async def _stream_reply(controller: ChatController, reply: Message) -> None:
    """Render the streaming reply until the controller reports it done."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, controller.stop)
        handles_sigint = True
    except (NotImplementedError, RuntimeError):
        handles_sigint = False

    try:
        with Live(Markdown(""), console=console, refresh_per_second=20) as live:
            while True:
                event = await controller.events.get()
                if event.message_id != reply.id:
                    continue
                if event.kind == "done":
                    break
                live.update(Markdown(reply.content))
            live.update(Markdown(reply.content) if not reply.is_error else "")
    finally:
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)

    if reply.is_error:
        console.print(Markdown(reply.content), style="red")
    elif reply.status == "stopped":
        console.print("[yellow]⏹️ Generation stopped[/yellow]")
    if reply.stats:
        s = reply.stats
        console.print(f"[dim]{s.model} · {s.duration}s · {s.tokens} tokens · {s.speed} tok/s[/dim]")
    console.print()


def _print_history(controller: ChatController) -> None:
    history = controller.load_history()
    if not history:
        console.print("[dim]No chats yet[/dim]")
        return
    for chat_id, title in history.items():
        marker = "*" if chat_id == controller.context.chat_id else " "
        console.print(f"{marker} [cyan]{chat_id}[/cyan]  {title}")


def _print_transcript(controller: ChatController) -> None:
    for m in controller.context.messages:
        if m.role == "user":
            console.print(f"[bold yellow]You:[/bold yellow] {m.content}")
        else:
            console.print(Markdown(m.content))
            console.print()


@app.command()
def chat(
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model to chat with"),
    resume: Optional[int] = typer.Option(None, "--resume", "-r", help="Chat id to continue"),
):
    """Interactive chat with a local model."""
    async def _chat():
        config = get_config()
        store = ChatStore(get_config_dir() / "chats", title_length=config.chat.title_length)
        async with _client() as client:
            controller = ChatController(
                client,
                store,
                options=ChatOptions(
                    temperature=config.ollama.temperature,
                    num_predict=config.ollama.num_predict,
                ),
                fallback_models=config.ollama.fallback_models,
            )
            controller.set_model(model or config.ollama.default_model)
            controller.load_history()
            await controller.refresh_models()
            if model:
                controller.set_model(model)
            if resume is not None and not controller.switch_chat(resume):
                console.print(f"[yellow]Chat {resume} not found, starting a new one[/yellow]")

            online = await controller.check_status()
            status = "[green]Online[/green]" if online else "[red]Offline[/red]"
            console.print("[bold cyan]Qwen Studio[/bold cyan]")
            console.print(f"{status} • model [bold]{controller.context.model}[/bold]")
            console.print(_HELP + "\n")
            _print_transcript(controller)

            while True:
                try:
                    user_input = console.input("[bold yellow]You:[/bold yellow] ")
                except (KeyboardInterrupt, EOFError):
                    console.print("\n[dim]Goodbye![/dim]")
                    break

                text = user_input.strip()
                if not text:
                    continue
                if text.lower() in ("/quit", "/exit", "exit", "quit", "q"):
                    console.print("[dim]Goodbye![/dim]")
                    break
                if text.startswith("/"):
                    await _run_command(controller, text)
                    continue

                task = controller.send(user_input)
                if task is None:
                    continue
                await _stream_reply(controller, controller.context.messages[-1])
                await controller.wait()

    asyncio.run(_chat())


async def _run_command(controller: ChatController, text: str) -> None:
    command, _, arg = text.partition(" ")
    arg = arg.strip()
    if command == "/new":
        controller.new_chat()
        console.print(f"[dim]New chat • model {controller.context.model}[/dim]")
    elif command == "/history":
        _print_history(controller)
    elif command in ("/open", "/delete") and not arg.isdigit():
        console.print(f"[red]Usage: {command} <chat id>[/red]")
    elif command == "/open":
        if controller.switch_chat(int(arg)):
            _print_transcript(controller)
        else:
            console.print("[red]Chat not found[/red]")
    elif command == "/delete":
        if controller.delete_chat(int(arg)):
            console.print("[dim]Chat deleted[/dim]")
        else:
            console.print("[red]Chat not found[/red]")
    elif command == "/models":
        found = await controller.refresh_models()
        for m in found:
            marker = "*" if m.name == controller.context.model else " "
            console.print(f"{marker} {m.name}")
        console.print("[green]Models refreshed[/green]")
    elif command == "/model":
        if not arg:
            console.print(f"[dim]Current model: {controller.context.model}[/dim]")
        else:
            controller.set_model(arg)
            console.print(f"[green]Switched to {arg}[/green]")
    else:
        console.print(_HELP)


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
