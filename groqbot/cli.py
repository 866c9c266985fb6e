"""
Command-line interface for the Groq chat relay.

Commands:
- serve: Run the API server with uvicorn
- models: List models available to a key (same selection as /api/models)
- chat: Stream one answer to the terminal
- convert-export: Upgrade a v1-v4 conversation export file to version 4

Exit codes: 0 (success), 1 (upstream or input error)

Usage:
    groq-bot serve --port 8000
    groq-bot models
    groq-bot chat "Explain TCP slow start" --model llama-3.3-70b-versatile
    groq-bot convert-export old_history.json chatbot_ui_history_6-21.json
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import httpx
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from groqbot.archive import clean_data, export_filename
from groqbot.catalog import fallback_models, resolve_model, select_available_models
from groqbot.config import settings
from groqbot.exceptions import UnsupportedExportFormat, UpstreamError
from groqbot.models import Message
from groqbot.upstream import fetch_models, open_chat_stream

# Configure logging with rich
logging.basicConfig(
    level=settings.log_level,
    format="%(message)s",
    handlers=[RichHandler(rich_tracebacks=True, show_time=False)],
)

logger = logging.getLogger(__name__)
console = Console()

# Typer app
app = typer.Typer(
    name="groq-bot",
    help="Reborncloud Groq Bot: streaming chat relay for Groq / OpenAI-compatible APIs",
    add_completion=False,
    pretty_exceptions_show_locals=False,
)


def _resolve_key(key: Optional[str]) -> str:
    resolved = key or settings.openai_api_key
    if not resolved:
        console.print("[red]❌ No API key. Set OPENAI_API_KEY or pass --key.[/red]")
        raise typer.Exit(code=1)
    return resolved


def _upstream_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.request_timeout)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes (development)"),
):
    """Run the API server."""
    import uvicorn

    console.print(Panel.fit(
        "[bold cyan]Reborncloud Groq Bot[/bold cyan]\n"
        f"[dim]Upstream: {settings.openai_api_host}[/dim]\n"
        f"[dim]Default model: {settings.default_model}[/dim]",
        border_style="cyan",
    ))
    uvicorn.run(
        "groqbot.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
        timeout_keep_alive=120,
    )


@app.command()
def models(
    key: Optional[str] = typer.Option(None, "--key", "-k", help="Upstream API key (default: OPENAI_API_KEY)"),
):
    """List models available to the key, falling back to the static list on failure."""
    resolved_key = _resolve_key(key)

    async def run() -> tuple[list, bool]:
        async with _upstream_client() as client:
            try:
                model_ids = await fetch_models(client, resolved_key)
            except Exception as e:
                logger.warning(f"Could not list upstream models: {e}", exc_info=True)
                return fallback_models(), True
        selected = select_available_models(model_ids)
        return (selected, False) if selected else (fallback_models(), True)

    available, is_fallback = asyncio.run(run())

    title = "\nAvailable Models" + (" (fallback list)" if is_fallback else "")
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Max Length", justify="right")
    table.add_column("Token Limit", justify="right")
    for model in available:
        table.add_row(model.id, model.name, str(model.max_length), str(model.token_limit))
    console.print(table)


@app.command()
def chat(
    prompt: str = typer.Argument(..., help="Message to send"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model id (default: DEFAULT_MODEL)"),
    system: Optional[str] = typer.Option(None, "--system", "-s", help="System prompt (default: DEFAULT_SYSTEM_PROMPT)"),
    temperature: Optional[float] = typer.Option(None, "--temperature", "-t", min=0.0, max=2.0),
    key: Optional[str] = typer.Option(None, "--key", "-k", help="Upstream API key (default: OPENAI_API_KEY)"),
):
    """Send one message and stream the answer."""
    resolved_key = _resolve_key(key)
    selected = resolve_model(model or settings.default_model)

    async def run() -> None:
        async with _upstream_client() as client:
            deltas = await open_chat_stream(
                client,
                selected,
                system or settings.default_system_prompt,
                settings.default_temperature if temperature is None else temperature,
                resolved_key,
                [Message(role="user", content=prompt)],
            )
            async for text in deltas:
                console.print(text, end="", markup=False, highlight=False, soft_wrap=True)
        console.print()

    try:
        asyncio.run(run())
    except UpstreamError as e:
        console.print(f"[red]❌ Upstream error: {e.message}[/red]")
        raise typer.Exit(code=1)
    except httpx.HTTPError as e:
        console.print(f"[red]❌ Network error: {e}[/red]")
        raise typer.Exit(code=1)


@app.command("convert-export")
def convert_export(
    input: Path = typer.Argument(..., exists=True, dir_okay=False, help="Export file (v1-v4)"),
    output: Optional[Path] = typer.Argument(None, help="Output file (default: chatbot_ui_history_<M-D>.json)"),
):
    """Upgrade a conversation export file to version 4."""
    try:
        data = json.loads(input.read_text(encoding="utf-8"))
        converted = clean_data(data)
    except (UnsupportedExportFormat, ValueError) as e:
        console.print(f"[red]❌ Cannot convert {input}: {e}[/red]")
        raise typer.Exit(code=1)

    target = output or Path(export_filename())
    target.write_text(
        json.dumps(converted.model_dump(by_alias=True, mode="json"), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )

    table = Table(title="\nExport Converted", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan", width=20)
    table.add_column("Value", style="white", width=15)
    table.add_row("Conversations", str(len(converted.history)))
    table.add_row("Folders", str(len(converted.folders)))
    table.add_row("Prompts", str(len(converted.prompts)))
    console.print(table)
    console.print(f"[green]✅ Written to {target}[/green]")


if __name__ == "__main__":
    app()
