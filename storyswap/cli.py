"""StorySwap CLI — Typer + Rich terminal interface.

Commands: serve, transform, prompt, setup, config show.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from storyswap import __version__
from storyswap.cli_display import (
    StreamingStoryDisplay,
    render_outcome,
    render_request_summary,
)
from storyswap.client import (
    AttemptOutcome,
    LocalFallback,
    StreamConsumer,
    http_consumer,
    open_http_client,
)
from storyswap.client.fallback import HttpFallback
from storyswap.errors import ConfigurationError, ValidationError
from storyswap.keys import load_keys_env, save_key
from storyswap.prompts import build_request_prompt
from storyswap.providers.litellm_provider import LiteLLMSource
from storyswap.schemas.config import Settings
from storyswap.session import TransformSession
from storyswap.settings import configure, get_settings
from storyswap.sources import load_sources

# Load API keys from ~/.storyswap/keys.env and .env on startup
load_keys_env()

console = Console()
err_console = Console(stderr=True)

# ── App and sub-apps ─────────────────────────────────────────────

app = typer.Typer(
    name="storyswap",
    help="Rewrite stories with new characters using a streaming LLM pipeline.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    name="config",
    help="Show configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


# ── Callbacks ────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"storyswap {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output."),
    config: Path | None = typer.Option(
        None, "--config", "-c",
        help="Settings TOML file (default: bundled settings.toml).",
        exists=True, dir_okay=False,
    ),
) -> None:
    """StorySwap — character replacement for stories."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    if config is not None:
        try:
            configure(config)
        except ConfigurationError as e:
            console.print(f"[red]Error loading settings:[/red] {e}")
            raise typer.Exit(1) from None


# ── Helpers ──────────────────────────────────────────────────────


def _load_settings() -> Settings:
    """Load process settings, exit on error."""
    try:
        return get_settings()
    except ConfigurationError as e:
        console.print(f"[red]Error loading settings:[/red] {e}")
        raise typer.Exit(1) from None


def _parse_replacement(value: str) -> tuple[str, str]:
    """Split an ``ORIGINAL=REPLACEMENT`` option value."""
    original, sep, replacement = value.partition("=")
    if not sep or not original.strip() or not replacement.strip():
        raise typer.BadParameter(
            f"Expected ORIGINAL=REPLACEMENT, got {value!r}", param_hint="--replace"
        )
    return original.strip(), replacement.strip()


def _build_session(
    files: list[Path],
    text: str,
    replace: list[str],
    context: str,
) -> TransformSession:
    """Assemble a session from CLI input, reporting unreadable files."""
    source_text = text
    if files:
        loaded = load_sources(files)
        for path, message in loaded.failures.items():
            console.print(f"[yellow]⊘ Skipped {path}:[/yellow] {message}")
        source_text = "\n\n".join(t for t in (text, loaded.combined) if t)

    session = TransformSession(source_text=source_text, additional_context=context)
    for value in replace:
        original, replacement = _parse_replacement(value)
        session.add_pair(original, replacement)

    try:
        session.to_request().check_submittable()
    except ValidationError as e:
        console.print(f"[red]Cannot transform:[/red] {e}")
        raise typer.Exit(1) from None
    return session


def _local_source(settings: Settings) -> LiteLLMSource:
    try:
        return LiteLLMSource.from_settings(settings)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


async def _run_remote(
    session: TransformSession, settings: Settings, stream: bool
) -> AttemptOutcome:
    async with open_http_client(settings.client) as client:
        if not stream:
            consumer = StreamConsumer(
                None, HttpFallback(client, settings.client.transform_path)
            )
            with console.status("Rewriting story…"):
                return await session.submit(consumer)

        with StreamingStoryDisplay(console, settings.model.display_name) as display:
            consumer = http_consumer(client, settings.client, on_progress=display.on_progress)
            return await session.submit(consumer)


async def _run_local(session: TransformSession, source: LiteLLMSource) -> AttemptOutcome:
    consumer = StreamConsumer(None, LocalFallback(source))
    with console.status(f"Rewriting story with {source.display_name}…"):
        return await session.submit(consumer)


# ── Commands ─────────────────────────────────────────────────────


@app.command()
def transform(
    files: list[Path] = typer.Argument(None, help="Plain-text story files"),
    text: str = typer.Option("", "--text", "-t", help="Story text (instead of or before files)"),
    replace: list[str] = typer.Option(
        [], "--replace", "-r", help="ORIGINAL=REPLACEMENT (repeatable)",
    ),
    context: str = typer.Option("", "--context", help="Additional context for the rewrite"),
    server: str = typer.Option("", "--server", help="Relay base URL (overrides settings)"),
    no_stream: bool = typer.Option(False, "--no-stream", help="Use the single-shot endpoint"),
    local: bool = typer.Option(
        False, "--local", help="Call the model in process instead of through a server",
    ),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the result to a file"),
    show_original: bool = typer.Option(False, "--show-original", help="Print the original too"),
) -> None:
    """Rewrite a story, replacing the given characters."""
    settings = _load_settings()
    if server:
        settings = settings.model_copy(
            update={"client": settings.client.model_copy(update={"base_url": server})}
        )

    session = _build_session(files or [], text, replace, context)
    render_request_summary(console, session.to_request())

    try:
        if local:
            outcome = asyncio.run(_run_local(session, _local_source(settings)))
        else:
            outcome = asyncio.run(_run_remote(session, settings, stream=not no_stream))
    except KeyboardInterrupt:
        console.print("[dim]Cancelled.[/dim]")
        raise typer.Exit(130) from None

    render_outcome(
        console,
        outcome,
        session.source_text if show_original else None,
        single_shot=local or no_stream,
    )
    if not outcome.ok:
        raise typer.Exit(1)

    if output is not None:
        output.write_text(outcome.result or "", encoding="utf-8")
        console.print(f"[dim]Saved to {output}[/dim]")


@app.command()
def prompt(
    files: list[Path] = typer.Argument(None, help="Plain-text story files"),
    text: str = typer.Option("", "--text", "-t", help="Story text"),
    replace: list[str] = typer.Option([], "--replace", "-r", help="ORIGINAL=REPLACEMENT"),
    context: str = typer.Option("", "--context", help="Additional context"),
) -> None:
    """Print the prompt that would be sent to the model."""
    session = _build_session(files or [], text, replace, context)
    console.print(
        build_request_prompt(session.to_request()),
        markup=False, highlight=False, soft_wrap=True,
    )


@app.command()
def serve(
    host: str = typer.Option("", "--host", help="Bind address (overrides settings)"),
    port: int = typer.Option(0, "--port", "-p", help="Port (overrides settings)"),
) -> None:
    """Start the transform server (single-shot and streaming endpoints)."""
    import uvicorn

    from storyswap.server import create_app

    settings = _load_settings()
    try:
        app_instance = create_app(settings=settings)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    bind_host = host or settings.server.host
    bind_port = port or settings.server.port
    console.print(Panel(
        f"[bold]URL:[/bold] http://{bind_host}:{bind_port}\n"
        f"[bold]Model:[/bold] {settings.model.display_name} ({settings.model.model})",
        title="[bold blue]StorySwap Server[/bold blue]",
        border_style="blue",
    ))
    uvicorn.run(app_instance, host=bind_host, port=bind_port, log_level="warning")


@app.command()
def setup(
    check: bool = typer.Option(False, "--check", help="Only report whether a key is set"),
) -> None:
    """Save the model API key to ~/.storyswap/keys.env."""
    from rich.prompt import Prompt

    settings = _load_settings()
    env_var = settings.model.api_key_env
    existing = os.environ.get(env_var, "")

    if check:
        if existing:
            console.print(f"[green]✓[/green] {env_var} is set")
            return
        console.print(f"[red]✗[/red] {env_var} is not set")
        raise typer.Exit(1)

    key = Prompt.ask(f"{env_var}", password=True, default="", show_default=False, console=console)
    if not key.strip():
        console.print("[red]No API key provided.[/red]")
        raise typer.Exit(1)

    path = save_key(env_var, key.strip())
    console.print(f"[green]✓ Saved[/green] to {path}")


@config_app.command("show")
def config_show() -> None:
    """Show the current model, server and client configuration."""
    settings = _load_settings()

    table = Table(title="StorySwap Configuration", show_header=False, show_lines=True)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row("Model", f"{settings.model.display_name} ({settings.model.model})")
    table.add_row("API Key Variable", settings.model.api_key_env)
    table.add_row("Timeout", f"{settings.model.timeout}s")
    table.add_row("Server", f"{settings.server.host}:{settings.server.port}")
    table.add_row("Client Base URL", settings.client.base_url)
    table.add_row("Stream Path", settings.client.stream_path)
    table.add_row("Single-shot Path", settings.client.transform_path)
    console.print(table)

    if settings.model.safety:
        safety = Table(title="Content Safety")
        safety.add_column("Category", style="cyan")
        safety.add_column("Threshold")
        for s in settings.model.safety:
            safety.add_row(s.category.value, s.threshold.value)
        console.print(safety)


# ── Entry point ──────────────────────────────────────────────────

if __name__ == "__main__":
    app()
