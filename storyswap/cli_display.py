"""Rich rendering for the StorySwap CLI.

StreamingStoryDisplay shows the story as it streams in; the render_*
helpers print the final outcome and the request summary.
"""

from __future__ import annotations

import time

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from storyswap.client.consumer import AttemptOutcome, ConsumerState
from storyswap.schemas.transform import TransformRequest

# Lines of streamed text kept on screen while generating
_TAIL_LINES = 30

_STATE_MARKUP: dict[ConsumerState, str] = {
    ConsumerState.COMMITTED: "[bold green]●[/bold green] done",
    ConsumerState.FALLEN_BACK: "[bold yellow]⚠[/bold yellow] single-shot fallback",
    ConsumerState.ERRORED: "[bold red]✗[/bold red] failed",
    ConsumerState.CANCELLED: "[dim]○[/dim] cancelled",
}


class StreamingStoryDisplay:
    """Live panel with the tail of the text received so far."""

    def __init__(self, console: Console, model_name: str) -> None:
        self._console = console
        self._model_name = model_name
        self._text = ""
        self._start_time = time.monotonic()
        self._live: Live | None = None

    def __enter__(self) -> StreamingStoryDisplay:
        """Start the Rich Live display."""
        self._start_time = time.monotonic()
        self._live = Live(
            self._build_panel(),
            console=self._console,
            refresh_per_second=8,
            transient=True,
        )
        self._live.__enter__()
        return self

    def __exit__(self, *args: object) -> None:
        """Stop the Rich Live display."""
        if self._live:
            self._live.__exit__(*args)
            self._live = None

    def on_progress(self, accumulated: str) -> None:
        """Progress callback for StreamConsumer."""
        self._text = accumulated
        if self._live:
            self._live.update(self._build_panel())

    def _build_panel(self) -> Panel:
        elapsed = time.monotonic() - self._start_time
        lines = self._text.splitlines()[-_TAIL_LINES:]
        body = Text("\n".join(lines)) if lines else Text("Waiting for the first fragment…", style="dim")
        return Panel(
            body,
            title=f"[bold blue]{self._model_name}[/bold blue]",
            subtitle=f"[dim]{len(self._text)} chars · {elapsed:.1f}s[/dim]",
            border_style="blue",
        )


def render_request_summary(console: Console, request: TransformRequest) -> None:
    """Print the replacements and context about to be sent."""
    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("Original")
    table.add_column("", style="dim")
    table.add_column("Replacement", style="cyan")
    for pair in request.complete_replacements:
        table.add_row(pair.original, "→", pair.replacement)

    parts: list = [Text(f"{len(request.source_text)} characters of story text", style="dim")]
    if request.complete_replacements:
        parts.append(table)
    if request.has_context:
        parts.append(Text(f"Context: {request.additional_context}", style="italic"))

    console.print(Panel(
        Group(*parts),
        title="[bold]Character replacement[/bold]",
        border_style="cyan",
    ))


def render_outcome(
    console: Console,
    outcome: AttemptOutcome,
    original_text: str | None = None,
    *,
    single_shot: bool = False,
) -> None:
    """Print the rewritten story (and optionally the original) or the error.

    ``single_shot`` means the user chose the single-shot path, so a
    FALLEN_BACK outcome is reported as a plain success or failure.
    """
    state = outcome.state
    if single_shot and state == ConsumerState.FALLEN_BACK:
        state = ConsumerState.COMMITTED if outcome.ok else ConsumerState.ERRORED
    status = _STATE_MARKUP.get(state, state.value)

    if not outcome.ok:
        console.print(Panel(
            Text(outcome.error or "", style="red"),
            title=f"[bold red]Transformation failed[/bold red] {status}",
            border_style="red",
        ))
        return

    if original_text is not None:
        console.print(Panel(Text(original_text), title="[bold]Original[/bold]", border_style="dim"))

    console.print(Panel(
        Text(outcome.result or ""),
        title=f"[bold green]Result[/bold green] {status}",
        border_style="green",
    ))
