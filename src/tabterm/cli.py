"""CLI for the tabterm command."""

import sys
from pathlib import Path
from typing import Optional

import typer

from .config import TabTermConfig
from .multiplexer.menu_detector import analyze


app = typer.Typer(
    help="Tabbed pty sessions with interactive menu detection",
    add_completion=False,
)


@app.command()
def serve(
    port: int = typer.Option(8765, "--port", "-p", envvar="TABTERM_PORT", help="Port to listen on"),
    host: str = typer.Option("127.0.0.1", "--host", envvar="TABTERM_HOST", help="Host to bind to"),
    command: str = typer.Option(
        "claude", "--command", "-c", envvar="TABTERM_COMMAND", help="Program started in each tab"
    ),
    cwd: Optional[Path] = typer.Option(
        None, "--cwd", envvar="TABTERM_CWD", help="Working directory for new tabs (default: current)"
    ),
    max_buffer_lines: int = typer.Option(
        50, "--max-buffer-lines", envvar="TABTERM_MAX_BUFFER_LINES", min=1,
        help="Output lines kept per tab for menu detection",
    ),
    debounce: float = typer.Option(
        0.5, "--debounce", envvar="TABTERM_DEBOUNCE", min=0.0,
        help="Quiet period in seconds before a tab's output is analyzed",
    ),
):
    """
    Start the terminal service.

    Each WebSocket connection to /ws is one panel of tabs. The panel gets a
    first tab immediately and loses all of its tabs when it disconnects.

    Examples:
        # Serve claude tabs on the default port
        tabterm serve

        # Serve bash tabs for a project
        tabterm serve --command bash --cwd ~/src/project
    """
    import uvicorn
    from .facilitator.service import create_app

    config = TabTermConfig().with_overrides(
        host=host,
        port=port,
        command=command,
        cwd=str(cwd.expanduser()) if cwd else None,
        max_buffer_lines=max_buffer_lines,
        debounce_seconds=debounce,
    )

    typer.echo("Starting tabterm service")
    typer.echo(f"   Command: {config.command}")
    typer.echo(f"   Panel:   ws://{host}:{port}/ws")

    uvicorn.run(create_app(config), host=config.host, port=config.port)


@app.command()
def detect(
    transcript: Optional[Path] = typer.Argument(
        None, exists=True, dir_okay=False, help="Captured output; read from stdin if omitted"
    ),
    tail: int = typer.Option(50, "--tail", "-n", min=1, help="Analyze only the last N lines"),
):
    """
    Run menu detection over captured terminal output.

    Exits with status 1 when no menu is found.
    """
    if transcript is not None:
        text = transcript.read_text(encoding="utf-8", errors="replace")
    else:
        text = sys.stdin.read()
    window = "\n".join(text.splitlines()[-tail:])

    analysis = analyze(window)
    typer.echo(f"box structure:        {'yes' if analysis.has_box_structure else 'no'}")
    typer.echo(f"interactive elements: {'yes' if analysis.has_interactive_elements else 'no'}")
    if not analysis.options:
        typer.echo("no menu detected")
        raise typer.Exit(code=1)
    for option in analysis.options:
        typer.echo(f"  [{option.key}] {option.label}")


if __name__ == "__main__":
    app()
