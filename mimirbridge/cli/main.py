"""Main CLI entry point for the Mimir bridge."""

import sys
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console

from mimirbridge import __version__
from mimirbridge.config import Settings, get_settings
from mimirbridge.exceptions import BridgeError, ConfigurationError
from mimirbridge.logging_config import get_logger, setup_logging

app = typer.Typer(
    name="mimirbridge",
    help="Scrape Prometheus text exposition and push it to Mimir via remote write",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=True,
)

console = Console()
console_err = Console(stderr=True)
logger = get_logger(__name__)


class CLIState:
    """Global CLI state."""

    verbose: bool = False
    settings: Optional[Settings] = None


state = CLIState()


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"mimirbridge version: {__version__}")
        console.print(f"Python: {sys.version.split()[0]}")
        raise typer.Exit(0)


def load_settings(config: Optional[Path] = None) -> Settings:
    """Load settings, turning validation failures into a ConfigurationError."""
    try:
        return get_settings(config_path=config, reload=True)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version information and exit",
        callback=version_callback,
        is_eager=True,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file path",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """
    Mimir bridge

    Periodically scrapes an endpoint exposing metrics in Prometheus text format
    and pushes them to a remote-write endpoint as Snappy-compressed Protobuf.
    """
    state.verbose = verbose

    try:
        state.settings = load_settings(config)
    except ConfigurationError as e:
        handle_error(e)

    if verbose:
        state.settings.log_level = "DEBUG"

    setup_logging(state.settings)

    ctx.obj = state


def handle_error(error: Exception) -> None:
    """Handle CLI errors with user-friendly messages.

    Args:
        error: Exception to handle
    """
    if isinstance(error, BridgeError):
        console_err.print(f"\n[red]Error:[/red] {error.message}")

        if state.verbose and error.context:
            console_err.print("\n[yellow]Context:[/yellow]")
            for key, value in error.context.items():
                console_err.print(f"  {key}: {value}")
    else:
        console_err.print(f"\n[red]Unexpected Error:[/red] {str(error)}")

        if state.verbose:
            import traceback

            console_err.print("\n[yellow]Traceback:[/yellow]")
            console_err.print(traceback.format_exc())

    raise typer.Exit(1)


from mimirbridge.cli import bridge, config as config_cli  # noqa: E402

app.command("run")(bridge.run)
app.command("once")(bridge.once)
app.command("inspect")(bridge.inspect)
app.add_typer(config_cli.app, name="config", help="Configuration management")


def main_cli() -> None:
    """Entry point for CLI application with error handling."""
    try:
        app()
    except BridgeError as e:
        handle_error(e)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(1)


if __name__ == "__main__":
    main_cli()
