"""Main CLI entry point for the Pytron client."""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from pytron_client import __app_name__, __version__
from pytron_client.cli import call, config, resolve, state
from pytron_client.cli.exit_codes import ExitCode

# Create the main Typer app
app = typer.Typer(
    name=__app_name__,
    help="Pytron client - talk to a running Pytron backend from the command line.",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Console for CLI output
console = Console()

# Register commands
app.command("call")(call.call)
app.command("state")(state.state)
app.command("listen")(state.listen)
app.command("resolve")(resolve.resolve)
app.add_typer(config.app, name="config")

# Global state for CLI options
_global_state: dict[str, bool] = {
    "verbose": False,
    "debug": False,
    "json": False,
    "quiet": False,
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"{__app_name__} v{__version__}")
        raise typer.Exit(code=ExitCode.SUCCESS)


def _setup_logging(
    verbose: bool = False,
    debug: bool = False,
    quiet: bool = False,
    log_file: Optional[Path] = None,
) -> None:
    """Configure logging from the CLI flags and the [logging] config section.

    Flags win over the configured level; ``--log-file`` wins over
    ``logging.file``.
    """
    from pytron_client.config import get_config

    settings = get_config().logging

    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.getLevelName(settings.level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    format_str = settings.format
    if debug:
        format_str = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"

    handlers: list[logging.Handler] = []

    target = log_file or settings.file
    if target:
        target = Path(target).expanduser()
        target.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(target)
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    if not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        handlers.append(console_handler)
    elif not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=logging.DEBUG if target else level,
        format=format_str,
        handlers=handlers,
        force=True,
    )

    logging.getLogger(__name__).debug(
        f"Logging configured: level={logging.getLevelName(level)}, file={target}"
    )


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Enable verbose output (INFO level logging).",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode (DEBUG level logging with full tracebacks).",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format where applicable.",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress non-error output.",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Log to file (logs DEBUG level regardless of console settings).",
    ),
) -> None:
    """Pytron client - talk to a running Pytron backend from the command line.

    The client connects to the backend's JSON-RPC stream and drives the same
    bridge used in-page: readiness detection, call routing, state sync, and
    asset resolution.

    [bold]Commands:[/bold]

    • [cyan]call[/cyan] - Call a backend method
    • [cyan]state[/cyan] - Pull and print the backend state
    • [cyan]listen[/cyan] - Print events pushed by the backend
    • [cyan]resolve[/cyan] - Resolve a pytron:// asset
    • [cyan]config[/cyan] - Manage configuration

    [bold]Global Options:[/bold]

    Use [cyan]--verbose[/cyan] for more detailed output,
    [cyan]--debug[/cyan] for full debug information,
    or [cyan]--json[/cyan] for machine-readable output.

    [bold]Examples:[/bold]

        pytron-client call greet '"world"'
        pytron-client --json state
        pytron-client listen state:theme
        pytron-client resolve icons/app.png -o app.png

    For more help on a specific command, use: [cyan]pytron-client <command> --help[/cyan]
    """
    # Store global state
    _global_state["verbose"] = verbose
    _global_state["debug"] = debug
    _global_state["json"] = json_output
    _global_state["quiet"] = quiet
    
    # Validate mutually exclusive options
    if quiet and verbose:
        console.print("[red]Error:[/red] --quiet and --verbose are mutually exclusive")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)
    
    if quiet and debug:
        console.print("[red]Error:[/red] --quiet and --debug are mutually exclusive")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)
    
    # Set up logging
    _setup_logging(verbose=verbose, debug=debug, quiet=quiet, log_file=log_file)
    
    # Log startup info in debug mode
    logger = logging.getLogger(__name__)
    logger.debug(f"Pytron client v{__version__} starting")
    logger.debug(f"Options: verbose={verbose}, debug={debug}, json={json_output}, quiet={quiet}")


def is_debug() -> bool:
    """Check if debug mode is enabled.
    
    Returns:
        True if debug mode is enabled
    """
    return _global_state.get("debug", False)


def is_json() -> bool:
    """Check if JSON output mode is enabled.
    
    Returns:
        True if JSON output is requested
    """
    return _global_state.get("json", False)


def is_quiet() -> bool:
    """Check if quiet mode is enabled.
    
    Returns:
        True if quiet mode is enabled
    """
    return _global_state.get("quiet", False)


# Re-export for convenience
__all__ = [
    "app",
    "console",
    "is_debug",
    "is_json",
    "is_quiet",
]


if __name__ == "__main__":
    app()
