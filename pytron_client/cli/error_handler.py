"""Global exception handling for the Pytron client CLI.

This module maps bridge exceptions to exit codes and provides decorators
that ensure consistent error reporting across all CLI commands.
"""

from functools import wraps
from typing import Callable, TypeVar, Any
import logging

import typer
from rich.console import Console

from pytron_client.bridge.exceptions import (
    BridgeError,
    MethodNotFoundError,
    NotConnectedError,
    RemoteInvocationError,
    WaitTimeoutError,
)
from pytron_client.cli.exit_codes import ExitCode

# Console for error output (stderr)
console = Console(stderr=True)

# Logger for error logging
logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class CLIError(BridgeError):
    """Base exception for errors raised by the CLI itself.

    Attributes:
        message: Error message
        exit_code: Exit code to use when exiting
        details: Optional dictionary of additional error details
    """

    exit_code: int = ExitCode.GENERAL_ERROR

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(CLIError):
    """Configuration-related error.

    Examples:
        - Invalid configuration file format
        - Configuration validation failure
    """

    exit_code = ExitCode.CONFIGURATION_ERROR


class ValidationError(CLIError):
    """Validation error for user input.

    Examples:
        - Malformed --connect address
        - Argument that is not valid JSON where JSON is required
    """

    exit_code = ExitCode.INVALID_ARGUMENT


class NotFoundError(CLIError):
    """Requested asset or resource not found."""

    exit_code = ExitCode.NOT_FOUND


# Checked in order; the first matching class wins
_EXIT_CODES: list[tuple[type[BaseException], int]] = [
    (NotConnectedError, ExitCode.NOT_CONNECTED),
    (MethodNotFoundError, ExitCode.METHOD_NOT_FOUND),
    (WaitTimeoutError, ExitCode.TIMEOUT),
    (RemoteInvocationError, ExitCode.REMOTE_ERROR),
]


def exit_code_for(error: BaseException) -> int:
    """Return the exit code for an exception."""
    if isinstance(error, CLIError):
        return error.exit_code
    for error_type, code in _EXIT_CODES:
        if isinstance(error, error_type):
            return code
    return ExitCode.GENERAL_ERROR


def _report(error: BridgeError) -> int:
    exit_code = exit_code_for(error)
    logger.error(
        f"{type(error).__name__}: {error.message}",
        extra={"exit_code": exit_code, "details": error.details},
    )

    # Display user-friendly error
    console.print(f"[red]Error:[/red] {error.message}")

    # Show details if available
    if error.details:
        for key, value in error.details.items():
            console.print(f"  [dim]{key}:[/dim] {value}")

    return exit_code


def _report_unexpected(error: Exception) -> None:
    from pytron_client.main import is_debug

    console.print(f"[red]Unexpected error:[/red] {error}")
    if is_debug():
        console.print_exception()
    else:
        console.print("[dim]Run with --debug for the full traceback[/dim]")


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling across CLI commands.

    This decorator catches all exceptions and converts them to appropriate
    error messages and exit codes. It handles:

    - BridgeError subclasses: Display error message with the mapped exit code
    - KeyboardInterrupt: Show cancellation message with exit code 130
    - Other exceptions: Show generic error with option for verbose details

    Example:
        @app.command()
        @handle_errors
        def my_command():
            raise ConfigurationError("Invalid config")
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except BridgeError as e:
            raise typer.Exit(code=_report(e))

        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user.[/yellow]")
            logger.info("Operation cancelled by user (KeyboardInterrupt)")
            raise typer.Exit(code=ExitCode.CANCELLED)

        except typer.Exit:
            # Re-raise typer.Exit as-is
            raise

        except Exception as e:
            logger.exception("Unexpected error occurred")
            _report_unexpected(e)
            raise typer.Exit(code=ExitCode.GENERAL_ERROR)

    return wrapper  # type: ignore[return-value]

