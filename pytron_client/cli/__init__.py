"""CLI command modules for the Pytron client.

Command modules are imported by ``pytron_client.main``; this package only
exports the shared error handling and exit codes.
"""

from pytron_client.cli.exit_codes import ExitCode
from pytron_client.cli.error_handler import (
    CLIError,
    ConfigurationError,
    NotFoundError,
    ValidationError,
    exit_code_for,
    handle_errors,
)

__all__ = [
    # Exit codes
    "ExitCode",
    # Error handling
    "CLIError",
    "ConfigurationError",
    "NotFoundError",
    "ValidationError",
    "exit_code_for",
    "handle_errors",
]
