"""Standard exit codes for the Pytron client CLI.

This module defines the exit codes used across the CLI for consistent
error reporting and scripting support.
"""


class ExitCode:
    """Standard exit codes for the Pytron client CLI.

    These codes follow common Unix conventions where possible:
    - 0: Success
    - 1: General error
    - 130: Script terminated by Ctrl+C (SIGINT)

    Client-specific codes start at 2:
    - 2: Configuration error
    - 3: Backend not connected
    - 4: Method not found on the backend
    - 5: Backend raised during the call
    - 6: Timed out waiting for the backend
    - 7: Invalid argument
    - 8: Asset not found
    """

    # Standard success
    SUCCESS = 0

    # General errors
    GENERAL_ERROR = 1

    # Client-specific errors (2-8)
    CONFIGURATION_ERROR = 2
    NOT_CONNECTED = 3
    METHOD_NOT_FOUND = 4
    REMOTE_ERROR = 5
    TIMEOUT = 6
    INVALID_ARGUMENT = 7
    NOT_FOUND = 8

    # Signal-based exits (128 + signal number)
    CANCELLED = 130  # Ctrl+C (SIGINT = 2)

    @classmethod
    def get_name(cls, code: int) -> str:
        """Get the name of an exit code.

        Args:
            code: The exit code value

        Returns:
            Human-readable name for the exit code
        """
        names = {
            cls.SUCCESS: "SUCCESS",
            cls.GENERAL_ERROR: "GENERAL_ERROR",
            cls.CONFIGURATION_ERROR: "CONFIGURATION_ERROR",
            cls.NOT_CONNECTED: "NOT_CONNECTED",
            cls.METHOD_NOT_FOUND: "METHOD_NOT_FOUND",
            cls.REMOTE_ERROR: "REMOTE_ERROR",
            cls.TIMEOUT: "TIMEOUT",
            cls.INVALID_ARGUMENT: "INVALID_ARGUMENT",
            cls.NOT_FOUND: "NOT_FOUND",
            cls.CANCELLED: "CANCELLED",
        }
        return names.get(code, f"UNKNOWN({code})")

    @classmethod
    def get_description(cls, code: int) -> str:
        """Get the description of an exit code.

        Args:
            code: The exit code value

        Returns:
            Human-readable description for the exit code
        """
        descriptions = {
            cls.SUCCESS: "Operation completed successfully",
            cls.GENERAL_ERROR: "An unexpected error occurred",
            cls.CONFIGURATION_ERROR: "Configuration error or invalid config file",
            cls.NOT_CONNECTED: "The Pytron backend is not reachable",
            cls.METHOD_NOT_FOUND: "The backend does not expose the requested method",
            cls.REMOTE_ERROR: "The backend failed while executing the call",
            cls.TIMEOUT: "Timed out waiting for the backend",
            cls.INVALID_ARGUMENT: "Invalid command-line argument",
            cls.NOT_FOUND: "Requested asset not found",
            cls.CANCELLED: "Operation cancelled by user",
        }
        return descriptions.get(code, f"Unknown exit code: {code}")
