"""Exceptions raised by the bridge client."""

from typing import Any, Iterable, Optional


class BridgeError(Exception):
    """Base exception for bridge errors.

    Attributes:
        message: Error message
        details: Optional dictionary of additional error details
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class NotConnectedError(BridgeError):
    """Raised when no backend readiness signal is present, even after waiting."""

    def __init__(self, method: Optional[str] = None, details: Optional[dict[str, Any]] = None) -> None:
        if method:
            message = f"Pytron backend not connected. Call to '{method}' failed."
        else:
            message = "Pytron backend not connected"
        super().__init__(message, details)
        self.method = method


class MethodNotFoundError(BridgeError):
    """Raised when the backend is connected but exposes no such method.

    The backend contract is unversioned, so the error carries the method
    names that *are* currently reachable to make mismatches easy to spot.
    """

    def __init__(self, method: str, available: Optional[Iterable[str]] = None) -> None:
        self.method = method
        self.available = sorted(available or [])
        details = {"available": ", ".join(self.available)} if self.available else None
        super().__init__(f"Method '{method}' not found on Pytron backend.", details)


class RemoteInvocationError(BridgeError):
    """Raised by transports when the backend itself failed to execute a call."""
    pass


class WaitTimeoutError(BridgeError):
    """Raised when waiting for the backend times out under the reject policy."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Timeout waiting for backend after {timeout}s")
        self.timeout = timeout
