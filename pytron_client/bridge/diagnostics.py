"""
Diagnostics forwarding.

Log messages are always written locally and also offered to the backend's log
function. Uncaught errors (host ``error`` / ``unhandledrejection`` events and
unhandled asyncio task exceptions) are offered to the backend's error
reporting function. Forwarding is best effort: failures are discarded.
"""

from __future__ import annotations

import asyncio
import logging
import traceback
from typing import Any, Optional

from pytron_client.config import BridgeConfig
from pytron_client.host import Event, HostEnvironment

from .events import HOST_ERROR_EVENT, HOST_REJECTION_EVENT
from .router import InvocationRouter

logger = logging.getLogger(__name__)


def describe_error(error: Any) -> dict[str, Any]:
    """Build the payload sent to the backend's error reporting function."""
    if isinstance(error, BaseException):
        return {
            "type": type(error).__name__,
            "message": str(error),
            "traceback": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
        }
    if isinstance(error, dict):
        return {"type": str(error.get("type", "Error")), **error}
    return {"type": "Error", "message": str(error)}


class Diagnostics:
    """Best-effort log and error forwarding to the backend."""

    def __init__(
        self,
        host: HostEnvironment,
        router: InvocationRouter,
        config: Optional[BridgeConfig] = None,
    ) -> None:
        self._host = host
        self._router = router
        self._config = config or BridgeConfig()
        self._tasks: set[asyncio.Task] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._previous_handler: Any = None
        self._capturing = False
        self._forwarded = 0

    @property
    def capturing(self) -> bool:
        return self._capturing

    @property
    def forwarded(self) -> int:
        """Number of forwards that reached a backend function."""
        return self._forwarded

    def log(self, message: Any, level: int = logging.INFO) -> None:
        """Write a message locally and offer it to the backend."""
        logger.log(level, f"{message}")
        self._forward(self._config.log_method, [message])

    def report_error(self, error: Any) -> None:
        """Offer an uncaught error to the backend."""
        self._forward(self._config.error_report_method, [describe_error(error)])

    def install(self) -> None:
        """Start capturing uncaught errors.

        Must be called from a running event loop.
        """
        if self._capturing:
            return
        self._host.add_event_listener(HOST_ERROR_EVENT, self._on_host_error)
        self._host.add_event_listener(HOST_REJECTION_EVENT, self._on_host_error)

        self._loop = asyncio.get_running_loop()
        self._previous_handler = self._loop.get_exception_handler()
        self._loop.set_exception_handler(self._on_loop_exception)
        self._capturing = True

    def uninstall(self) -> None:
        if not self._capturing:
            return
        self._host.remove_event_listener(HOST_ERROR_EVENT, self._on_host_error)
        self._host.remove_event_listener(HOST_REJECTION_EVENT, self._on_host_error)
        if self._loop is not None and not self._loop.is_closed():
            self._loop.set_exception_handler(self._previous_handler)
        self._loop = None
        self._previous_handler = None
        self._capturing = False

    async def flush(self) -> None:
        """Wait for pending forwards."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_host_error(self, event: Event) -> None:
        detail = event.detail if event.detail is not None else event.type
        self.report_error(detail)

    def _on_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        self.report_error(context.get("exception") or context.get("message", "Unhandled error"))
        if self._previous_handler is not None:
            self._previous_handler(loop, context)
        else:
            loop.default_exception_handler(context)

    def _forward(self, method: str, args: list[Any]) -> None:
        if self._router.resolve_transport(method) is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._router.dispatch(method, args))
        self._tasks.add(task)
        task.add_done_callback(self._forward_done)

    def _forward_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Diagnostics forwarding failed: {error}")
        else:
            self._forwarded += 1
