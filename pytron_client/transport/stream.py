"""
Stream transport.

Connects to an already running Pytron backend over TCP and speaks
newline-delimited JSON-RPC 2.0. Attached to a host, the connection becomes the
host's native call primitive and the backend's ``pytron.dispatch``
notifications are fed to the client's dispatch entry point.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum, auto
from typing import Any, Callable, Optional, Sequence, Union

from pytron_client.bridge.exceptions import NotConnectedError
from pytron_client.config import BridgeConfig, ConnectionConfig
from pytron_client.host import HostEnvironment

from .protocol import (
    BackendMethods,
    JSONRPCError,
    JSONRPCRequest,
    JSONRPCResponse,
    parse_message,
)

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """State of the backend connection."""

    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    CLOSING = auto()
    CLOSED = auto()


class StreamBackend:
    """
    JSON-RPC connection to a Pytron backend.

    Example:
        async with StreamBackend(ConnectionConfig(port=8765)) as backend:
            backend.attach(host)
            client = await BridgeClient.create(host)
    """

    def __init__(self, config: Optional[ConnectionConfig] = None):
        self._config = config or ConnectionConfig()
        self._state = ConnectionState.DISCONNECTED
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._pending_futures: dict[str, asyncio.Future] = {}
        self._notification_handlers: dict[str, list[Callable[[Any], None]]] = {}
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def address(self) -> str:
        return f"{self._config.host}:{self._config.port}"

    @property
    def pending_count(self) -> int:
        return len(self._pending_futures)

    async def connect(self) -> None:
        """
        Open the connection.

        Raises:
            NotConnectedError: If the backend cannot be reached
        """
        async with self._lock:
            if self.is_connected:
                return

            self._state = ConnectionState.CONNECTING
            try:
                self._reader, self._writer = await asyncio.wait_for(
                    asyncio.open_connection(self._config.host, self._config.port),
                    timeout=self._config.connect_timeout,
                )
            except (OSError, asyncio.TimeoutError) as e:
                self._state = ConnectionState.DISCONNECTED
                logger.debug(f"Connection to {self.address} failed: {e!r}")
                raise NotConnectedError(details={"address": self.address}) from e

            self._state = ConnectionState.CONNECTED
            self._reader_task = asyncio.create_task(self._read_loop())
            logger.info(f"Connected to backend at {self.address}")

    async def close(self) -> None:
        """Close the connection and fail pending calls."""
        async with self._lock:
            if self._state in (ConnectionState.DISCONNECTED, ConnectionState.CLOSED):
                return
            self._state = ConnectionState.CLOSING
            try:
                await self._cleanup()
            finally:
                self._state = ConnectionState.CLOSED
                logger.info("Backend connection closed")

    async def __aenter__(self) -> "StreamBackend":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def call(
        self,
        method: str,
        params: Optional[Union[list[Any], dict[str, Any]]] = None,
        timeout: Optional[float] = None
    ) -> Any:
        """
        Call a backend method.

        Args:
            method: The method name to call
            params: Optional parameters
            timeout: Optional timeout override

        Returns:
            The backend's result

        Raises:
            JSONRPCError: If the backend answered with an error or timed out
            NotConnectedError: If the connection is not open
        """
        if not self.is_connected:
            raise NotConnectedError(method)

        request = JSONRPCRequest(method=method, params=params)
        timeout = timeout or self._config.request_timeout

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending_futures[request.id] = future

        try:
            await self._send(request)
            response: JSONRPCResponse = await asyncio.wait_for(future, timeout=timeout)
            response.raise_for_error()
            return response.result
        except asyncio.TimeoutError:
            raise JSONRPCError.timeout_error(timeout)
        finally:
            self._pending_futures.pop(request.id, None)

    async def native_call(self, method: str, args: Sequence[Any]) -> Any:
        """Native call primitive: ``native(method, args)``."""
        return await self.call(method, list(args))

    def on_notification(
        self,
        method: str,
        handler: Callable[[Any], None]
    ) -> Callable[[], None]:
        """
        Register a handler for backend notifications.

        Returns:
            A function to unregister the handler
        """
        self._notification_handlers.setdefault(method, []).append(handler)

        def unregister():
            handlers = self._notification_handlers.get(method, [])
            if handler in handlers:
                handlers.remove(handler)

        return unregister

    def attach(
        self,
        host: HostEnvironment,
        config: Optional[BridgeConfig] = None
    ) -> Callable[[], None]:
        """
        Present this connection to a host as the native call primitive.

        Returns:
            A function that detaches the connection again
        """
        config = config or BridgeConfig()
        host.globals[config.native_call_name] = self.native_call

        def forward(params: Any) -> None:
            entry_point = host.globals.get(config.dispatch_name)
            if not callable(entry_point):
                logger.debug("Dispatch entry point not installed; event dropped")
                return
            event, payload = dispatch_params(params)
            entry_point(event, payload)

        unregister = self.on_notification(BackendMethods.DISPATCH, forward)

        def detach() -> None:
            unregister()
            if host.globals.get(config.native_call_name) == self.native_call:
                del host.globals[config.native_call_name]

        return detach

    # Private methods

    async def _read_loop(self) -> None:
        """Read and process messages from the backend."""
        if self._reader is None:
            return

        try:
            while True:
                line = await self._reader.readline()
                if not line:
                    break

                try:
                    self._handle_message(line.strip())
                except Exception as e:
                    logger.error(f"Error handling message: {e}")

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Read loop error: {e}")

        if self._state == ConnectionState.CONNECTED:
            logger.warning(f"Backend at {self.address} closed the connection")
            self._state = ConnectionState.DISCONNECTED
            self._fail_pending("Connection closed by backend")

    def _handle_message(self, line: bytes) -> None:
        if not line:
            return

        try:
            message = parse_message(line)
        except JSONRPCError:
            logger.debug(f"Backend: {line[:200]!r}")
            return

        if isinstance(message, JSONRPCResponse):
            future = self._pending_futures.get(message.id) if message.id else None
            if future is not None and not future.done():
                future.set_result(message)
            return

        for handler in list(self._notification_handlers.get(message.method, [])):
            try:
                handler(message.params)
            except Exception as e:
                logger.error(f"Notification handler error: {e}")

    async def _send(self, request: JSONRPCRequest) -> None:
        if self._writer is None:
            raise NotConnectedError(request.method)
        self._writer.write((request.to_json() + "\n").encode())
        await self._writer.drain()

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending_futures.values():
            if not future.done():
                future.set_exception(JSONRPCError.connection_lost(reason))
        self._pending_futures.clear()

    async def _cleanup(self) -> None:
        if self._reader_task:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None

        if self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except OSError:
                pass
            self._writer = None
        self._reader = None

        self._fail_pending("Connection closed")


def dispatch_params(params: Any) -> tuple[str, Any]:
    """Split ``pytron.dispatch`` params into (event, payload)."""
    if isinstance(params, dict):
        return str(params.get("event", "")), params.get("payload")
    if isinstance(params, (list, tuple)) and params:
        return str(params[0]), params[1] if len(params) > 1 else None
    raise ValueError(f"Invalid dispatch params: {params!r}")
