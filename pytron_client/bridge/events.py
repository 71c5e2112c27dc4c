"""Event names and the in-process EventBus for backend-pushed events.

The bus keeps its own subscriber registry. The first subscription to a name
attaches a single host listener for that name which unwraps the host event's
``detail`` and drains the registry; the dispatch entry point the backend calls
directly feeds the same registry through ``emit``.
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Set

from pytron_client.host import Event, HostEnvironment

logger = logging.getLogger(__name__)


# Reserved event names
STATE_UPDATE_EVENT = "pytron:state-update"
STATE_CHANGED_EVENT = "pytron:state-changed"
STATE_KEY_EVENT_PREFIX = "state:"

# Host-level error events captured for backend error reporting
HOST_ERROR_EVENT = "error"
HOST_REJECTION_EVENT = "unhandledrejection"


def state_key_event(key: str) -> str:
    """Return the key-scoped event name for a state key."""
    return f"{STATE_KEY_EVENT_PREFIX}{key}"


def decode_payload(payload: Any) -> Any:
    """Decode JSON text payloads, returning the raw value if decoding fails."""
    if not isinstance(payload, (str, bytes, bytearray)):
        return payload
    try:
        return json.loads(payload)
    except (ValueError, TypeError):
        return payload


# Type alias for subscriber callbacks
EventCallback = Callable[[Any], Any]


class EventBus:
    """Publish/subscribe register for backend events.

    Delivery is synchronous and in subscription order. A failing callback is
    logged and does not prevent delivery to the callbacks after it.

    Example:
        bus = EventBus(host)

        def on_theme(theme: str) -> None:
            print(f"Theme is now {theme}")

        bus.subscribe("state:theme", on_theme)
        bus.emit("state:theme", "dark")
    """

    def __init__(self, host: Optional[HostEnvironment] = None) -> None:
        """Initialize the event bus.

        Args:
            host: Host whose named events are bridged into the bus
        """
        self._host = host
        self._subscribers: Dict[str, List[EventCallback]] = {}
        self._host_listeners: Dict[str, Callable[[Event], None]] = {}
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, event: str, callback: EventCallback) -> Callable[[], None]:
        """Subscribe a callback to an event name.

        Registering the same callback twice stores it twice.

        Args:
            event: The event name to subscribe to
            callback: Called with the event payload

        Returns:
            Unsubscribe function to remove this subscription
        """
        self._subscribers.setdefault(event, []).append(callback)
        self._bind_host(event)

        def unsubscribe() -> None:
            self.unsubscribe(event, callback)

        return unsubscribe

    def unsubscribe(self, event: str, callback: EventCallback) -> None:
        """Remove one registration of ``callback`` (matched by identity)."""
        callbacks = self._subscribers.get(event)
        if not callbacks:
            return

        for index, registered in enumerate(callbacks):
            if registered is callback:
                del callbacks[index]
                break

        if not callbacks:
            del self._subscribers[event]
            self._unbind_host(event)

    def subscriber_count(self, event: str) -> int:
        return len(self._subscribers.get(event, []))

    def emit(self, event: str, payload: Any = None, decode: bool = True) -> None:
        """Deliver a payload to every callback currently subscribed to ``event``.

        Args:
            event: The event name
            payload: Event payload
            decode: Decode text payloads as JSON when possible (payloads
                produced in-process are passed with decode=False)
        """
        if decode:
            payload = decode_payload(payload)
        for callback in list(self._subscribers.get(event, [])):
            self._safe_call(event, callback, payload)

    def _safe_call(self, event: str, callback: EventCallback, payload: Any) -> None:
        """Call a callback, logging (not propagating) its failure."""
        try:
            result = callback(payload)
        except Exception:
            logger.exception(f"Event callback error for '{event}'")
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(lambda t: self._task_done(event, t))

    def _task_done(self, event: str, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Async event callback error for '{event}': {error}")

    def _bind_host(self, event: str) -> None:
        if self._host is None or event in self._host_listeners:
            return

        def on_host_event(host_event: Event) -> None:
            self.emit(event, host_event.detail)

        self._host_listeners[event] = on_host_event
        self._host.add_event_listener(event, on_host_event)

    def _unbind_host(self, event: str) -> None:
        listener = self._host_listeners.pop(event, None)
        if listener is not None and self._host is not None:
            self._host.remove_event_listener(event, listener)

    async def drain(self) -> None:
        """Wait for callbacks that returned awaitables to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Detach from the host and drop every subscription."""
        for event in list(self._host_listeners):
            self._unbind_host(event)
        self._subscribers.clear()
        for task in list(self._tasks):
            task.cancel()
