"""
State synchronization.

Keeps a local mirror of the backend's key/value state: a bulk pull at startup
followed by incremental updates pushed as ``pytron:state-update`` events.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping, Optional

from pytron_client.config import SyncConfig
from pytron_client.plugins import PluginDescriptor, PluginLoader

from .events import (
    STATE_CHANGED_EVENT,
    STATE_UPDATE_EVENT,
    EventBus,
    decode_payload,
    state_key_event,
)
from .router import InvocationRouter, TransportStrategy

logger = logging.getLogger(__name__)


class StateSynchronizer:
    """Owns the local state mirror.

    The mirror is a plain dict returned by ``mirror``. Application code can
    mutate it, and such writes are neither prevented nor reported back; the
    next push for a key overwrites it.

    Args:
        bus: Event bus carrying pushed updates and change notifications
        router: Router used for the startup pull
        plugin_loader: Loader for plugins listed under the reserved key
        config: Sync settings
    """

    def __init__(
        self,
        bus: EventBus,
        router: InvocationRouter,
        plugin_loader: Optional[PluginLoader] = None,
        config: Optional[SyncConfig] = None,
    ) -> None:
        self._bus = bus
        self._router = router
        self._plugin_loader = plugin_loader
        self._config = config or SyncConfig()
        self._mirror: dict[str, Any] = {}
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._plugin_tasks: set[asyncio.Task] = set()

    @property
    def mirror(self) -> dict[str, Any]:
        return self._mirror

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    def attach(self) -> None:
        """Start applying pushed updates."""
        if self._unsubscribe is None:
            self._unsubscribe = self._bus.subscribe(STATE_UPDATE_EVENT, self.apply_update)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def apply_update(self, payload: Any) -> None:
        """Apply one pushed ``{key, value}`` update."""
        payload = decode_payload(payload)
        if not isinstance(payload, Mapping) or "key" not in payload:
            logger.warning(f"Ignoring malformed state update: {payload!r}")
            return

        key = str(payload["key"])
        value = payload.get("value")
        self._mirror[key] = value

        self._bus.emit(state_key_event(key), value, decode=False)
        self._bus.emit(STATE_CHANGED_EVENT, dict(self._mirror), decode=False)

        if key == self._config.plugins_key:
            self._schedule_plugins(value)

    async def sync(self) -> bool:
        """Pull the full state snapshot from the backend.

        Returns:
            True if a snapshot was merged, False after the last failed attempt
        """
        attempts = max(1, self._config.attempts)
        for attempt in range(1, attempts + 1):
            try:
                snapshot = decode_payload(await self._pull())
            except Exception as e:
                logger.debug(f"State sync attempt {attempt}/{attempts} failed: {e}")
                snapshot = None

            if isinstance(snapshot, Mapping):
                self._merge(snapshot)
                return True

            if snapshot is not None:
                logger.debug(f"State sync attempt {attempt} returned {type(snapshot).__name__}")
            if attempt < attempts:
                await asyncio.sleep(self._config.backoff * attempt)

        logger.warning(f"State sync failed after {attempts} attempts")
        return False

    async def _pull(self) -> Any:
        method = self._config.method
        # Higher-level wrapper first, then the native primitive
        wrapper = self._router.host.globals.get(self._router.namespaced_name(method))
        if callable(wrapper):
            return await self._router.call_with(TransportStrategy.NAMESPACED_GLOBAL, method)
        return await self._router.call_with(TransportStrategy.NATIVE, method)

    def _merge(self, snapshot: Mapping[str, Any]) -> None:
        self._mirror.update(snapshot)
        logger.debug(f"Merged {len(snapshot)} state key(s)")
        self._bus.emit(STATE_CHANGED_EVENT, dict(self._mirror), decode=False)

        plugins = snapshot.get(self._config.plugins_key)
        if plugins:
            self._schedule_plugins(plugins)

    def _schedule_plugins(self, entries: Any) -> None:
        if self._plugin_loader is None or not isinstance(entries, (list, tuple)):
            return
        for entry in entries:
            if not isinstance(entry, Mapping):
                continue
            try:
                descriptor = PluginDescriptor.from_mapping(entry)
            except ValueError as e:
                logger.warning(f"Skipping plugin entry: {e}")
                continue
            if not descriptor.ui_entry or self._plugin_loader.is_loaded(descriptor.name):
                continue
            task = asyncio.ensure_future(self._plugin_loader.load(descriptor))
            self._plugin_tasks.add(task)
            task.add_done_callback(self._plugin_done)

    def _plugin_done(self, task: asyncio.Task) -> None:
        self._plugin_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Plugin load failed: {task.exception()}")

    async def drain(self) -> None:
        """Wait for plugin loads started by state updates."""
        while self._plugin_tasks:
            await asyncio.gather(*list(self._plugin_tasks), return_exceptions=True)
