"""
Bridge client.

``BridgeClient`` owns every piece of bridge state for one host: the listener
registry, the state mirror and the loaded-plugin set. It has an explicit
lifecycle (``create``/``start`` then ``shutdown``) and forwards unknown
attribute names to the backend.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from pytron_client.config import ClientConfig, get_config
from pytron_client.host import HostEnvironment, InMemoryHost
from pytron_client.plugins import PluginDescriptor, PluginLoader
from pytron_client.resources import Asset, AssetResolver, DomWatcher, ResourceInterceptor

from .diagnostics import Diagnostics
from .events import EventBus, EventCallback
from .readiness import BridgeRole, ReadinessDetector, ReadinessSignal
from .router import InvocationRouter, is_excluded
from .state import StateSynchronizer
from .waiting import TimeoutPolicy, WaitCoordinator

logger = logging.getLogger(__name__)


class BridgeClient:
    """Client side of the Pytron bridge.

    Known backend methods have typed wrappers; any other attribute that is
    not a local member becomes a backend call:

        client = await BridgeClient.create(host)
        await client.close_window()
        user = await client.get_user(42)   # forwarded as "get_user"
        client.on("state:theme", apply_theme)
        await client.shutdown()
    """

    # Read by the readiness detector instead of asking the facade
    bridge_role = BridgeRole.FACADE

    def __init__(
        self,
        host: Optional[HostEnvironment] = None,
        config: Optional[ClientConfig] = None,
    ) -> None:
        """Build the client without touching the host.

        Args:
            host: Host environment (default: a new InMemoryHost)
            config: Client configuration (default: the process-wide config)
        """
        self.host = host or InMemoryHost()
        self.config = config or get_config()

        self.detector = ReadinessDetector(self.host, self.config.bridge)
        self.waiter = WaitCoordinator(self.detector, self.config.wait)
        self.router = InvocationRouter(
            self.host,
            self.detector,
            self.waiter,
            self.config.bridge,
            auto_wait_timeout=self.config.wait.auto_wait_timeout,
        )
        self.bus = EventBus(self.host)
        self.assets = AssetResolver(self.router.invoke, self.config.resources)
        self.interceptor = ResourceInterceptor(self.host, self.assets, self.config.resources)
        self.watcher = DomWatcher(self.host, self.assets, self.config.resources)
        self.plugins = PluginLoader(self.host, self.assets, self.config.plugins, self.config.resources)
        self.synchronizer = StateSynchronizer(self.bus, self.router, self.plugins, self.config.sync)
        self.diagnostics = Diagnostics(self.host, self.router, self.config.bridge)

        self._started = False
        self._published = False

    @classmethod
    async def create(
        cls,
        host: Optional[HostEnvironment] = None,
        config: Optional[ClientConfig] = None,
    ) -> "BridgeClient":
        """Build and start a client."""
        client = cls(host, config)
        await client.start()
        return client

    @property
    def started(self) -> bool:
        return self._started

    @property
    def state(self) -> dict[str, Any]:
        """The live local state mirror."""
        return self.synchronizer.mirror

    async def start(self) -> None:
        """Attach to the host.

        Installs the dispatch entry point, publishes the client under the
        marker name, starts error capture, fetch interception and the DOM
        watcher, then pulls the initial state (if enabled).
        """
        if self._started:
            return

        namespace = self.host.globals
        bridge = self.config.bridge
        namespace[bridge.dispatch_name] = self.dispatch

        marker = namespace.get(bridge.marker_name)
        if marker is None or getattr(type(marker), "bridge_role", None) is BridgeRole.FACADE:
            namespace[bridge.marker_name] = self
            self._published = True

        self.synchronizer.attach()
        self.diagnostics.install()
        if self.config.resources.intercept_fetch:
            self.interceptor.install()
        if self.config.resources.watch_dom:
            self.watcher.start()
        self._started = True
        logger.debug(f"Bridge client started (signals: {self.active_signals()})")

        if self.config.sync.enabled:
            await self.synchronizer.sync()

    async def shutdown(self) -> None:
        """Detach from the host and release observers and pending work."""
        if not self._started:
            return
        self._started = False

        self.waiter.cancel()
        await self.watcher.stop()
        self.interceptor.uninstall()
        self.diagnostics.uninstall()
        self.synchronizer.detach()
        await self.synchronizer.drain()
        await self.diagnostics.flush()
        await self.bus.drain()
        self.bus.close()

        namespace = self.host.globals
        bridge = self.config.bridge
        if namespace.get(bridge.dispatch_name) == self.dispatch:
            del namespace[bridge.dispatch_name]
        if self._published and namespace.get(bridge.marker_name) is self:
            del namespace[bridge.marker_name]
        self._published = False
        logger.debug("Bridge client shut down")

    async def __aenter__(self) -> "BridgeClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()

    def dispatch(self, event: str, payload: Any = None) -> None:
        """Entry point the backend calls to push an event."""
        self.bus.emit(event, payload)

    # Readiness

    def is_ready(self) -> bool:
        return self.detector.is_ready()

    def active_signals(self) -> list[ReadinessSignal]:
        return self.detector.active_signals()

    async def wait_for_backend(
        self,
        timeout: Optional[float] = None,
        policy: Optional[TimeoutPolicy] = None,
    ) -> bool:
        """Wait until the backend is ready (see WaitCoordinator.wait_for_ready)."""
        return await self.waiter.wait_for_ready(timeout, policy)

    # Events

    def subscribe(self, event: str, callback: EventCallback) -> Callable[[], None]:
        return self.bus.subscribe(event, callback)

    def unsubscribe(self, event: str, callback: EventCallback) -> None:
        self.bus.unsubscribe(event, callback)

    on = subscribe
    off = unsubscribe

    # Calls

    async def invoke(self, method: str, *args: Any) -> Any:
        """Call a backend method by name."""
        return await self.router.invoke(method, args)

    async def close_window(self) -> Any:
        return await self.invoke("close")

    async def minimize_window(self) -> Any:
        return await self.invoke("minimize")

    async def start_drag(self) -> Any:
        return await self.invoke("drag")

    async def sync_state(self) -> bool:
        return await self.synchronizer.sync()

    def log(self, message: Any) -> None:
        self.diagnostics.log(message)

    # Resources and plugins

    async def resolve_asset(self, key: str) -> Optional[Asset]:
        return await self.assets.resolve(key)

    async def load_plugin(self, descriptor: Union[PluginDescriptor, Mapping[str, Any]]) -> bool:
        if not isinstance(descriptor, PluginDescriptor):
            descriptor = PluginDescriptor.from_mapping(descriptor)
        return await self.plugins.load(descriptor)

    def __getattr__(self, name: str) -> Callable[..., Awaitable[Any]]:
        # Only reached for names that are not local members
        if is_excluded(name):
            raise AttributeError(name)

        async def forward(*args: Any) -> Any:
            return await self.router.invoke(name, args)

        forward.__name__ = name
        forward.__qualname__ = f"{type(self).__name__}.{name}"
        return forward

    def __repr__(self) -> str:
        status = "started" if self._started else "stopped"
        return f"<BridgeClient {status} ready={self.detector.is_ready()}>"
