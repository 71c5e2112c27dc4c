"""Plugin loader for backend-declared UI plugins.

A plugin contributes a module script (its UI entry) and, optionally, a
custom element mounted into every slot that declares the plugin's slot
identifier. Plugins are loaded at most once per name for the lifetime of
the loader.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Set

from pytron_client.config import PluginConfig, ResourceConfig
from pytron_client.host import Element, Event, HostEnvironment
from pytron_client.resources import AssetResolver, parse_resource_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PluginDescriptor:
    """Description of a UI plugin.

    Attributes:
        name: Unique plugin name
        ui_entry: Script URL of the plugin's UI module (plain or reserved-scheme)
        slot: Slot identifier the plugin's widget is mounted into
    """

    name: str
    ui_entry: Optional[str] = None
    slot: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PluginDescriptor":
        """Build a descriptor from a backend plugin entry.

        Accepts ``ui_entry``, ``uiEntry`` or ``entry`` for the UI entry.

        Raises:
            ValueError: If the entry has no name
        """
        name = data.get("name")
        if not name:
            raise ValueError("Plugin entry has no name")
        ui_entry = data.get("ui_entry") or data.get("uiEntry") or data.get("entry")
        return cls(name=str(name), ui_entry=ui_entry or None, slot=data.get("slot") or None)


def element_tag(plugin_name: str, suffix: str = "-widget") -> str:
    """Derive the custom element tag for a plugin.

    Custom element names must contain a hyphen, so ``suffix`` is appended
    when the slugified name has none.

    Example:
        element_tag("Clock")         # "clock-widget"
        element_tag("weather_panel") # "weather-panel"
    """
    tag = re.sub(r"[^a-z0-9]+", "-", plugin_name.lower()).strip("-")
    if "-" not in tag:
        tag = f"{tag}{suffix}"
    return tag


class PluginLoader:
    """Injects plugin UI entries into the host document.

    Example:
        loader = PluginLoader(host, resolver)
        await loader.load(PluginDescriptor("clock", "pytron://plugins/clock.js", "sidebar"))
    """

    def __init__(
        self,
        host: HostEnvironment,
        resolver: Optional[AssetResolver] = None,
        config: Optional[PluginConfig] = None,
        resources: Optional[ResourceConfig] = None,
    ) -> None:
        """Initialize the plugin loader.

        Args:
            host: Host environment whose document receives the plugins
            resolver: Resolver for reserved-scheme UI entries
            config: Slot attribute and element naming settings
            resources: Reserved scheme settings
        """
        self._host = host
        self._resolver = resolver
        self._config = config or PluginConfig()
        self._resources = resources or ResourceConfig()
        self._loaded: Set[str] = set()

    @property
    def loaded(self) -> Set[str]:
        """Names of plugins loaded (or loading) so far."""
        return set(self._loaded)

    def is_loaded(self, name: str) -> bool:
        return name in self._loaded

    async def load(self, descriptor: PluginDescriptor) -> bool:
        """Load a plugin once.

        Args:
            descriptor: The plugin to load

        Returns:
            True if the plugin script loaded now, False if the plugin was
            already loaded or its script failed to load
        """
        if descriptor.name in self._loaded:
            logger.debug(f"Plugin '{descriptor.name}' already loaded")
            return False
        if not descriptor.ui_entry:
            logger.debug(f"Plugin '{descriptor.name}' has no UI entry")
            return False

        # Recorded before the first suspension point so concurrent loads skip
        self._loaded.add(descriptor.name)

        src = await self._entry_url(descriptor.ui_entry)
        script = self._host.document.create_element("script")
        script.set_attribute("type", "module")
        script.set_attribute("data-pytron-plugin", descriptor.name)
        script.set_attribute("src", src)

        loaded = await self._inject(script)
        if not loaded:
            logger.error(f"Failed to load plugin '{descriptor.name}' from {descriptor.ui_entry}")
            return False

        logger.info(f"Loaded plugin '{descriptor.name}'")
        if descriptor.slot:
            self._mount(descriptor)
        return True

    async def _entry_url(self, entry: str) -> str:
        key = parse_resource_url(entry, self._resources.scheme)
        if key is None or self._resolver is None:
            return entry

        asset = await self._resolver.resolve(key)
        if asset is None:
            return entry
        if asset.blob is not None:
            return self._host.create_object_url(asset.blob)
        return asset.data_url or entry

    async def _inject(self, script: Element) -> bool:
        done: asyncio.Future = asyncio.get_running_loop().create_future()

        def on_load(event: Event) -> None:
            if not done.done():
                done.set_result(True)

        def on_error(event: Event) -> None:
            if not done.done():
                done.set_result(False)

        script.add_event_listener("load", on_load)
        script.add_event_listener("error", on_error)
        try:
            self._host.document.head.append_child(script)
            return await done
        finally:
            script.remove_event_listener("load", on_load)
            script.remove_event_listener("error", on_error)

    def _mount(self, descriptor: PluginDescriptor) -> int:
        """Append one widget to every slot present right now."""
        document = self._host.document
        tag = element_tag(descriptor.name, self._config.element_suffix)
        slots = document.elements_with_attribute(self._config.slot_attribute, descriptor.slot)
        for slot in slots:
            slot.append_child(document.create_element(tag))
        logger.debug(f"Mounted <{tag}> into {len(slots)} slot(s)")
        return len(slots)
