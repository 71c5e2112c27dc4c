"""
DOM watcher that retrofits reserved-scheme resource attributes.

Elements already in the document are handled by a startup scan; elements
inserted or re-pointed later are picked up by a mutation observer. Matching
``src``/``href`` values are replaced with object URLs (or data URLs) for the
backend-served content.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from pytron_client.config import ResourceConfig
from pytron_client.host import Element, HostEnvironment, MutationObserver, MutationRecord

from .assets import Asset, AssetResolver
from .interceptor import parse_resource_url

logger = logging.getLogger(__name__)

RESOURCE_ATTRIBUTES = ("src", "href")

# Expando properties kept on processed elements
RESOLVING_PROPERTY = "pytron_resolving"
OBJECT_URL_PROPERTY = "pytron_object_url"


class DomWatcher:
    """Rewrites reserved-scheme resource attributes in a document.

    Example:
        watcher = DomWatcher(host, resolver)
        watcher.start()
        ...
        await watcher.stop()
    """

    def __init__(
        self,
        host: HostEnvironment,
        resolver: AssetResolver,
        config: Optional[ResourceConfig] = None,
    ) -> None:
        self._host = host
        self._resolver = resolver
        self._config = config or ResourceConfig()
        self._observer: Optional[MutationObserver] = None
        self._tasks: set[asyncio.Task] = set()
        self._rewrites = 0

    @property
    def running(self) -> bool:
        return self._observer is not None

    @property
    def rewrites(self) -> int:
        """Number of attributes rewritten so far."""
        return self._rewrites

    def start(self) -> None:
        """Scan the document and start observing it.

        Must be called from a running event loop.
        """
        if self.running:
            return

        document = self._host.document
        self._scan(document.iter_elements())

        self._observer = MutationObserver(self._on_mutations)
        self._observer.observe(
            document.document_element,
            child_list=True,
            subtree=True,
            attribute_filter=list(RESOURCE_ATTRIBUTES),
        )
        logger.debug("DOM watcher started")

    async def settle(self) -> None:
        """Wait for every in-flight resolution to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Stop observing and wait for in-flight work."""
        if self._observer is not None:
            self._observer.disconnect()
            self._observer = None
        await self.settle()
        logger.debug("DOM watcher stopped")

    def matches(self, element: Element) -> bool:
        """Return True if any resource attribute of ``element`` uses the scheme."""
        return any(
            parse_resource_url(element.get_attribute(name), self._config.scheme)
            for name in RESOURCE_ATTRIBUTES
        )

    def _on_mutations(self, records: list[MutationRecord], observer: MutationObserver) -> None:
        for record in records:
            if record.type == "attributes":
                self._scan([record.target])
            elif record.type == "childList":
                for node in record.added_nodes:
                    self._scan([node, *node.iter_descendants()])

    def _scan(self, elements: Iterable[Element]) -> None:
        for element in elements:
            if element.properties.get(RESOLVING_PROPERTY):
                continue
            if not self.matches(element):
                continue
            task = asyncio.ensure_future(self._process(element))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _process(self, element: Element) -> None:
        original = element
        element.properties[RESOLVING_PROPERTY] = True
        stale = False
        try:
            for name in RESOURCE_ATTRIBUTES:
                url = element.get_attribute(name)
                key = parse_resource_url(url, self._config.scheme)
                if key is None:
                    continue
                asset = await self._resolver.resolve(key)
                if element.get_attribute(name) != url:
                    # Re-pointed while resolving; mutations were skipped meanwhile
                    logger.debug(f"Discarding '{key}' for {element!r}: {name} changed")
                    stale = True
                    continue
                if asset is None:
                    logger.debug(f"Leaving {element!r} untouched: '{key}' not resolved")
                    continue
                element = self._apply(element, name, asset)
        except Exception:
            logger.exception(f"Failed to rewrite resources of {element!r}")
        finally:
            original.properties.pop(RESOLVING_PROPERTY, None)
            element.properties.pop(RESOLVING_PROPERTY, None)

        if stale and self.running:
            self._scan([element])

    def _apply(self, element: Element, attribute: str, asset: Asset) -> Element:
        """Point ``attribute`` at the asset; return the element now in the tree."""
        previous = element.properties.pop(OBJECT_URL_PROPERTY, None)
        if previous:
            self._host.revoke_object_url(previous)

        if asset.blob is not None:
            url = self._host.create_object_url(asset.blob)
        else:
            url = asset.data_url

        if element.tag_name == "script" and attribute == "src":
            element = self._swap_script(element, url)
        else:
            element.set_attribute(attribute, url)

        if asset.blob is not None:
            element.properties[OBJECT_URL_PROPERTY] = url
        self._rewrites += 1
        logger.debug(f"Rewrote {attribute} of <{element.tag_name}> for '{asset.key}'")
        return element

    def _swap_script(self, script: Element, url: str) -> Element:
        # Changing src on a parsed script does not run it again
        replacement = self._host.document.create_element("script")
        for name, value in script.attributes.items():
            if name != "src":
                replacement.set_attribute(name, value)
        replacement.set_attribute("src", url)
        replacement.properties[RESOLVING_PROPERTY] = True

        if script.parent is not None:
            script.replace_with(replacement)
        return replacement
