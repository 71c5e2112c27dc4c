"""
In-memory host environment.

Provides a plain dict as the global namespace, an in-memory document and a
fetch that serves ``blob:`` object URLs locally and hands everything else to a
network fetcher. Script elements with a ``src`` are "loaded" through
``fetch`` when they become connected, firing ``load`` or ``error`` on the
element.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, MutableMapping, Optional

from .base import HostEnvironment, Response
from .dom import Document, Element
from .network import NetworkFetcher

logger = logging.getLogger(__name__)

Fetcher = Callable[..., Awaitable[Response]]


class InMemoryHost(HostEnvironment):
    """Host environment backed by in-process data structures.

    Example:
        host = InMemoryHost()
        host.globals["pytron_close"] = close_window
        client = await BridgeClient.create(host)
    """

    def __init__(
        self,
        network: Optional[Fetcher] = None,
        document: Optional[Document] = None,
    ) -> None:
        super().__init__()
        self._globals: dict[str, Any] = {}
        self._document = document or Document()
        self._document.on_connected = self._on_element_connected
        self._network: Fetcher = network or NetworkFetcher()
        self._pending_loads: set[asyncio.Task] = set()

    @property
    def globals(self) -> MutableMapping[str, Any]:
        return self._globals

    @property
    def document(self) -> Document:
        return self._document

    async def fetch(self, url: str, **options: Any) -> Response:
        if url.startswith(self.OBJECT_URL_PREFIX):
            blob = self.resolve_object_url(url)
            if blob is None:
                return Response(url=url, status=404)
            return Response(url=url, headers={"content-type": blob.type}, body=blob.data)
        return await self._network(url, **options)

    async def settle(self) -> None:
        """Wait until every pending script load has finished."""
        while self._pending_loads:
            await asyncio.gather(*list(self._pending_loads), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._pending_loads):
            task.cancel()
        await asyncio.gather(*list(self._pending_loads), return_exceptions=True)
        if isinstance(self._network, NetworkFetcher):
            await self._network.aclose()

    def _on_element_connected(self, element: Element) -> None:
        if element.tag_name != "script" or not element.get_attribute("src"):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop; script {element.get_attribute('src')} not loaded")
            return
        task = loop.create_task(self._load_script(element))
        self._pending_loads.add(task)
        task.add_done_callback(self._pending_loads.discard)

    async def _load_script(self, element: Element) -> None:
        src = element.get_attribute("src") or ""
        try:
            # Read fetch off the instance so an installed interceptor sees it
            response = await self.fetch(src)
        except Exception as e:
            logger.warning(f"Script load failed for {src}: {e}")
            element.dispatch_event("error", {"src": src, "error": str(e)})
            return

        if response.ok:
            element.dispatch_event("load", {"src": src})
        else:
            element.dispatch_event("error", {"src": src, "status": response.status})
