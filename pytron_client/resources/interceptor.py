"""
Fetch interception for backend-served resources.

Requests for ``<scheme>://<key>`` URLs are answered from the backend through
the asset resolver; every other request goes to the host's original fetch.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from pytron_client.config import ResourceConfig
from pytron_client.host import HostEnvironment, Response

from .assets import AssetResolver

logger = logging.getLogger(__name__)


def parse_resource_url(url: Any, scheme: str) -> Optional[str]:
    """Extract the asset key from a reserved-scheme URL.

    Query and fragment are stripped.

    Returns:
        The key, or None if ``url`` does not use ``scheme`` or has no key
    """
    if not isinstance(url, str):
        return None
    prefix = f"{scheme}://"
    if not url.startswith(prefix):
        return None
    key = url[len(prefix):]
    for separator in ("#", "?"):
        key = key.split(separator, 1)[0]
    return key or None


class ResourceInterceptor:
    """Substitutes backend assets for reserved-scheme fetches.

    Example:
        interceptor = ResourceInterceptor(host, resolver)
        interceptor.install()
        response = await host.fetch("pytron://logo.png")
        interceptor.uninstall()
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
        self._original_fetch: Optional[Callable[..., Awaitable[Response]]] = None
        self._shadowed_fetch: Any = None

    @property
    def scheme(self) -> str:
        return self._config.scheme

    @property
    def installed(self) -> bool:
        return self._original_fetch is not None

    def install(self) -> None:
        """Replace the host's fetch with the intercepting one."""
        if self.installed:
            return
        self._original_fetch = self._host.fetch
        self._shadowed_fetch = self._host.__dict__.get("fetch")
        self._host.fetch = self.fetch  # type: ignore[method-assign]
        logger.debug(f"Intercepting {self.scheme}:// fetches")

    def uninstall(self) -> None:
        """Restore the host's original fetch."""
        if self._original_fetch is None:
            return
        if self._shadowed_fetch is None:
            # Drop the instance attribute so the class method is visible again
            self._host.__dict__.pop("fetch", None)
        else:
            self._host.fetch = self._shadowed_fetch  # type: ignore[method-assign]
        self._shadowed_fetch = None
        self._original_fetch = None

    async def fetch(self, url: str, **options: Any) -> Response:
        original = self._original_fetch or self._host.fetch

        key = parse_resource_url(url, self.scheme)
        if key is None:
            return await original(url, **options)

        asset = await self._resolver.resolve(key)
        if asset is None:
            logger.debug(f"Asset '{key}' not resolved; answering 404")
            return Response(url=url, status=404)

        if asset.blob is not None:
            return Response(
                url=url,
                headers={"content-type": asset.mime_type},
                body=asset.blob.data,
            )

        return await original(asset.data_url, **options)
