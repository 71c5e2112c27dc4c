"""
Network layer for hosts.

``data:`` URLs are decoded locally; everything else goes out over HTTP with
httpx.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Optional
from urllib.parse import unquote_to_bytes

import httpx

from .base import Response

logger = logging.getLogger(__name__)


def decode_data_url(url: str) -> tuple[bytes, str]:
    """Decode a ``data:`` URL.

    Args:
        url: URL of the form ``data:[<mime>][;base64],<payload>``

    Returns:
        Tuple of (payload bytes, MIME type)

    Raises:
        ValueError: If the URL is not a well-formed data URL
    """
    if not url.startswith("data:"):
        raise ValueError(f"Not a data URL: {url[:32]}")

    header, sep, payload = url[5:].partition(",")
    if not sep:
        raise ValueError("Malformed data URL: missing ','")

    params = header.split(";")
    mime_type = params[0] or "text/plain;charset=US-ASCII"
    if params[-1] == "base64":
        try:
            return base64.b64decode(payload, validate=False), mime_type
        except (ValueError, TypeError) as e:
            raise ValueError(f"Malformed base64 payload: {e}") from e
    return unquote_to_bytes(payload), mime_type


class NetworkFetcher:
    """Fetches resources for a host.

    Example:
        fetcher = NetworkFetcher()
        response = await fetcher("https://example.com/logo.png")
        await fetcher.aclose()
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    async def __call__(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[dict[str, str]] = None,
        body: Optional[bytes] = None,
        **_: Any,
    ) -> Response:
        if url.startswith("data:"):
            try:
                data, mime_type = decode_data_url(url)
            except ValueError as e:
                logger.warning(f"Rejecting data URL: {e}")
                return Response(url=url, status=400)
            return Response(url=url, headers={"content-type": mime_type}, body=data)

        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)

        logger.debug(f"{method} {url}")
        response = await self._client.request(method, url, headers=headers, content=body)
        return Response(
            url=str(response.url),
            status=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            body=response.content,
        )

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
