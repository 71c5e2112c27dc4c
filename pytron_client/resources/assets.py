"""
Backend asset resolution.

Resolves an opaque resource key to content served by the backend, trying the
binary call first and the legacy data-URL call second. Missing assets are
usually decorative or optional, so every failure degrades to ``None``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

from pytron_client.config import ResourceConfig
from pytron_client.host import Blob

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

Invoker = Callable[[str, Sequence[Any]], Awaitable[Any]]


@dataclass(frozen=True)
class Asset:
    """A resolved backend asset.

    Exactly one of ``blob`` (binary payload) and ``data_url`` (ready-to-use
    reference from the legacy call) is set.
    """

    key: str
    mime_type: str
    blob: Optional[Blob] = None
    data_url: Optional[str] = None

    @property
    def is_binary(self) -> bool:
        return self.blob is not None


def bytes_from_wire(raw: Any) -> bytes:
    """Reinterpret a byte-safe string as the byte sequence it carries.

    Each character's code point becomes one byte, which is exactly the
    ``latin-1`` codec.

    Raises:
        UnicodeEncodeError: If a code point does not fit in a byte
        TypeError: If ``raw`` is neither text nor bytes
    """
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw)
    if isinstance(raw, str):
        return raw.encode("latin-1")
    if isinstance(raw, list):
        return bytes(raw)
    raise TypeError(f"Unsupported binary payload type: {type(raw).__name__}")


def _unpack_binary_result(result: Any) -> Optional[tuple[Any, str]]:
    """Normalize the binary call's result to (raw payload, MIME type)."""
    if not result:
        return None
    if isinstance(result, dict):
        raw = result.get("data", result.get("raw"))
        mime_type = result.get("mime") or result.get("mime_type") or DEFAULT_MIME_TYPE
    elif isinstance(result, (list, tuple)) and len(result) == 2:
        raw, mime_type = result
        mime_type = mime_type or DEFAULT_MIME_TYPE
    else:
        raise TypeError(f"Unexpected binary asset result: {type(result).__name__}")
    if raw is None:
        return None
    return raw, mime_type


class AssetResolver:
    """Resolves resource keys through backend calls.

    Args:
        invoke: Coroutine function performing a backend call (method, args)
        config: Names of the asset methods
    """

    def __init__(self, invoke: Invoker, config: Optional[ResourceConfig] = None) -> None:
        self._invoke = invoke
        self._config = config or ResourceConfig()

    async def resolve(self, key: str) -> Optional[Asset]:
        """Resolve ``key`` to an asset, or None if the backend cannot serve it."""
        asset = await self._resolve_binary(key)
        if asset is not None:
            return asset
        return await self._resolve_legacy(key)

    async def _resolve_binary(self, key: str) -> Optional[Asset]:
        try:
            result = await self._invoke(self._config.binary_method, [key])
            unpacked = _unpack_binary_result(result)
            if unpacked is None:
                return None
            raw, mime_type = unpacked
            data = bytes_from_wire(raw)
        except Exception as e:
            logger.debug(f"Binary asset call failed for '{key}': {e}")
            return None

        return Asset(key=key, mime_type=mime_type, blob=Blob(data, mime_type))

    async def _resolve_legacy(self, key: str) -> Optional[Asset]:
        try:
            data_url = await self._invoke(self._config.legacy_method, [key])
        except Exception as e:
            logger.warning(f"Asset '{key}' could not be resolved: {e}")
            return None

        if not data_url or not isinstance(data_url, str):
            logger.debug(f"Asset '{key}' not found")
            return None

        mime_type = DEFAULT_MIME_TYPE
        if data_url.startswith("data:"):
            mime_type = data_url[5:].split(",", 1)[0].split(";", 1)[0] or "text/plain"
        return Asset(key=key, mime_type=mime_type, data_url=data_url)
