"""
Host environment contract.

The bridge never reaches for process-wide globals. Everything it needs from
the window it runs in (the global namespace where the backend presents
itself, named events, fetch, object URLs and the document) comes through a
``HostEnvironment`` instance.
"""

from __future__ import annotations

import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, MutableMapping, Optional

from .dom import Document, EventTarget


@dataclass
class Blob:
    """Immutable binary payload with a MIME type."""

    data: bytes
    type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class Response:
    """Result of a host fetch."""

    url: str
    status: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")

    def text(self, encoding: str = "utf-8") -> str:
        return self.body.decode(encoding)

    def json(self) -> Any:
        return json.loads(self.body)


class HostEnvironment(EventTarget, ABC):
    """Window-like environment the bridge client runs inside.

    Subclasses provide ``globals``, ``document`` and ``fetch``. The event
    target and the object URL registry are shared.

    ``fetch`` is looked up on the instance at call time, so interceptors may
    replace it with their own callable and restore the original later.
    """

    OBJECT_URL_PREFIX = "blob:pytron/"

    def __init__(self) -> None:
        super().__init__()
        self._object_urls: dict[str, Blob] = {}

    @property
    @abstractmethod
    def globals(self) -> MutableMapping[str, Any]:
        """Global namespace where the backend binds its entry points."""

    @property
    @abstractmethod
    def document(self) -> Document:
        """The document rendered in this environment."""

    @abstractmethod
    async def fetch(self, url: str, **options: Any) -> Response:
        """Fetch a resource."""

    def create_object_url(self, blob: Blob) -> str:
        url = f"{self.OBJECT_URL_PREFIX}{uuid.uuid4()}"
        self._object_urls[url] = blob
        return url

    def revoke_object_url(self, url: str) -> None:
        self._object_urls.pop(url, None)

    def resolve_object_url(self, url: str) -> Optional[Blob]:
        return self._object_urls.get(url)

    @property
    def object_url_count(self) -> int:
        return len(self._object_urls)
