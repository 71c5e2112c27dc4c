"""Host environment collaborators: globals, events, fetch and the document."""

from pytron_client.host.base import Blob, HostEnvironment, Response
from pytron_client.host.dom import (
    Document,
    Element,
    Event,
    EventTarget,
    MutationObserver,
    MutationRecord,
)
from pytron_client.host.memory import InMemoryHost
from pytron_client.host.network import NetworkFetcher, decode_data_url

__all__ = [
    "Blob",
    "Document",
    "Element",
    "Event",
    "EventTarget",
    "HostEnvironment",
    "InMemoryHost",
    "MutationObserver",
    "MutationRecord",
    "NetworkFetcher",
    "Response",
    "decode_data_url",
]
