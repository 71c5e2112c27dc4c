"""Pytron client - bridge between in-page code and a Pytron backend."""

__app_name__ = "pytron-client"
__version__ = "0.3.0"

from pytron_client.bridge import (
    BridgeClient,
    BridgeError,
    EventBus,
    MethodNotFoundError,
    NotConnectedError,
    WaitTimeoutError,
)
from pytron_client.config import ClientConfig, load_config
from pytron_client.host import InMemoryHost
from pytron_client.plugins import PluginDescriptor

__all__ = [
    "__app_name__",
    "__version__",
    "BridgeClient",
    "BridgeError",
    "ClientConfig",
    "EventBus",
    "InMemoryHost",
    "MethodNotFoundError",
    "NotConnectedError",
    "PluginDescriptor",
    "WaitTimeoutError",
    "load_config",
]
