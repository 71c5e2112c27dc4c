"""Backend-served resources: asset resolution, fetch interception and DOM rewriting."""

from pytron_client.resources.assets import Asset, AssetResolver, bytes_from_wire
from pytron_client.resources.interceptor import ResourceInterceptor, parse_resource_url
from pytron_client.resources.watcher import DomWatcher

__all__ = [
    "Asset",
    "AssetResolver",
    "DomWatcher",
    "ResourceInterceptor",
    "bytes_from_wire",
    "parse_resource_url",
]
