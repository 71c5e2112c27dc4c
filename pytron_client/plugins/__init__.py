"""UI plugins declared by the backend.

Each plugin ships a module script and optionally a widget mounted into
matching slots of the document.
"""

from pytron_client.plugins.loader import PluginDescriptor, PluginLoader, element_tag

__all__ = [
    "PluginDescriptor",
    "PluginLoader",
    "element_tag",
]
