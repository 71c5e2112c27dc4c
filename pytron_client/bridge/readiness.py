"""
Backend readiness detection.

The backend may present itself in several ways depending on its version and
integration style, and it may do so at any point after the page started.
Readiness is therefore recomputed from the host globals on every check.
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Any, Mapping, Optional

from pytron_client.config import BridgeConfig
from pytron_client.host import HostEnvironment


class BridgeRole(Enum):
    """Distinguishes a synchronized backend object from a forwarding facade."""

    REAL = auto()
    FACADE = auto()


class ReadinessSignal(Enum):
    """Independent indicators that a backend transport is usable."""

    NATIVE_CALL = auto()
    BRIDGE_MARKER = auto()
    GLOBAL_FUNCTION = auto()


def role_of(obj: Any) -> BridgeRole:
    """Return the bridge role of an object without triggering forwarding.

    The role is read from the class, never from the instance, so a facade's
    attribute forwarding is never consulted.
    """
    role = getattr(type(obj), "bridge_role", None)
    return role if isinstance(role, BridgeRole) else BridgeRole.REAL


class ReadinessDetector:
    """Checks whether a backend transport currently exists.

    Args:
        host: Host environment to inspect
        config: Names of the backend entry points
    """

    def __init__(self, host: HostEnvironment, config: Optional[BridgeConfig] = None) -> None:
        self._host = host
        self._config = config or BridgeConfig()

    def is_ready(self) -> bool:
        """Return True as soon as any readiness signal is present."""
        return (
            self._has_native_call()
            or self._has_ready_marker()
            or self._has_global_function()
        )

    def active_signals(self) -> list[ReadinessSignal]:
        """Return every signal currently present, in check order."""
        signals = []
        if self._has_native_call():
            signals.append(ReadinessSignal.NATIVE_CALL)
        if self._has_ready_marker():
            signals.append(ReadinessSignal.BRIDGE_MARKER)
        if self._has_global_function():
            signals.append(ReadinessSignal.GLOBAL_FUNCTION)
        return signals

    def _has_native_call(self) -> bool:
        return callable(self._host.globals.get(self._config.native_call_name))

    def _has_ready_marker(self) -> bool:
        marker = self._host.globals.get(self._config.marker_name)
        if marker is None:
            return False
        # The client publishes itself under the marker name; asking the facade
        # for "is_ready" would turn into a remote call and loop back here.
        if role_of(marker) is BridgeRole.FACADE:
            return False
        if isinstance(marker, Mapping):
            return marker.get("is_ready") is True
        return getattr(marker, "is_ready", False) is True

    def _has_global_function(self) -> bool:
        namespace = self._host.globals
        return any(callable(namespace.get(name)) for name in self._config.ready_functions)
