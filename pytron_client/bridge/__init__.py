"""Bridge core: readiness, waits, call routing, events and state.

Example:
    from pytron_client.bridge import BridgeClient

    async with BridgeClient(host) as client:
        await client.invoke("greet", "world")
"""

from pytron_client.bridge.client import BridgeClient
from pytron_client.bridge.diagnostics import Diagnostics
from pytron_client.bridge.events import (
    STATE_CHANGED_EVENT,
    STATE_UPDATE_EVENT,
    EventBus,
    decode_payload,
    state_key_event,
)
from pytron_client.bridge.exceptions import (
    BridgeError,
    MethodNotFoundError,
    NotConnectedError,
    RemoteInvocationError,
    WaitTimeoutError,
)
from pytron_client.bridge.readiness import (
    BridgeRole,
    ReadinessDetector,
    ReadinessSignal,
)
from pytron_client.bridge.router import (
    CallOutcome,
    InvocationRouter,
    PendingCall,
    TransportStrategy,
    is_excluded,
)
from pytron_client.bridge.state import StateSynchronizer
from pytron_client.bridge.waiting import TimeoutPolicy, WaitCoordinator, wait_for

__all__ = [
    # Client
    "BridgeClient",
    # Components
    "Diagnostics",
    "EventBus",
    "InvocationRouter",
    "ReadinessDetector",
    "StateSynchronizer",
    "WaitCoordinator",
    # Types
    "BridgeRole",
    "CallOutcome",
    "PendingCall",
    "ReadinessSignal",
    "TimeoutPolicy",
    "TransportStrategy",
    # Errors
    "BridgeError",
    "MethodNotFoundError",
    "NotConnectedError",
    "RemoteInvocationError",
    "WaitTimeoutError",
    # Helpers
    "STATE_CHANGED_EVENT",
    "STATE_UPDATE_EVENT",
    "decode_payload",
    "is_excluded",
    "state_key_event",
    "wait_for",
]
