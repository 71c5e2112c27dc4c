"""
Invocation routing.

Resolves a method name to one of the transport strategies the backend may
expose and performs the call. The backend method set is open-ended and
unversioned, so resolution happens at call time on every call.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Optional, Sequence

from pytron_client.config import BridgeConfig
from pytron_client.host import HostEnvironment

from .exceptions import MethodNotFoundError, NotConnectedError, WaitTimeoutError
from .readiness import ReadinessDetector
from .waiting import WaitCoordinator

logger = logging.getLogger(__name__)


class TransportStrategy(Enum):
    """Calling conventions, in priority order."""

    NATIVE = "native"
    NAMESPACED_GLOBAL = "namespaced-global"
    DIRECT_GLOBAL = "direct-global"


class CallOutcome(Enum):
    PENDING = auto()
    SUCCESS = auto()
    FAILURE = auto()


@dataclass
class PendingCall:
    """An in-flight backend call."""

    method: str
    args: list[Any] = field(default_factory=list)
    strategy: Optional[TransportStrategy] = None
    outcome: CallOutcome = CallOutcome.PENDING
    result: Any = None
    error: Optional[BaseException] = None


# Names probed by awaiting / serialization machinery rather than by callers
_PROBE_NAMES = frozenset({"then", "toJSON", "to_json"})


def is_excluded(name: str) -> bool:
    """Return True for names that must never be forwarded to the backend.

    Private and dunder names cover Python's protocol probes (``__await__``,
    ``__iter__``, ``__getstate__``, ...); ``then`` and ``toJSON`` are the
    thenable and serialization probes of the page side.
    """
    return not name or name.startswith("_") or name in _PROBE_NAMES


class InvocationRouter:
    """Routes method calls to the backend.

    Args:
        host: Host environment whose globals expose the backend
        detector: Readiness detector
        waiter: Wait coordinator used for the per-call auto-wait
        config: Names of the backend entry points
        auto_wait_timeout: Bounded auto-wait applied when the backend is not ready
    """

    def __init__(
        self,
        host: HostEnvironment,
        detector: ReadinessDetector,
        waiter: WaitCoordinator,
        config: Optional[BridgeConfig] = None,
        auto_wait_timeout: float = 2.0,
    ) -> None:
        self._host = host
        self._detector = detector
        self._waiter = waiter
        self._config = config or BridgeConfig()
        self._auto_wait_timeout = auto_wait_timeout
        self._call_count = 0

    @property
    def host(self) -> HostEnvironment:
        return self._host

    @property
    def call_count(self) -> int:
        return self._call_count

    def namespaced_name(self, method: str) -> str:
        return f"{self._config.global_prefix}_{method}"

    def resolve_transport(self, method: str) -> Optional[tuple[TransportStrategy, Callable[..., Any]]]:
        """Pick the highest-priority transport currently available for ``method``."""
        namespace = self._host.globals

        native = namespace.get(self._config.native_call_name)
        if callable(native):
            return TransportStrategy.NATIVE, native

        namespaced = namespace.get(self.namespaced_name(method))
        if callable(namespaced):
            return TransportStrategy.NAMESPACED_GLOBAL, namespaced

        if not is_excluded(method):
            direct = namespace.get(method)
            if callable(direct):
                return TransportStrategy.DIRECT_GLOBAL, direct

        return None

    def known_methods(self) -> list[str]:
        """List method names reachable through namespaced globals."""
        prefix = f"{self._config.global_prefix}_"
        return sorted(
            name[len(prefix):]
            for name, value in self._host.globals.items()
            if name.startswith(prefix) and callable(value)
        )

    async def invoke(self, method: str, args: Sequence[Any] = ()) -> Any:
        """Call a backend method, waiting briefly for the backend first.

        Args:
            method: Backend method name
            args: Positional arguments

        Returns:
            The backend's result

        Raises:
            NotConnectedError: If no backend signal appeared during the auto-wait
            MethodNotFoundError: If the backend is connected but lacks ``method``
            Exception: Whatever the backend raised, unchanged
        """
        if not self._detector.is_ready():
            try:
                await self._waiter.wait_for_ready(self._auto_wait_timeout)
            except WaitTimeoutError:
                logger.debug(f"Auto-wait for '{method}' timed out")
        return await self.dispatch(method, args)

    async def dispatch(self, method: str, args: Sequence[Any] = ()) -> Any:
        """Call a backend method without waiting for readiness."""
        call = PendingCall(method=method, args=list(args))

        resolved = self.resolve_transport(method)
        if resolved is None:
            call.outcome = CallOutcome.FAILURE
            if not self._detector.is_ready():
                logger.warning(f"Backend not connected. Call to '{method}' failed.")
                call.error = NotConnectedError(method)
            else:
                call.error = MethodNotFoundError(method, self.known_methods())
            raise call.error

        call.strategy, target = resolved
        return await self._perform(call, target)

    async def call_with(self, strategy: TransportStrategy, method: str, args: Sequence[Any] = ()) -> Any:
        """Call ``method`` through one specific transport.

        Raises:
            MethodNotFoundError: If that transport is not available for ``method``
        """
        namespace = self._host.globals
        if strategy is TransportStrategy.NATIVE:
            target = namespace.get(self._config.native_call_name)
        elif strategy is TransportStrategy.NAMESPACED_GLOBAL:
            target = namespace.get(self.namespaced_name(method))
        else:
            target = namespace.get(method)

        if not callable(target):
            raise MethodNotFoundError(method, self.known_methods())

        return await self._perform(PendingCall(method, list(args), strategy), target)

    async def _perform(self, call: PendingCall, target: Callable[..., Any]) -> Any:
        self._call_count += 1
        logger.debug(f"Calling '{call.method}' via {call.strategy.value}")
        try:
            if call.strategy is TransportStrategy.NATIVE:
                result = target(call.method, call.args)
            else:
                result = target(*call.args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            call.outcome = CallOutcome.FAILURE
            call.error = e
            logger.error(f"Error calling '{call.method}': {e}")
            raise

        call.outcome = CallOutcome.SUCCESS
        call.result = result
        return result
