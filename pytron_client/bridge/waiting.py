"""
Awaitable readiness waits.

Turns the point-in-time readiness check into a condition that can be awaited
with polling, a timeout and a cancellation event.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Optional

from pytron_client.config import WaitConfig

from .exceptions import WaitTimeoutError
from .readiness import ReadinessDetector

logger = logging.getLogger(__name__)


class TimeoutPolicy(str, Enum):
    """What a wait does when its timeout elapses."""

    # Return quietly; the caller's next step fails with a precise error
    RESOLVE = "resolve"

    # Raise WaitTimeoutError
    REJECT = "reject"


async def wait_for(
    condition: Callable[[], bool],
    timeout: float,
    interval: float = 0.05,
    cancel_event: Optional[asyncio.Event] = None,
) -> bool:
    """Poll ``condition`` until it holds, the timeout elapses or the wait is cancelled.

    Args:
        condition: Synchronous predicate to poll
        timeout: Maximum time to wait in seconds
        interval: Delay between polls in seconds
        cancel_event: Optional event that ends the wait early when set

    Returns:
        True if the condition held, False on timeout or cancellation
    """
    if condition():
        return True

    cancel_event = cancel_event or asyncio.Event()
    start = time.monotonic()

    while True:
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=interval)
            # Cancellation requested
            return condition()
        except asyncio.TimeoutError:
            pass

        if condition():
            return True
        if time.monotonic() - start > timeout:
            return False


class WaitCoordinator:
    """Waits for the backend to present itself.

    Example:
        coordinator = WaitCoordinator(detector)
        if not await coordinator.wait_for_ready(timeout=5.0):
            logger.warning("Backend still missing")
    """

    def __init__(
        self,
        detector: ReadinessDetector,
        config: Optional[WaitConfig] = None,
    ) -> None:
        self._detector = detector
        self._config = config or WaitConfig()
        self._policy = TimeoutPolicy(self._config.timeout_policy)
        self._cancel_event = asyncio.Event()
        self._active_waits = 0

    @property
    def policy(self) -> TimeoutPolicy:
        return self._policy

    @property
    def active_waits(self) -> int:
        """Number of waits currently polling."""
        return self._active_waits

    async def wait_for_ready(
        self,
        timeout: Optional[float] = None,
        policy: Optional[TimeoutPolicy] = None,
    ) -> bool:
        """Wait until the backend is ready.

        Args:
            timeout: Maximum time to wait (default: configured default_timeout)
            policy: Override for the configured timeout policy

        Returns:
            True if the backend is ready, False if the wait timed out
            (or was cancelled) under the resolve policy

        Raises:
            WaitTimeoutError: If the wait timed out under the reject policy
        """
        if self._detector.is_ready():
            return True

        timeout = self._config.default_timeout if timeout is None else timeout
        policy = policy or self._policy

        self._active_waits += 1
        try:
            ready = await wait_for(
                self._detector.is_ready,
                timeout=timeout,
                interval=self._config.poll_interval,
                cancel_event=self._cancel_event,
            )
        finally:
            self._active_waits -= 1

        if ready:
            return True

        if policy is TimeoutPolicy.REJECT:
            raise WaitTimeoutError(timeout)

        logger.debug(f"Backend not ready after {timeout}s; continuing")
        return False

    def cancel(self) -> None:
        """End every pending wait; later waits poll normally again."""
        self._cancel_event.set()
        self._cancel_event = asyncio.Event()
