"""Tests for readiness waits."""

import asyncio
import time

import pytest

from pytron_client.bridge.exceptions import WaitTimeoutError
from pytron_client.bridge.readiness import ReadinessDetector
from pytron_client.bridge.waiting import TimeoutPolicy, WaitCoordinator, wait_for
from pytron_client.config import WaitConfig
from pytron_client.host import InMemoryHost


def make_coordinator(host: InMemoryHost, policy: str = "resolve") -> WaitCoordinator:
    config = WaitConfig(poll_interval=0.01, default_timeout=0.2, timeout_policy=policy)
    return WaitCoordinator(ReadinessDetector(host), config)


class TestWaitFor:
    """Test the polling helper."""

    @pytest.mark.asyncio
    async def test_condition_already_true(self) -> None:
        """Returns immediately without polling."""
        assert await wait_for(lambda: True, timeout=0) is True

    @pytest.mark.asyncio
    async def test_times_out(self) -> None:
        """Returns False once the timeout elapses."""
        start = time.monotonic()
        assert await wait_for(lambda: False, timeout=0.05, interval=0.01) is False
        assert time.monotonic() - start >= 0.05

    @pytest.mark.asyncio
    async def test_condition_becomes_true(self) -> None:
        """Returns True on the first poll after the condition flips."""
        flag = {"ready": False}
        asyncio.get_running_loop().call_later(0.03, flag.update, {"ready": True})

        assert await wait_for(lambda: flag["ready"], timeout=5.0, interval=0.01) is True

    @pytest.mark.asyncio
    async def test_cancel_event(self) -> None:
        """Setting the cancel event ends the wait early."""
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.03, cancel.set)

        start = time.monotonic()
        assert await wait_for(lambda: False, timeout=5.0, interval=0.01, cancel_event=cancel) is False
        assert time.monotonic() - start < 1.0


class TestWaitCoordinator:
    """Test waiting for the backend."""

    def test_default_policy_resolves(self) -> None:
        """The default timeout policy is resolve."""
        coordinator = WaitCoordinator(ReadinessDetector(InMemoryHost()))
        assert coordinator.policy is TimeoutPolicy.RESOLVE

    @pytest.mark.asyncio
    async def test_ready_immediately(self) -> None:
        """A ready backend resolves without waiting."""
        host = InMemoryHost()
        host.globals["pytron_close"] = lambda: None
        coordinator = make_coordinator(host)

        assert await coordinator.wait_for_ready(timeout=0) is True
        assert coordinator.active_waits == 0

    @pytest.mark.asyncio
    async def test_resolves_when_signal_appears(self) -> None:
        """The wait ends as soon as a signal appears, long before the timeout."""
        host = InMemoryHost()
        coordinator = make_coordinator(host)
        asyncio.get_running_loop().call_later(
            0.05, host.globals.__setitem__, "__pytron_native_bridge", lambda method, args: None
        )

        start = time.monotonic()
        assert await coordinator.wait_for_ready(timeout=5.0) is True
        assert time.monotonic() - start < 1.0

    @pytest.mark.asyncio
    async def test_timeout_resolves_false(self) -> None:
        """Under the resolve policy a timeout returns False."""
        coordinator = make_coordinator(InMemoryHost())
        assert await coordinator.wait_for_ready(timeout=0.05) is False

    @pytest.mark.asyncio
    async def test_timeout_rejects(self) -> None:
        """Under the reject policy a timeout raises."""
        coordinator = make_coordinator(InMemoryHost(), policy="reject")

        with pytest.raises(WaitTimeoutError) as exc_info:
            await coordinator.wait_for_ready(timeout=0.05)
        assert exc_info.value.timeout == 0.05

    @pytest.mark.asyncio
    async def test_policy_override(self) -> None:
        """A per-call policy overrides the configured one."""
        coordinator = make_coordinator(InMemoryHost())

        with pytest.raises(WaitTimeoutError):
            await coordinator.wait_for_ready(timeout=0.05, policy=TimeoutPolicy.REJECT)

    @pytest.mark.asyncio
    async def test_default_timeout_used(self) -> None:
        """Without a timeout argument the configured default applies."""
        coordinator = make_coordinator(InMemoryHost())

        start = time.monotonic()
        assert await coordinator.wait_for_ready() is False
        assert time.monotonic() - start >= 0.2

    @pytest.mark.asyncio
    async def test_cancel_ends_pending_waits(self) -> None:
        """cancel() resolves every pending wait as not ready."""
        coordinator = make_coordinator(InMemoryHost())

        waits = [asyncio.create_task(coordinator.wait_for_ready(timeout=10.0)) for _ in range(3)]
        await asyncio.sleep(0.03)
        assert coordinator.active_waits == 3

        coordinator.cancel()
        results = await asyncio.wait_for(asyncio.gather(*waits), timeout=1.0)

        assert results == [False, False, False]
        assert coordinator.active_waits == 0

    @pytest.mark.asyncio
    async def test_waits_after_cancel_poll_again(self) -> None:
        """A cancel only affects waits pending at that moment."""
        host = InMemoryHost()
        coordinator = make_coordinator(host)
        coordinator.cancel()

        asyncio.get_running_loop().call_later(
            0.03, host.globals.__setitem__, "pytron_close", lambda: None
        )
        assert await coordinator.wait_for_ready(timeout=2.0) is True
