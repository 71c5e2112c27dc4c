"""Tests for invocation routing."""

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from pytron_client.bridge.exceptions import MethodNotFoundError, NotConnectedError
from pytron_client.bridge.readiness import ReadinessDetector
from pytron_client.bridge.router import InvocationRouter, TransportStrategy, is_excluded
from pytron_client.bridge.waiting import WaitCoordinator
from pytron_client.config import WaitConfig
from pytron_client.host import InMemoryHost


def make_router(host: InMemoryHost, auto_wait_timeout: float = 0.05) -> InvocationRouter:
    detector = ReadinessDetector(host)
    waiter = WaitCoordinator(detector, WaitConfig(poll_interval=0.01))
    return InvocationRouter(host, detector, waiter, auto_wait_timeout=auto_wait_timeout)


class TestIsExcluded:
    """Test the forwarding exclusion list."""

    @pytest.mark.parametrize("name", ["then", "toJSON", "to_json", "_private", "__await__", "__iter__", ""])
    def test_excluded(self, name: str) -> None:
        assert is_excluded(name) is True

    @pytest.mark.parametrize("name", ["greet", "get_user", "close", "sync_state"])
    def test_forwardable(self, name: str) -> None:
        assert is_excluded(name) is False


class TestResolveTransport:
    """Test transport priority."""

    def test_native_wins(self) -> None:
        """The native primitive is preferred over every global."""
        host = InMemoryHost()
        native = MagicMock()
        host.globals["__pytron_native_bridge"] = native
        host.globals["pytron_greet"] = MagicMock()
        host.globals["greet"] = MagicMock()

        strategy, target = make_router(host).resolve_transport("greet")

        assert strategy is TransportStrategy.NATIVE
        assert target is native

    def test_namespaced_before_direct(self) -> None:
        """pytron_<method> is preferred over <method>."""
        host = InMemoryHost()
        namespaced = MagicMock()
        host.globals["pytron_greet"] = namespaced
        host.globals["greet"] = MagicMock()

        strategy, target = make_router(host).resolve_transport("greet")

        assert strategy is TransportStrategy.NAMESPACED_GLOBAL
        assert target is namespaced

    def test_direct_global(self) -> None:
        host = InMemoryHost()
        host.globals["greet"] = MagicMock()

        strategy, _ = make_router(host).resolve_transport("greet")

        assert strategy is TransportStrategy.DIRECT_GLOBAL

    def test_excluded_name_never_direct(self) -> None:
        """Excluded names are not looked up as plain globals."""
        host = InMemoryHost()
        host.globals["then"] = MagicMock()

        assert make_router(host).resolve_transport("then") is None

    def test_non_callable_ignored(self) -> None:
        host = InMemoryHost()
        host.globals["pytron_greet"] = "hello"

        assert make_router(host).resolve_transport("greet") is None


class TestInvoke:
    """Test calling through the router."""

    @pytest.mark.asyncio
    async def test_native_call_shape(self) -> None:
        """The native primitive receives (method, args list)."""
        host = InMemoryHost()
        native = AsyncMock(return_value="hi")
        host.globals["__pytron_native_bridge"] = native

        result = await make_router(host).invoke("greet", ("world", 1))

        assert result == "hi"
        native.assert_awaited_once_with("greet", ["world", 1])

    @pytest.mark.asyncio
    async def test_native_call_skips_globals(self) -> None:
        """With native and global functions present, only native is called."""
        host = InMemoryHost()
        native = AsyncMock(return_value="native")
        namespaced = MagicMock()
        direct = MagicMock()
        host.globals["__pytron_native_bridge"] = native
        host.globals["pytron_greet"] = namespaced
        host.globals["greet"] = direct

        result = await make_router(host).invoke("greet", ["world"])

        assert result == "native"
        native.assert_awaited_once_with("greet", ["world"])
        namespaced.assert_not_called()
        direct.assert_not_called()

    @pytest.mark.asyncio
    async def test_global_call_spreads_args(self) -> None:
        """Global functions receive the arguments spread."""
        host = InMemoryHost()
        greet = MagicMock(return_value="hello world")
        host.globals["pytron_greet"] = greet

        result = await make_router(host).invoke("greet", ["world"])

        assert result == "hello world"
        greet.assert_called_once_with("world")

    @pytest.mark.asyncio
    async def test_sync_and_async_targets(self) -> None:
        """Plain and awaitable results are both returned."""
        host = InMemoryHost()
        host.globals["pytron_plain"] = lambda: 1

        async def later() -> int:
            return 2

        host.globals["pytron_later"] = later
        router = make_router(host)

        assert await router.invoke("plain") == 1
        assert await router.invoke("later") == 2
        assert router.call_count == 2

    @pytest.mark.asyncio
    async def test_not_connected_after_auto_wait(self) -> None:
        """With no backend at all the call fails after the bounded auto-wait."""
        router = make_router(InMemoryHost(), auto_wait_timeout=0.05)

        start = time.monotonic()
        with pytest.raises(NotConnectedError) as exc_info:
            await router.invoke("greet")

        assert time.monotonic() - start >= 0.05
        assert exc_info.value.method == "greet"
        assert "not connected" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_not_connected_under_reject_policy(self) -> None:
        """A rejecting auto-wait still surfaces as not connected."""
        host = InMemoryHost()
        detector = ReadinessDetector(host)
        waiter = WaitCoordinator(detector, WaitConfig(poll_interval=0.01, timeout_policy="reject"))
        router = InvocationRouter(host, detector, waiter, auto_wait_timeout=0.05)

        with pytest.raises(NotConnectedError) as exc_info:
            await router.invoke("greet")

        assert exc_info.value.method == "greet"
        assert waiter.active_waits == 0

    @pytest.mark.asyncio
    async def test_backend_appears_during_auto_wait(self) -> None:
        """A backend that shows up while the call waits serves the call."""
        host = InMemoryHost()
        router = make_router(host, auto_wait_timeout=2.0)
        asyncio.get_running_loop().call_later(
            0.03, host.globals.__setitem__, "pytron_greet", lambda name: f"hi {name}"
        )

        assert await router.invoke("greet", ["bob"]) == "hi bob"

    @pytest.mark.asyncio
    async def test_method_not_found_when_ready(self) -> None:
        """A connected backend without the method gives MethodNotFoundError."""
        host = InMemoryHost()
        host.globals["pytron_close"] = lambda: None
        host.globals["pytron_minimize"] = lambda: None

        with pytest.raises(MethodNotFoundError) as exc_info:
            await make_router(host).invoke("greet")

        assert exc_info.value.method == "greet"
        assert exc_info.value.available == ["close", "minimize"]

    @pytest.mark.asyncio
    async def test_backend_error_propagates_unchanged(self) -> None:
        """Errors raised by the backend reach the caller as-is."""
        host = InMemoryHost()
        error = ValueError("bad input")
        host.globals["pytron_greet"] = MagicMock(side_effect=error)

        with pytest.raises(ValueError) as exc_info:
            await make_router(host).invoke("greet", [1])

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_resolution_happens_per_call(self) -> None:
        """A better transport appearing later is used by later calls."""
        host = InMemoryHost()
        host.globals["greet"] = MagicMock(return_value="direct")
        router = make_router(host)

        assert await router.invoke("greet") == "direct"

        host.globals["__pytron_native_bridge"] = MagicMock(return_value="native")
        assert await router.invoke("greet") == "native"


class TestDispatchAndCallWith:
    """Test the lower-level call paths."""

    @pytest.mark.asyncio
    async def test_dispatch_does_not_wait(self) -> None:
        """dispatch fails immediately when nothing is present."""
        router = make_router(InMemoryHost(), auto_wait_timeout=5.0)

        start = time.monotonic()
        with pytest.raises(NotConnectedError):
            await router.dispatch("greet")
        assert time.monotonic() - start < 1.0

    @pytest.mark.asyncio
    async def test_call_with_specific_strategy(self) -> None:
        """call_with bypasses the priority order."""
        host = InMemoryHost()
        host.globals["__pytron_native_bridge"] = MagicMock(return_value="native")
        host.globals["pytron_sync_state"] = MagicMock(return_value={"a": 1})

        result = await make_router(host).call_with(TransportStrategy.NAMESPACED_GLOBAL, "sync_state")

        assert result == {"a": 1}
        host.globals["__pytron_native_bridge"].assert_not_called()

    @pytest.mark.asyncio
    async def test_call_with_missing_transport(self) -> None:
        host = InMemoryHost()

        with pytest.raises(MethodNotFoundError):
            await make_router(host).call_with(TransportStrategy.NATIVE, "sync_state")

    def test_known_methods(self) -> None:
        host = InMemoryHost()
        host.globals["pytron_b"] = lambda: None
        host.globals["pytron_a"] = lambda: None
        host.globals["pytron_value"] = 3

        assert make_router(host).known_methods() == ["a", "b"]
