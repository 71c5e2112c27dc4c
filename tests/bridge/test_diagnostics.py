"""Tests for log and error forwarding."""

import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from pytron_client.bridge.diagnostics import Diagnostics, describe_error
from pytron_client.bridge.readiness import ReadinessDetector
from pytron_client.bridge.router import InvocationRouter
from pytron_client.bridge.waiting import WaitCoordinator
from pytron_client.host import InMemoryHost


def make_diagnostics(host: InMemoryHost) -> Diagnostics:
    detector = ReadinessDetector(host)
    router = InvocationRouter(host, detector, WaitCoordinator(detector))
    return Diagnostics(host, router)


class TestDescribeError:
    """Test error payloads."""

    def test_exception(self) -> None:
        try:
            raise ValueError("bad value")
        except ValueError as e:
            payload = describe_error(e)

        assert payload["type"] == "ValueError"
        assert payload["message"] == "bad value"
        assert "Traceback" in payload["traceback"]

    def test_mapping(self) -> None:
        payload = describe_error({"message": "script error", "line": 3})
        assert payload == {"type": "Error", "message": "script error", "line": 3}

    def test_other_values(self) -> None:
        assert describe_error("oops") == {"type": "Error", "message": "oops"}


class TestLog:
    """Test log forwarding."""

    @pytest.mark.asyncio
    async def test_log_local_and_forwarded(self, caplog: pytest.LogCaptureFixture) -> None:
        host = InMemoryHost()
        backend_log = MagicMock()
        host.globals["pytron_log"] = backend_log
        diagnostics = make_diagnostics(host)

        with caplog.at_level(logging.INFO, logger="pytron_client.bridge.diagnostics"):
            diagnostics.log("window opened")
            await diagnostics.flush()

        assert "window opened" in caplog.text
        backend_log.assert_called_once_with("window opened")
        assert diagnostics.forwarded == 1

    @pytest.mark.asyncio
    async def test_log_without_backend(self, caplog: pytest.LogCaptureFixture) -> None:
        """Without a backend the message is only logged locally."""
        diagnostics = make_diagnostics(InMemoryHost())

        with caplog.at_level(logging.INFO, logger="pytron_client.bridge.diagnostics"):
            diagnostics.log("offline")
            await diagnostics.flush()

        assert "offline" in caplog.text
        assert diagnostics.forwarded == 0

    @pytest.mark.asyncio
    async def test_forward_failure_discarded(self) -> None:
        host = InMemoryHost()
        host.globals["pytron_log"] = MagicMock(side_effect=RuntimeError("backend down"))
        diagnostics = make_diagnostics(host)

        diagnostics.log("hello")
        await diagnostics.flush()

        assert diagnostics.forwarded == 0

    def test_log_without_loop(self) -> None:
        host = InMemoryHost()
        backend_log = MagicMock()
        host.globals["pytron_log"] = backend_log

        make_diagnostics(host).log("sync context")

        backend_log.assert_not_called()


class TestErrorCapture:
    """Test capture of uncaught errors."""

    @pytest.mark.asyncio
    async def test_host_error_event(self) -> None:
        host = InMemoryHost()
        report = MagicMock()
        host.globals["pytron_report_error"] = report
        diagnostics = make_diagnostics(host)
        diagnostics.install()

        try:
            host.dispatch_event("error", {"message": "boom"})
            await diagnostics.flush()
        finally:
            diagnostics.uninstall()

        report.assert_called_once_with({"type": "Error", "message": "boom"})

    @pytest.mark.asyncio
    async def test_unhandled_rejection_event(self) -> None:
        host = InMemoryHost()
        report = MagicMock()
        host.globals["pytron_report_error"] = report
        diagnostics = make_diagnostics(host)
        diagnostics.install()

        try:
            host.dispatch_event("unhandledrejection", "promise rejected")
            await diagnostics.flush()
        finally:
            diagnostics.uninstall()

        report.assert_called_once_with({"type": "Error", "message": "promise rejected"})

    @pytest.mark.asyncio
    async def test_loop_exception_handler(self) -> None:
        """Unhandled loop errors are reported and passed on to the previous handler."""
        host = InMemoryHost()
        report = MagicMock()
        host.globals["pytron_report_error"] = report
        loop = asyncio.get_running_loop()
        previous = MagicMock()
        original = loop.get_exception_handler()
        loop.set_exception_handler(previous)
        diagnostics = make_diagnostics(host)
        diagnostics.install()

        try:
            context = {"message": "Task exception was never retrieved", "exception": KeyError("x")}
            loop.call_exception_handler(context)
            await diagnostics.flush()
        finally:
            diagnostics.uninstall()
            loop.set_exception_handler(original)

        payload = report.call_args.args[0]
        assert payload["type"] == "KeyError"
        previous.assert_called_once_with(loop, context)

    @pytest.mark.asyncio
    async def test_uninstall_restores(self) -> None:
        host = InMemoryHost()
        loop = asyncio.get_running_loop()
        original = loop.get_exception_handler()
        diagnostics = make_diagnostics(host)

        diagnostics.install()
        assert diagnostics.capturing is True
        assert host.listener_count("error") == 1

        diagnostics.uninstall()
        assert diagnostics.capturing is False
        assert host.listener_count("error") == 0
        assert host.listener_count("unhandledrejection") == 0
        assert loop.get_exception_handler() is original

    @pytest.mark.asyncio
    async def test_install_twice(self) -> None:
        host = InMemoryHost()
        diagnostics = make_diagnostics(host)

        diagnostics.install()
        diagnostics.install()
        try:
            assert host.listener_count("error") == 1
        finally:
            diagnostics.uninstall()
