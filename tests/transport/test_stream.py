"""Tests for the stream transport against a local JSON-RPC server."""

import asyncio
import json
from typing import Any, Optional

import pytest
import pytest_asyncio

from pytron_client.bridge import BridgeClient
from pytron_client.bridge.exceptions import NotConnectedError
from pytron_client.config import ClientConfig, ConnectionConfig
from pytron_client.host import InMemoryHost
from pytron_client.transport.protocol import JSONRPCError, JSONRPCErrorCode
from pytron_client.transport.stream import ConnectionState, StreamBackend, dispatch_params


class FakeBackend:
    """Line-delimited JSON-RPC server answering from a method table."""

    def __init__(self, methods: Optional[dict[str, Any]] = None) -> None:
        self.methods = methods or {}
        self.requests: list[dict[str, Any]] = []
        self.writers: list[asyncio.StreamWriter] = []
        self.server: Optional[asyncio.AbstractServer] = None

    @property
    def port(self) -> int:
        return self.server.sockets[0].getsockname()[1]

    async def start(self) -> "FakeBackend":
        self.server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        return self

    async def stop(self) -> None:
        for writer in self.writers:
            writer.close()
        self.server.close()
        await self.server.wait_closed()

    async def notify(self, method: str, params: Any) -> None:
        line = json.dumps({"jsonrpc": "2.0", "method": method, "params": params}) + "\n"
        for writer in self.writers:
            writer.write(line.encode())
            await writer.drain()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.writers.append(writer)
        while True:
            line = await reader.readline()
            if not line:
                break
            request = json.loads(line)
            self.requests.append(request)
            reply: dict[str, Any] = {"jsonrpc": "2.0", "id": request["id"]}

            handler = self.methods.get(request["method"])
            if handler is None:
                reply["error"] = {"code": -32601, "message": f"Method not found: {request['method']}"}
            elif handler == "hang":
                continue
            else:
                try:
                    reply["result"] = handler(*request.get("params", []))
                except Exception as e:
                    reply["error"] = {"code": -32000, "message": str(e)}

            writer.write((json.dumps(reply) + "\n").encode())
            await writer.drain()


@pytest_asyncio.fixture
async def backend():
    server = await FakeBackend().start()
    yield server
    await server.stop()


def connection(server: FakeBackend, **overrides: Any) -> ConnectionConfig:
    return ConnectionConfig(host="127.0.0.1", port=server.port, **overrides)


class TestDispatchParams:
    """Test decoding of dispatch notification params."""

    def test_list(self) -> None:
        assert dispatch_params(["tick", {"n": 1}]) == ("tick", {"n": 1})
        assert dispatch_params(["tick"]) == ("tick", None)

    def test_mapping(self) -> None:
        assert dispatch_params({"event": "tick", "payload": 2}) == ("tick", 2)

    @pytest.mark.parametrize("params", [None, [], "tick", 3])
    def test_invalid(self, params: Any) -> None:
        with pytest.raises(ValueError):
            dispatch_params(params)


class TestStreamBackend:
    """Test calls over a real socket."""

    @pytest.mark.asyncio
    async def test_connect_failure(self) -> None:
        stream = StreamBackend(ConnectionConfig(host="127.0.0.1", port=1, connect_timeout=1.0))

        with pytest.raises(NotConnectedError) as exc_info:
            await stream.connect()

        assert exc_info.value.details == {"address": "127.0.0.1:1"}
        assert stream.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_call_before_connect(self) -> None:
        with pytest.raises(NotConnectedError):
            await StreamBackend().call("greet")

    @pytest.mark.asyncio
    async def test_call_result(self, backend: FakeBackend) -> None:
        backend.methods["greet"] = lambda name: f"hello {name}"

        async with StreamBackend(connection(backend)) as stream:
            assert stream.is_connected is True
            assert await stream.call("greet", ["world"]) == "hello world"
            assert stream.pending_count == 0

        assert stream.state is ConnectionState.CLOSED
        assert backend.requests[0]["params"] == ["world"]

    @pytest.mark.asyncio
    async def test_call_error(self, backend: FakeBackend) -> None:
        async with StreamBackend(connection(backend)) as stream:
            with pytest.raises(JSONRPCError) as exc_info:
                await stream.call("missing")

        assert exc_info.value.code == JSONRPCErrorCode.METHOD_NOT_FOUND

    @pytest.mark.asyncio
    async def test_call_timeout(self, backend: FakeBackend) -> None:
        backend.methods["slow"] = "hang"

        async with StreamBackend(connection(backend)) as stream:
            with pytest.raises(JSONRPCError) as exc_info:
                await stream.call("slow", timeout=0.1)

        assert exc_info.value.code == JSONRPCErrorCode.TIMEOUT_ERROR

    @pytest.mark.asyncio
    async def test_pending_failed_on_close(self, backend: FakeBackend) -> None:
        backend.methods["slow"] = "hang"
        stream = StreamBackend(connection(backend))
        await stream.connect()

        call = asyncio.create_task(stream.call("slow", timeout=5.0))
        await asyncio.sleep(0.05)
        await stream.close()

        with pytest.raises(JSONRPCError) as exc_info:
            await call
        assert exc_info.value.code == JSONRPCErrorCode.CONNECTION_LOST

    @pytest.mark.asyncio
    async def test_notifications(self, backend: FakeBackend) -> None:
        received: list[Any] = []

        async with StreamBackend(connection(backend)) as stream:
            unregister = stream.on_notification("pytron.dispatch", received.append)
            await asyncio.sleep(0.05)
            await backend.notify("pytron.dispatch", ["tick", 1])
            await asyncio.sleep(0.05)
            unregister()
            await backend.notify("pytron.dispatch", ["tick", 2])
            await asyncio.sleep(0.05)

        assert received == [["tick", 1]]


class TestAttachedClient:
    """Test a bridge client driven through an attached stream."""

    @pytest.mark.asyncio
    async def test_invoke_and_events(self, backend: FakeBackend) -> None:
        backend.methods["sync_state"] = lambda: {"theme": "dark"}
        backend.methods["add"] = lambda a, b: a + b
        host = InMemoryHost()
        config = ClientConfig()
        config.resources.watch_dom = False

        async with StreamBackend(connection(backend)) as stream:
            detach = stream.attach(host, config.bridge)
            async with BridgeClient(host, config) as client:
                assert client.state == {"theme": "dark"}
                assert await client.add(2, 3) == 5

                greetings: list[Any] = []
                client.on("greeting", greetings.append)
                await backend.notify("pytron.dispatch", {"event": "greeting", "payload": '{"text": "hi"}'})
                await backend.notify("pytron.dispatch", ["pytron:state-update", {"key": "theme", "value": "light"}])
                await asyncio.sleep(0.05)

                assert greetings == [{"text": "hi"}]
                assert client.state["theme"] == "light"
            detach()

        assert "__pytron_native_bridge" not in host.globals
        await host.close()
