"""Backend sessions for CLI commands.

A session connects to a running backend, presents the connection to an
in-memory host as its native call primitive and starts a bridge client on
that host.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import AsyncIterator, Optional

from pytron_client.bridge import BridgeClient
from pytron_client.cli.error_handler import ValidationError
from pytron_client.config import ClientConfig, ConnectionConfig, get_config
from pytron_client.host import InMemoryHost
from pytron_client.transport import StreamBackend

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """A connected backend together with the client driving it."""

    backend: StreamBackend
    host: InMemoryHost
    client: BridgeClient


def parse_address(address: Optional[str], base: ConnectionConfig) -> ConnectionConfig:
    """Apply a ``HOST:PORT`` (or ``PORT``) override to a connection config.

    Raises:
        ValidationError: If the address cannot be parsed
    """
    if not address:
        return base

    host, sep, port_text = address.rpartition(":")
    if not sep:
        host, port_text = base.host, address

    try:
        port = int(port_text)
    except ValueError:
        raise ValidationError(f"Invalid address: {address}", details={"expected": "HOST:PORT"})
    if not 0 < port < 65536:
        raise ValidationError(f"Invalid port: {port}")

    return replace(base, host=host or base.host, port=port)


@asynccontextmanager
async def open_session(
    address: Optional[str] = None,
    config: Optional[ClientConfig] = None,
    sync: bool = False,
) -> AsyncIterator[Session]:
    """Connect to the backend and start a client for the duration of the block.

    Args:
        address: Optional ``HOST:PORT`` override
        config: Client configuration (default: the process-wide config)
        sync: Pull the backend state while starting the client
    """
    config = config or get_config()
    connection = parse_address(address, config.connection)

    # No document to watch from the command line
    client_config = replace(
        config,
        connection=connection,
        sync=replace(config.sync, enabled=sync),
        resources=replace(config.resources, watch_dom=False),
    )

    backend = StreamBackend(connection)
    await backend.connect()
    host = InMemoryHost()
    detach = backend.attach(host, client_config.bridge)
    client = BridgeClient(host, client_config)

    try:
        await client.start()
        yield Session(backend=backend, host=host, client=client)
    finally:
        await client.shutdown()
        detach()
        await backend.close()
        await host.close()
        logger.debug("Session closed")
