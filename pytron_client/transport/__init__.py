"""Stream transport to a running Pytron backend.

JSON-RPC 2.0 over a TCP stream, one message per line. Used by the CLI to
give an in-memory host a native call primitive.
"""

from pytron_client.transport.protocol import (
    BackendMethods,
    JSONRPCError,
    JSONRPCErrorCode,
    JSONRPCRequest,
    JSONRPCResponse,
    parse_message,
)
from pytron_client.transport.stream import ConnectionState, StreamBackend, dispatch_params

__all__ = [
    "BackendMethods",
    "ConnectionState",
    "JSONRPCError",
    "JSONRPCErrorCode",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "StreamBackend",
    "dispatch_params",
    "parse_message",
]
