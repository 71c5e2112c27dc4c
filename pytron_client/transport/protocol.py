"""
JSON-RPC 2.0 Protocol Implementation.

Message layer for talking to a Pytron backend over a stream: serialization,
request/response matching and error mapping.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Optional, Union

from pytron_client.bridge.exceptions import RemoteInvocationError


class JSONRPCErrorCode(IntEnum):
    """JSON-RPC 2.0 error codes."""

    # Standard errors
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Server errors (reserved range: -32000 to -32099)
    SERVER_ERROR = -32000
    TIMEOUT_ERROR = -32001
    CONNECTION_LOST = -32002


class JSONRPCError(RemoteInvocationError):
    """JSON-RPC 2.0 error with code and optional data."""

    def __init__(
        self,
        code: Union[JSONRPCErrorCode, int],
        message: str,
        data: Optional[Any] = None
    ):
        super().__init__(message, {"code": int(code)})
        self.code = int(code)
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-RPC error object."""
        error = {
            "code": self.code,
            "message": self.message
        }
        if self.data is not None:
            error["data"] = self.data
        return error

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JSONRPCError":
        """Create from JSON-RPC error object."""
        return cls(
            code=data.get("code", JSONRPCErrorCode.INTERNAL_ERROR),
            message=data.get("message", "Unknown error"),
            data=data.get("data")
        )

    @classmethod
    def parse_error(cls, data: Optional[Any] = None) -> "JSONRPCError":
        return cls(JSONRPCErrorCode.PARSE_ERROR, "Parse error", data)

    @classmethod
    def timeout_error(cls, timeout_seconds: float) -> "JSONRPCError":
        """Create a timeout error."""
        return cls(
            JSONRPCErrorCode.TIMEOUT_ERROR,
            f"Request timed out after {timeout_seconds}s"
        )

    @classmethod
    def connection_lost(cls, reason: str = "Connection closed") -> "JSONRPCError":
        return cls(JSONRPCErrorCode.CONNECTION_LOST, reason)

    @property
    def is_method_not_found(self) -> bool:
        return self.code == JSONRPCErrorCode.METHOD_NOT_FOUND


@dataclass
class JSONRPCRequest:
    """JSON-RPC 2.0 request object (a notification when ``id`` is None)."""

    method: str
    params: Optional[Union[list[Any], dict[str, Any]]] = None
    id: Optional[str] = field(default_factory=lambda: str(uuid.uuid4()))
    jsonrpc: str = "2.0"

    def to_dict(self) -> dict[str, Any]:
        request: dict[str, Any] = {
            "jsonrpc": self.jsonrpc,
            "method": self.method
        }
        if self.params is not None:
            request["params"] = self.params
        if self.id is not None:
            request["id"] = self.id
        return request

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JSONRPCRequest":
        return cls(
            method=data["method"],
            params=data.get("params"),
            id=data.get("id"),
            jsonrpc=data.get("jsonrpc", "2.0")
        )

    @property
    def is_notification(self) -> bool:
        return self.id is None


@dataclass
class JSONRPCResponse:
    """JSON-RPC 2.0 response object."""

    id: Optional[str]
    result: Optional[Any] = None
    error: Optional[JSONRPCError] = None
    jsonrpc: str = "2.0"

    def to_dict(self) -> dict[str, Any]:
        response: dict[str, Any] = {
            "jsonrpc": self.jsonrpc,
            "id": self.id
        }
        if self.error is not None:
            response["error"] = self.error.to_dict()
        else:
            response["result"] = self.result
        return response

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JSONRPCResponse":
        error = None
        if data.get("error") is not None:
            error = JSONRPCError.from_dict(data["error"])

        return cls(
            id=data.get("id"),
            result=data.get("result"),
            error=error,
            jsonrpc=data.get("jsonrpc", "2.0")
        )

    @property
    def is_success(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        """Raise exception if this is an error response."""
        if self.error is not None:
            raise self.error


def parse_message(line: Union[str, bytes]) -> Union[JSONRPCRequest, JSONRPCResponse]:
    """
    Parse one line received from the backend.

    Returns:
        A JSONRPCResponse for replies, a JSONRPCRequest for notifications
        and backend-initiated requests

    Raises:
        JSONRPCError: If the line is not a JSON-RPC message
    """
    try:
        data = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise JSONRPCError.parse_error(str(e))

    if not isinstance(data, dict):
        raise JSONRPCError(JSONRPCErrorCode.INVALID_REQUEST, "Invalid request", data)
    if "method" in data:
        return JSONRPCRequest.from_dict(data)
    if "id" in data and ("result" in data or "error" in data):
        return JSONRPCResponse.from_dict(data)
    raise JSONRPCError(JSONRPCErrorCode.INVALID_REQUEST, "Invalid request", data)


class BackendMethods:
    """Notification names sent by the backend."""

    # params: [event, payload] or {"event": ..., "payload": ...}
    DISPATCH = "pytron.dispatch"
