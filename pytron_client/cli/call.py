"""Pytron call command - Invoke a backend method."""

import asyncio
from typing import Any, List, Optional

import typer

from pytron_client.bridge import decode_payload
from pytron_client.cli.error_handler import handle_errors
from pytron_client.cli.output import console, print_json, print_result, print_value
from pytron_client.cli.session import open_session


def parse_arguments(values: List[str], raw: bool = False) -> List[Any]:
    """Decode command-line arguments as JSON, keeping plain strings as-is."""
    if raw:
        return list(values)
    return [decode_payload(value) for value in values]


@handle_errors
def call(
    method: str = typer.Argument(
        ...,
        help="Backend method to call.",
    ),
    args: Optional[List[str]] = typer.Argument(
        None,
        help="Arguments, each decoded as JSON when possible.",
    ),
    raw: bool = typer.Option(
        False,
        "--raw",
        "-r",
        help="Pass every argument as a string without JSON decoding.",
    ),
    connect: Optional[str] = typer.Option(
        None,
        "--connect",
        "-c",
        help="Backend address (HOST:PORT).",
    ),
) -> None:
    """Call a method on the running backend.

    Example:
        pytron-client call greet '"world"'
        pytron-client call set_volume 7
        pytron-client call --raw echo 007
    """
    from pytron_client.main import is_json, is_quiet

    params = parse_arguments(args or [], raw=raw)

    async def run_call() -> Any:
        async with open_session(connect) as session:
            return await session.client.invoke(method, *params)

    result = asyncio.run(run_call())

    if is_json():
        print_json({"method": method, "result": result})
        return

    if not is_quiet():
        print_result(True, f"{method} returned")
    print_value(result, console)
