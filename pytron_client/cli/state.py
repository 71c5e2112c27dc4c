"""Pytron state commands - Inspect backend state and pushed events."""

import asyncio
import logging
from typing import Any, List, Optional

import typer

from pytron_client.cli.error_handler import NotFoundError, handle_errors
from pytron_client.cli.output import console, print_event, print_json, print_table
from pytron_client.cli.session import open_session
from pytron_client.transport import BackendMethods, dispatch_params

logger = logging.getLogger(__name__)


@handle_errors
def state(
    key: Optional[str] = typer.Argument(
        None,
        help="Show only this key.",
    ),
    connect: Optional[str] = typer.Option(
        None,
        "--connect",
        "-c",
        help="Backend address (HOST:PORT).",
    ),
) -> None:
    """Pull the backend's state and print it.

    Example:
        pytron-client state
        pytron-client state theme
        pytron-client --json state
    """
    from pytron_client.main import is_json

    async def pull() -> dict[str, Any]:
        async with open_session(connect, sync=True) as session:
            return dict(session.client.state)

    mirror = asyncio.run(pull())

    if key is not None:
        if key not in mirror:
            raise NotFoundError(f"State key not found: {key}")
        mirror = {key: mirror[key]}

    if is_json():
        print_json(mirror)
        return

    if not mirror:
        console.print("[dim]Backend state is empty[/dim]")
        return

    rows = [{"key": k, "value": v} for k, v in mirror.items()]
    print_table(rows, ["key", "value"], title="Backend State", column_styles={"key": "cyan"})


@handle_errors
def listen(
    events: Optional[List[str]] = typer.Argument(
        None,
        help="Event names to print (default: every pushed event).",
    ),
    count: int = typer.Option(
        0,
        "--count",
        "-n",
        help="Exit after this many events (0 = until interrupted).",
        min=0,
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Exit after this many seconds.",
    ),
    connect: Optional[str] = typer.Option(
        None,
        "--connect",
        "-c",
        help="Backend address (HOST:PORT).",
    ),
) -> None:
    """Print events pushed by the backend.

    Key-scoped state events (state:<key>) are derived locally from
    pytron:state-update, so they can be listened to like any other event.

    Example:
        pytron-client listen
        pytron-client listen state:theme --count 1
    """
    from pytron_client.main import is_json

    json_mode = is_json()

    async def run_listen() -> int:
        finished = asyncio.Event()
        received = 0

        def show(event: str, payload: Any) -> None:
            nonlocal received
            print_event(event, payload, json_mode=json_mode)
            received += 1
            if count and received >= count:
                finished.set()

        def on_dispatch(params: Any) -> None:
            event, payload = dispatch_params(params)
            show(event, payload)

        async with open_session(connect) as session:
            if events:
                for name in events:
                    session.client.on(name, lambda payload, name=name: show(name, payload))
            else:
                session.backend.on_notification(BackendMethods.DISPATCH, on_dispatch)

            logger.info(f"Listening on {session.backend.address}")
            try:
                await asyncio.wait_for(finished.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.debug(f"Stopped listening after {timeout}s")
        return received

    received = asyncio.run(run_listen())
    logger.debug(f"Received {received} event(s)")

