"""Pytron resolve command - Fetch a backend-served asset."""

import asyncio
from pathlib import Path
from typing import Optional

import typer

from pytron_client.cli.error_handler import NotFoundError, handle_errors
from pytron_client.cli.output import print_json, print_result, format_file_size
from pytron_client.cli.session import open_session
from pytron_client.host import decode_data_url
from pytron_client.resources import Asset, parse_resource_url


def asset_bytes(asset: Asset) -> bytes:
    """Return the content of a resolved asset."""
    if asset.blob is not None:
        return asset.blob.data
    data, _ = decode_data_url(asset.data_url or "")
    return data


@handle_errors
def resolve(
    key: str = typer.Argument(
        ...,
        help="Asset key, or a full pytron:// URL.",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the asset content to this file.",
        dir_okay=False,
        resolve_path=True,
    ),
    connect: Optional[str] = typer.Option(
        None,
        "--connect",
        "-c",
        help="Backend address (HOST:PORT).",
    ),
) -> None:
    """Resolve an asset key through the backend.

    Example:
        pytron-client resolve icons/app.png
        pytron-client resolve pytron://icons/app.png?v=2 --output app.png
    """
    from pytron_client.config import get_config
    from pytron_client.main import is_json

    scheme = get_config().resources.scheme
    key = parse_resource_url(key, scheme) or key

    async def run_resolve() -> Optional[Asset]:
        async with open_session(connect) as session:
            return await session.client.resolve_asset(key)

    asset = asyncio.run(run_resolve())
    if asset is None:
        raise NotFoundError(f"Asset not found: {key}")

    content = asset_bytes(asset)
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(content)

    info = {
        "key": asset.key,
        "mime": asset.mime_type,
        "size": len(content),
        "source": "binary" if asset.is_binary else "data-url",
        "output": str(output) if output else None,
    }

    if is_json():
        print_json(info)
        return

    print_result(True, f"Resolved {asset.key}", {
        "mime": info["mime"],
        "size": format_file_size(info["size"]),
        "source": info["source"],
        "output": info["output"],
    })
