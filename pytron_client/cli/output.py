"""Output formatting utilities for the Pytron client CLI.

This module provides standardized output for call results, state snapshots
and pushed events, in both human-readable and machine-readable form.
"""

import json
from typing import Any, Dict, List

from rich.console import Console
from rich.json import JSON as RichJSON
from rich.syntax import Syntax
from rich.table import Table

# Default console for output
console = Console()


def to_jsonable(value: Any) -> Any:
    """Convert a backend value into something json.dumps accepts."""
    if isinstance(value, (bytes, bytearray)):
        return value.decode("latin-1")
    return value


def print_json(data: Any, console_instance: Console | None = None) -> None:
    """Print data as formatted JSON.

    Args:
        data: Data to print (non-serializable values are stringified)
        console_instance: Optional custom console instance
    """
    prog_console = console_instance or console

    # Use Rich's built-in JSON support for syntax highlighting
    json_str = json.dumps(to_jsonable(data), indent=2, default=str)
    prog_console.print(RichJSON(json_str))


def print_value(data: Any, console_instance: Console | None = None) -> None:
    """Print a backend value: structured values as JSON, scalars as-is."""
    prog_console = console_instance or console
    if isinstance(data, (dict, list, tuple)):
        print_json(data, prog_console)
    elif data is None:
        prog_console.print("[dim]null[/dim]")
    else:
        prog_console.print(str(to_jsonable(data)), markup=False, highlight=False)


def print_table(
    data: List[Dict[str, Any]],
    columns: List[str],
    title: str | None = None,
    column_styles: Dict[str, str] | None = None,
    console_instance: Console | None = None,
) -> None:
    """Print data as a formatted table.

    Args:
        data: List of dictionaries containing row data
        columns: List of column keys to display
        title: Optional table title
        column_styles: Optional dict mapping column names to Rich styles
        console_instance: Optional custom console instance

    Example:
        rows = [{"key": "theme", "value": "dark"}, {"key": "volume", "value": 7}]
        print_table(rows, ["key", "value"], title="State")
    """
    prog_console = console_instance or console
    column_styles = column_styles or {}

    table = Table(title=title)

    for col in columns:
        style = column_styles.get(col)
        header = col.replace("_", " ").title()
        table.add_column(header, style=style)

    for row in data:
        values = []
        for col in columns:
            value = row.get(col, "")
            if value is None:
                value = ""
            elif isinstance(value, bool):
                value = "[green]Yes[/green]" if value else "[red]No[/red]"
            elif isinstance(value, (dict, list)):
                value = json.dumps(value, default=str)
            values.append(str(value))

        table.add_row(*values)

    prog_console.print(table)


def print_result(
    success: bool,
    message: str,
    details: Dict[str, Any] | None = None,
    console_instance: Console | None = None,
) -> None:
    """Print operation result with appropriate styling.

    Example:
        print_result(True, "Asset resolved", {"mime": "image/png"})
    """
    prog_console = console_instance or console

    icon = "[green]✓[/green]" if success else "[red]✗[/red]"
    prog_console.print(f"{icon} {message}")

    if details:
        for key, value in details.items():
            if value is not None:
                prog_console.print(f"  [dim]{key}:[/dim] {value}")


def print_event(
    event: str,
    payload: Any,
    json_mode: bool = False,
    console_instance: Console | None = None,
) -> None:
    """Print one pushed event (one line per event in JSON mode)."""
    prog_console = console_instance or console
    if json_mode:
        line = json.dumps({"event": event, "payload": to_jsonable(payload)}, default=str)
        prog_console.print(line, markup=False, highlight=False, soft_wrap=True)
        return
    rendered = json.dumps(to_jsonable(payload), default=str)
    prog_console.print(f"[cyan]{event}[/cyan] ", end="")
    prog_console.print(rendered, markup=False, highlight=False, soft_wrap=True)


def print_syntax(content: str, lexer: str, console_instance: Console | None = None) -> None:
    prog_console = console_instance or console
    prog_console.print(Syntax(content, lexer, theme="monokai"))


def format_file_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Example:
        format_file_size(1024)  # Returns "1.00 KB"
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.2f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.2f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"
