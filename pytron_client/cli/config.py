"""Pytron config command - Configuration management."""

import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from pytron_client.cli.error_handler import ConfigurationError, handle_errors
from pytron_client.cli.exit_codes import ExitCode
from pytron_client.cli.output import print_syntax

app = typer.Typer(help="Manage client configuration.")
console = Console()


def _config_path() -> Path:
    from pytron_client.config import DEFAULT_CONFIG_DIR, DEFAULT_CONFIG_FILE

    # Check for environment variable override
    config_dir = Path(os.environ.get("PYTRON_CONFIG_DIR", DEFAULT_CONFIG_DIR))
    return config_dir / DEFAULT_CONFIG_FILE


@app.command("show")
def show_config(
    section: Optional[str] = typer.Argument(
        None,
        help="Configuration section to show (e.g., bridge, wait, resources).",
    ),
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format (table, yaml, json).",
    ),
) -> None:
    """Show current configuration.

    Example:
        pytron-client config show
        pytron-client config show wait
        pytron-client config show --format yaml
    """
    from pytron_client.config import (
        _config_to_dict,
        export_config_json,
        export_config_yaml,
        get_config,
    )

    config = get_config()

    if format == "yaml":
        print_syntax(export_config_yaml(config), "yaml", console)
        return
    elif format == "json":
        print_syntax(export_config_json(config), "json", console)
        return
    elif format != "table":
        console.print(f"[red]Unknown format: {format}[/red]")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)

    sections = _config_to_dict(config)
    if section and section not in sections:
        console.print(f"[red]Unknown section: {section}[/red]")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)

    for name in [section] if section else sections:
        table = Table(title=name.capitalize())
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="green")

        for key, value in sections[name].items():
            if isinstance(value, list):
                value = ", ".join(str(v) for v in value) or "None"
            table.add_row(key, "" if value is None else str(value))

        console.print(table)
        console.print()


@app.command("path")
def config_path() -> None:
    """Show configuration file path.

    Example:
        pytron-client config path
    """
    path = _config_path()
    console.print(f"[bold]Config directory:[/bold] {path.parent}")
    console.print(f"[bold]Config file:[/bold] {path}")
    console.print(f"[bold]Exists:[/bold] {path.exists()}")


@app.command("validate")
@handle_errors
def validate_config() -> None:
    """Validate current configuration.

    Raises ConfigurationError when any error is found; warnings are
    reported but do not fail validation.

    Example:
        pytron-client config validate
    """
    from pytron_client.config import get_config, validate_config as do_validate

    config_path = _config_path()

    console.print("[bold]Validating configuration...[/bold]")
    console.print()

    if config_path.exists():
        console.print(f"  [green]✓[/green] Config file: {config_path}")
    else:
        console.print(f"  [dim]-[/dim] No config file at {config_path}, using defaults")

    issues = do_validate(get_config())
    errors = [issue for issue in issues if issue.severity == "error"]
    warnings = [issue for issue in issues if issue.severity == "warning"]

    for issue in errors:
        console.print(f"  [red]✗[/red] {issue.field}: {issue.message}")
    for issue in warnings:
        console.print(f"  [yellow]![/yellow] {issue.field}: {issue.message}")

    console.print()
    if errors:
        raise ConfigurationError(
            f"Configuration has {len(errors)} error(s)",
            details={issue.field: issue.message for issue in errors},
        )

    if warnings:
        console.print(f"[yellow]Configuration valid with {len(warnings)} warning(s)[/yellow]")
    else:
        console.print("[green]✓ Configuration is valid[/green]")
