"""
CLI interface for TPS Meter.

Replays a saved run's messages through the summary formatter.
"""

import json
import sys
from pathlib import Path
from typing import Any, List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from tps_meter.config.loader import (
    DEFAULT_OPTIONS,
    NotificationOptions,
    load_notification_options,
)
from tps_meter.core.formatter import format_notification
from tps_meter.core.usage import aggregate_usage

app = typer.Typer()
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_ERROR = 1


def load_messages(path: str) -> List[Any]:
    """Read messages from a JSON array or JSON Lines file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the content is not a JSON array or JSON Lines
    """
    text = Path(path).read_text(encoding='utf-8')
    stripped = text.strip()
    if not stripped:
        return []
    if stripped.startswith("["):
        try:
            return json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}")

    messages = []
    for line_number, line in enumerate(stripped.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            messages.append(json.loads(line))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON on line {line_number} of {path}: {e}")
    return messages


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """TPS Meter CLI."""
    if ctx.invoked_subcommand is None:
        console.print("TPS Meter - Use --help to see available commands")


@app.command()
def summarize(
    messages_file: str = typer.Argument(..., help="JSON array or JSON Lines file of run messages"),
    elapsed: float = typer.Option(..., "--elapsed", "-e", min=0.0, help="Run duration in seconds"),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML file with notification options"
    ),
    precision: Optional[int] = typer.Option(
        None,
        "--precision",
        "-p",
        help="Decimal places for throughput and seconds"
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Hide cache segments"),
    no_totals: bool = typer.Option(False, "--no-totals", help="Hide total and ratio segments"),
):
    """
    Print the summary line for a saved run.

    Thresholds from the options file are not applied; the line is always
    printed so the output can be inspected.
    """
    try:
        options = load_notification_options(config) if config else DEFAULT_OPTIONS
        overrides = options.to_dict()
        if precision is not None:
            overrides["precision"] = precision
        if no_cache:
            overrides["show_cache"] = False
        if no_totals:
            overrides["show_totals"] = False
        options = NotificationOptions(**overrides)

        messages = load_messages(messages_file)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_ERROR)

    usage = aggregate_usage(messages if isinstance(messages, list) else [])
    line = format_notification(elapsed, usage, options)
    # Plain, unwrapped output
    console.print(line, markup=False, highlight=False, soft_wrap=True)
    sys.exit(EXIT_CODE_OK)


@app.command()
def defaults():
    """Show the default notification options."""
    table = Table(title="Default notification options")
    table.add_column("Option")
    table.add_column("Default")
    for name, value in DEFAULT_OPTIONS.to_dict().items():
        table.add_row(name, str(value))
    console.print(table)


if __name__ == "__main__":
    app()
