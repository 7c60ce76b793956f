"""Rendering of API results as tables, YAML or JSON."""

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import click
import yaml
from rich.console import Console
from rich.table import Table

OUTPUT_FORMATS = ("table", "yaml", "json")

console = Console()


@dataclass(frozen=True)
class Column:
    header: str
    value: Callable[[dict], str]


def field(key: str, default: str = "-") -> Callable[[dict], str]:
    def _get(item: dict) -> str:
        value = item.get(key)
        if value is None or value == "":
            return default
        return str(value)

    return _get


def format_age(timestamp: str | None, *, now: datetime | None = None) -> str:
    """Render an ISO timestamp as a coarse age such as `42s`, `5m`, `3h` or `2d`."""
    if not timestamp:
        return "-"
    try:
        created = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return "-"
    if created.tzinfo is None:
        created = created.replace(tzinfo=UTC)

    seconds = max(0, int(((now or datetime.now(UTC)) - created).total_seconds()))
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


def age(item: dict) -> str:
    return format_age(item.get("createdAt"))


def _dump(data: Any, output: str) -> None:
    if output == "json":
        click.echo(json.dumps(data, indent=2))
    else:
        click.echo(yaml.safe_dump(data, sort_keys=False, allow_unicode=True).rstrip())


def render_list(result: Any, columns: list[Column], output: str) -> None:
    items = result.get("items", []) if isinstance(result, dict) else []
    if output != "table":
        _dump(items, output)
        return

    table = Table(box=None, show_edge=False, pad_edge=False)
    for column in columns:
        table.add_column(column.header, no_wrap=True)
    for item in items:
        table.add_row(*(column.value(item) for column in columns))
    console.print(table)


def render_item(result: Any, columns: list[Column], output: str) -> None:
    if output != "table":
        _dump(result, output)
        return

    table = Table(box=None, show_header=False, show_edge=False, pad_edge=False)
    table.add_column("field", style="bold", no_wrap=True)
    table.add_column("value")
    item = result if isinstance(result, dict) else {}
    for column in columns:
        table.add_row(column.header, column.value(item))
    console.print(table)


def render_done(message: str, result: Any, output: str) -> None:
    if output != "table":
        _dump(result if result is not None else {}, output)
        return
    console.print(f"[green]{message}[/green]")
