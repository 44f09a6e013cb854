"""
CLI utility helpers: output formatting and factory construction.
"""

from __future__ import annotations

import json
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from sitefactory.core.errors import SiteFactoryError
from sitefactory.framework.factory import Factory

console = Console()
err_console = Console(stderr=True)


# ── Factory helper ───────────────────────────────────────────────────────


def build_factory(
    config: str | None = None,
    site_config: str | None = None,
    site: str | None = None,
) -> Factory:
    """Build a Factory for one CLI invocation.

    The factory is not registered with the instance registry; a command
    that builds it also owns it.
    """
    return Factory(config, site_config, site_id=site)


def fail(exc: SiteFactoryError) -> NoReturn:
    """Print a sitefactory error and exit non-zero."""
    err_console.print(f"[bold red]Error[/bold red] ({exc.category.value}): {exc.message}")
    raise typer.Exit(code=1)


# ── Output helpers ───────────────────────────────────────────────────────


def output_dict(data: dict[str, Any], *, as_json: bool = False, title: str = "") -> None:
    """Render a dict as key-value pairs or as JSON."""
    if as_json:
        console.print_json(json.dumps(data, default=str))
        return
    if title:
        console.print(f"[bold]{title}[/bold]")
    for key, value in data.items():
        console.print(f"  [cyan]{key}[/cyan]: {_format(value)}")


def output_rows(
    rows: list[dict[str, Any]],
    *,
    as_json: bool = False,
    title: str = "",
) -> None:
    """Render a list of dicts as a Rich table or as JSON."""
    if as_json:
        console.print_json(json.dumps(rows, default=str))
        return
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for column in rows[0]:
        table.add_column(column, overflow="fold")
    for row in rows:
        table.add_row(*(_format(value) for value in row.values()))
    console.print(table)


def _format(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    if isinstance(value, dict):
        return ", ".join(f"{key}={item}" for key, item in value.items())
    return str(value)
