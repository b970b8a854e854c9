"""Shared console utilities for CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from svcman.service.errors import ServiceError

# Shared console instance for all CLI commands
console = Console()


def error(msg: str) -> None:
    """Print an error message in red."""
    console.print(f"[red]{escape(msg)}[/red]", highlight=False, soft_wrap=True)


def warning(msg: str) -> None:
    """Print a warning message in yellow."""
    console.print(f"[yellow]{escape(msg)}[/yellow]", highlight=False, soft_wrap=True)


def success(msg: str) -> None:
    """Print a success message in green."""
    console.print(f"[green]{escape(msg)}[/green]", highlight=False, soft_wrap=True)


def info(msg: str) -> None:
    """Print an info message in cyan."""
    console.print(f"[cyan]{escape(msg)}[/cyan]", highlight=False, soft_wrap=True)


def dim(msg: str) -> None:
    """Print a dimmed message."""
    console.print(f"[dim]{escape(msg)}[/dim]", highlight=False, soft_wrap=True)


def create_table(
    title: str,
    columns: list[tuple[str, str | dict]],
) -> Table:
    """Create a styled table with consistent formatting.

    Args:
        title: Table title.
        columns: List of (name, style) or (name, kwargs_dict) tuples.

    Returns:
        Configured Rich Table.
    """
    table = Table(title=title)
    for name, style_or_kwargs in columns:
        if isinstance(style_or_kwargs, dict):
            table.add_column(name, **style_or_kwargs)
        else:
            table.add_column(name, style=style_or_kwargs)
    return table


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Report a ServiceError and exit with its exit code."""
    try:
        yield
    except ServiceError as e:
        error(str(e))
        if e.cleanup_error is not None:
            warning(f"Cleanup also failed: {e.cleanup_error}")
        raise typer.Exit(e.exit_code) from e
