"""Output formatting helpers using Rich."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.table import Table

# Shared console instances
console = Console()
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_stream_table(rows: list[tuple[str, str, int, Optional[int]]]) -> None:
    """Print stream depth and pending counts.

    Args:
        rows: ``(stream, group, length, pending)`` tuples; ``pending`` is
            None when the group does not exist.
    """
    table = Table(title="Pipeline Streams")
    table.add_column("Stream", style="cyan")
    table.add_column("Group", style="green")
    table.add_column("Length", justify="right")
    table.add_column("Pending", justify="right")

    for stream, group, length, pending in rows:
        table.add_row(
            stream,
            group,
            str(length),
            "[dim]-[/dim]" if pending is None else str(pending),
        )

    console.print(table)
