"""Terminal output helpers."""

from rich.console import Console
from rich.markup import escape

console = Console(highlight=False, soft_wrap=True)
err_console = Console(stderr=True, highlight=False, soft_wrap=True)


def success(message: str) -> None:
    """Print a green check mark followed by message (markup allowed)."""
    console.print(f"[green]✓[/green] {message}")


def info(message: str) -> None:
    """Print a progress line; the check mark is reserved for completed work."""
    console.print(f"[cyan]→[/cyan] {escape(message)}")


def warn(message: str) -> None:
    err_console.print(f"[bold yellow]Warning:[/bold yellow] {escape(message)}")


def error(message: str) -> None:
    err_console.print(f"[red]Error: {escape(message)}[/red]")
