from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from typing import Literal

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import OUTPUT_MODES

OutputMode = Literal["plain", "rich"]


def add_output_mode_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--output", choices=OUTPUT_MODES, help="auto (default), plain, or rich")


def _stream_is_tty(stream: object) -> bool:
    probe = getattr(stream, "isatty", None)
    if not callable(probe):
        return False
    try:
        return bool(probe())
    except (OSError, ValueError):
        return False


def resolve_output_mode(
    requested: str | None = None,
    *,
    configured: str | None = None,
    is_tty: bool | None = None,
) -> OutputMode:
    """``--output`` beats ``[output].mode``; ``auto`` picks rich on a TTY."""
    selected = requested or configured or "auto"
    if selected == "auto":
        tty = _stream_is_tty(sys.stdout) if is_tty is None else bool(is_tty)
        return "rich" if tty else "plain"
    return "rich" if selected == "rich" else "plain"


def make_console(mode: OutputMode, *, stderr: bool = False) -> Console:
    return Console(
        file=sys.stderr if stderr else sys.stdout,
        force_terminal=mode == "rich",
        no_color=mode != "rich",
        highlight=False,
        soft_wrap=True,
    )


@dataclass(frozen=True)
class CommandHelp:
    """Help page for one ``lanegraph`` subcommand."""

    command: str
    summary: str
    usage: str
    options: tuple[tuple[str, str], ...] = ()
    example: tuple[str, str] | None = None


def render_command_help(help_page: CommandHelp, *, mode: OutputMode) -> None:
    console = make_console(mode)
    rows = list(help_page.options)
    if help_page.example is not None:
        rows.append(help_page.example)

    if mode == "rich":
        console.print(Panel(help_page.summary, title=f"[bold blue]{help_page.command}[/bold blue]", expand=False))
        console.print(f"  {help_page.usage}", markup=False)
        if rows:
            table = Table(show_header=False, box=None, padding=(0, 2))
            table.add_column(no_wrap=True, style="cyan")
            table.add_column()
            for item, description in rows:
                table.add_row(item, description)
            console.print(table)
        return

    console.print(f"{help_page.command}  {help_page.summary}", markup=False)
    console.print()
    console.print(f"Usage: {help_page.usage}", markup=False)
    if rows:
        width = max(len(item) for item, _ in rows)
        console.print()
        for item, description in rows:
            console.print(f"  {item.ljust(width)}  {description}", markup=False)
