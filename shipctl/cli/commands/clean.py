"""Clean command - remove build and push markers."""

from __future__ import annotations

import os
import shutil
import stat
from collections.abc import Callable
from pathlib import Path

import typer
from rich.console import Console

from shipctl.cli.context import build_context

_console = Console()


def _remove_readonly(_func: Callable[[str], object], path: str, exc: BaseException) -> None:
    """Handle read-only files on Windows."""
    if isinstance(exc, PermissionError):
        os.chmod(path, stat.S_IWRITE)
        os.unlink(path)
    else:
        raise exc


def clean(
    yes: bool = typer.Option(False, "--yes", "-y", help="Execute (default is dry-run)"),
) -> None:
    """Forget all builds and pushes. Dry-run by default, use -y to execute."""
    ctx = build_context()
    state_dir = ctx.project.state_dir

    existing: list[Path] = sorted(p for p in state_dir.iterdir()) if state_dir.is_dir() else []

    if not existing:
        _console.print("[dim]Nothing to clean[/dim]")
        return

    if yes:
        _console.print("\n[bold red]EXECUTE[/bold red]\n")
    else:
        _console.print("\n[yellow]DRY-RUN[/yellow]\n")

    for p in existing:
        _console.print(f"  {p}", style="dim")

    if not yes:
        _console.print("\n[dim]Use -y to execute[/dim]")
        return

    shutil.rmtree(state_dir, onexc=_remove_readonly)
    _console.print(f"\n[green]Removed {len(existing)} marker directories[/green]")
