"""Database backup and restore commands."""

from __future__ import annotations

from pathlib import Path

import typer

from shipctl.cli.commands._helpers import exit_on_error, exit_with_code, non_interactive
from shipctl.cli.context import build_context
from shipctl.core.errors import ErrorCode
from shipctl.output.console import Style


def backup() -> None:
    """Dump the service database to $BACKUP_DIR (default: backups/)."""
    ctx = build_context()
    target = ctx.deploy_context()
    exit_on_error(ctx.backups(target).backup(), ctx)


def restore(
    file: Path = typer.Argument(..., help="SQL dump to load"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Load a SQL dump into the service database."""
    ctx = build_context()
    target = ctx.deploy_context()

    if not yes and not non_interactive():
        question = f"Restore {file.name} into {ctx.config.db_name} on {target}?"
        if not typer.confirm(question):
            ctx.console.print("aborted", Style.DIM)
            exit_with_code(int(ErrorCode.USER_ERROR))

    exit_on_error(ctx.backups(target).restore(file), ctx)
