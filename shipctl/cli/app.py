from __future__ import annotations

import os
from pathlib import Path

import typer

from shipctl import __version__
from shipctl.cli.commands.backup import backup, restore
from shipctl.cli.commands.clean import clean
from shipctl.cli.commands.dev import deps, lint, run, stop, test
from shipctl.cli.commands.release import build, deploy, push, redeploy, secrets, undeploy
from shipctl.core.config import CONFIG_FILENAME
from shipctl.core.errors import ErrorCode
from shipctl.core.project import is_project_root


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Development
app.command()(lint)
app.command()(deps)
app.command()(test)
app.command()(run)
app.command()(stop)

# Release
app.command()(build)
app.command()(push)
app.command()(deploy)
app.command()(undeploy)
app.command()(redeploy)
app.command()(secrets)

# Operations
app.command()(backup)
app.command()(restore)
app.command()(clean)


@app.callback(invoke_without_command=True)
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    project: Path | None = typer.Option(
        None,
        "--project",
        help=f"Project root (overrides searching upward for {CONFIG_FILENAME})",
    ),
    context: str | None = typer.Option(
        None,
        "--context",
        help="Kube context to target (overrides $KUBE_CONTEXT)",
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if project is not None:
        try:
            root = project.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --project: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        if not root.is_dir() or not is_project_root(root):
            typer.echo(
                f"error: --project '{root}' is not a project (missing {CONFIG_FILENAME})",
                err=True,
            )
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

        os.environ["SHIPCTL_PROJECT"] = str(root)

    if context:
        os.environ["KUBE_CONTEXT"] = context


def main() -> None:
    app()
