"""Developer commands - deps, lint, test, run, stop."""

from __future__ import annotations

import typer

from shipctl.cli.commands._helpers import exit_on_error
from shipctl.cli.context import build_context


def deps() -> None:
    """Install requirements.txt (and requirements-dev.txt if present)."""
    ctx = build_context()
    count = exit_on_error(ctx.dev().deps(), ctx)
    ctx.console.success(f"installed {count} requirements file(s)")


def lint() -> None:
    """Run flake8 and, if there is an OpenAPI document, spectral."""
    ctx = build_context()
    exit_on_error(ctx.dev().lint(), ctx)
    ctx.console.success("lint clean")


def test(
    args: list[str] | None = typer.Argument(
        None, help="Arguments passed to pytest (after --)", show_default=False
    ),
) -> None:
    """Run the test suite with pytest."""
    ctx = build_context()
    exit_on_error(ctx.dev().test(args or []), ctx)


def run() -> None:
    """Run the service container in the local docker daemon."""
    ctx = build_context()
    exit_on_error(ctx.dev().run_container(), ctx)


def stop() -> None:
    """Stop the container started by run."""
    ctx = build_context()
    exit_on_error(ctx.dev().stop(), ctx)
    ctx.console.success(f"{ctx.config.name} stopped")
