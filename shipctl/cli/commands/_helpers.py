"""Shared helpers for CLI commands."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from shipctl.core.result import Err, Result
from shipctl.output.errors import AnyError, error_exit_code, print_error

if TYPE_CHECKING:
    from shipctl.cli.context import CLIContext


T = TypeVar("T")

_TRUTHY = {"1", "true", "yes"}


def exit_on_error[T](result: Result[T, AnyError], ctx: CLIContext) -> T:
    """Return the Ok value, or print the error and exit with its code.

    The exit code is the failing tool's own code when there is one.
    """
    if isinstance(result, Err):
        print_error(result.error, ctx.console)
        raise typer.Exit(code=error_exit_code(result.error))
    return result.value


def exit_with_code(code: int) -> NoReturn:
    """Exit with given code. Explicit helper for clarity."""
    raise typer.Exit(code=code)


def non_interactive() -> bool:
    return os.environ.get("NONINTERACTIVE", "").strip().lower() in _TRUTHY
