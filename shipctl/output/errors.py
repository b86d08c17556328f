"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shipctl.core.config import ConfigError
from shipctl.core.errors import ErrorCode
from shipctl.core.project import ProjectError
from shipctl.output.console import Style
from shipctl.services.errors import (
    BuildError,
    InstallError,
    MissingArtifactError,
    NamespaceError,
    PublishError,
    SecretError,
    ToolError,
)

if TYPE_CHECKING:
    from shipctl.output.console import ConsoleProtocol

__all__ = ["AnyError", "error_exit_code", "print_error"]

AnyError = (
    ConfigError
    | ProjectError
    | BuildError
    | PublishError
    | NamespaceError
    | SecretError
    | InstallError
    | MissingArtifactError
    | ToolError
)


def print_error(error: AnyError, console: ConsoleProtocol) -> None:
    """Print an error (and its hint) to the console."""
    match error:
        case ConfigError(message=message, path=path, hint=hint):
            console.error(f"{message} ({path})" if path else message)
        case ProjectError(message=message, searched_from=searched_from):
            console.error(message)
            hint = f"searched from {searched_from}" if searched_from else None
        case ToolError(tool=tool, message=message, hint=hint):
            console.error(f"{tool}: {message}")
        case _:
            console.error(error.message)
            hint = error.hint
    if hint:
        console.print(f"hint: {hint}", Style.DIM)


def _code_for(error: AnyError) -> ErrorCode:
    match error:
        case ConfigError() | ProjectError():
            return ErrorCode.ENV_ERROR
        case BuildError(kind="daemon_unavailable"):
            return ErrorCode.ENV_ERROR
        case BuildError(kind="marker_unreadable") | PublishError(kind="marker_unreadable"):
            return ErrorCode.IO_ERROR
        case BuildError():
            return ErrorCode.BUILD_ERROR
        case PublishError(kind="credentials_missing"):
            return ErrorCode.ENV_ERROR
        case PublishError():
            return ErrorCode.NETWORK_ERROR
        case InstallError(kind="chart_missing") | MissingArtifactError():
            return ErrorCode.USER_ERROR
        case NamespaceError() | SecretError() | InstallError():
            return ErrorCode.DEPLOY_ERROR
        case ToolError(tool="pg_dump" | "psql"):
            return ErrorCode.IO_ERROR
        case ToolError():
            return ErrorCode.BUILD_ERROR
    return ErrorCode.USER_ERROR


def error_exit_code(error: AnyError) -> int:
    """Exit code for an error: the failing tool's own code when it has one."""
    returncode = getattr(error, "returncode", None)
    if isinstance(returncode, int) and returncode > 0:
        return returncode
    return int(_code_for(error))
