"""Pipeline error taxonomy.

Every stage failure is fatal and aborts the remaining stages; nothing is
retried automatically. The single recoverable case is
``MissingArtifactError``, which the pipeline answers by re-running the
publish stage once.

``returncode`` carries the failing tool's exit code so the CLI can
propagate it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from shipctl.platform.process import ProcessError

__all__ = [
    "BuildError",
    "InstallError",
    "MissingArtifactError",
    "NamespaceError",
    "PipelineError",
    "PublishError",
    "SecretError",
    "ToolError",
    "hint_from",
]


def hint_from(error: ProcessError, fallback: str | None = None) -> str | None:
    """Last line of the tool's stderr, which is usually the useful one."""
    lines = [line.strip() for line in error.output.splitlines() if line.strip()]
    return lines[-1] if lines else fallback


@dataclass(frozen=True, slots=True)
class BuildError:
    kind: Literal["build_failed", "daemon_unavailable", "marker_unreadable"]
    message: str
    hint: str | None = None
    returncode: int | None = None


@dataclass(frozen=True, slots=True)
class PublishError:
    kind: Literal[
        "auth_failed",
        "credentials_missing",
        "repository_failed",
        "policy_failed",
        "push_failed",
        "marker_unreadable",
    ]
    message: str
    hint: str | None = None
    returncode: int | None = None


@dataclass(frozen=True, slots=True)
class NamespaceError:
    kind: Literal["lookup_failed", "create_failed", "delete_failed"]
    message: str
    hint: str | None = None
    returncode: int | None = None


@dataclass(frozen=True, slots=True)
class SecretError:
    kind: Literal["secretgen_failed"]
    message: str
    hint: str | None = None
    returncode: int | None = None


@dataclass(frozen=True, slots=True)
class InstallError:
    kind: Literal[
        "chart_missing", "release_locked", "status_failed", "helm_failed", "unknown_stage"
    ]
    message: str
    hint: str | None = None
    returncode: int | None = None


@dataclass(frozen=True, slots=True)
class MissingArtifactError:
    """A remote context needs a pushed image but no PushMarker exists."""

    message: str
    hint: str | None = None
    returncode: int | None = None


@dataclass(frozen=True, slots=True)
class ToolError:
    """Failure of a developer command (deps, lint, test, run, backup...)."""

    tool: str
    message: str
    hint: str | None = None
    returncode: int | None = None


PipelineError = (
    BuildError | PublishError | NamespaceError | SecretError | InstallError | MissingArtifactError
)
