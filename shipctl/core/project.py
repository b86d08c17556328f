"""Project root detection and paths.

The project root is the directory holding ``shipctl.yaml``. Marker files
live under ``.shipctl/`` at that root.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .config import CONFIG_FILENAME
from .result import Err, Ok, Result

__all__ = [
    "Project",
    "ProjectError",
    "detect_project",
    "find_project_upward",
    "is_project_root",
]

STATE_DIRNAME = ".shipctl"


@dataclass(frozen=True)
class ProjectError:
    """Error when the project root cannot be detected."""

    message: str
    searched_from: Path | None = None


@dataclass(frozen=True, slots=True)
class Project:
    """A service checkout managed by shipctl."""

    root: Path

    @property
    def config_path(self) -> Path:
        return self.root / CONFIG_FILENAME

    @property
    def state_dir(self) -> Path:
        """Marker directory (.shipctl/)."""
        return self.root / STATE_DIRNAME

    def markers_dir(self, context: str) -> Path:
        """Per-context marker directory.

        A local build lives in the cluster's own docker daemon, so markers
        from one context are meaningless in another.
        """
        safe = context.replace("/", "_").replace(":", "_") or "default"
        return self.state_dir / safe

    def resolve(self, relative: str) -> Path:
        p = Path(relative).expanduser()
        return p if p.is_absolute() else self.root / p

    def __str__(self) -> str:
        return str(self.root)


def is_project_root(path: Path) -> bool:
    return (path / CONFIG_FILENAME).is_file()


def find_project_upward(start: Path) -> Path | None:
    for parent in (start, *start.parents):
        if is_project_root(parent):
            return parent
    return None


def detect_project(
    *,
    start_dir: Path | None = None,
    env_var: str = "SHIPCTL_PROJECT",
) -> Result[Project, ProjectError]:
    """Detect the project root.

    Detection order:
    1. ``$SHIPCTL_PROJECT`` (if set, it must be valid)
    2. Search upward from start_dir (or cwd) for shipctl.yaml
    """
    env_value = os.environ.get(env_var)
    if env_value:
        env_path = Path(env_value).expanduser().resolve()
        if env_path.is_dir() and is_project_root(env_path):
            return Ok(Project(root=env_path))
        return Err(
            ProjectError(
                message=f"${env_var} is set to '{env_value}' but it has no {CONFIG_FILENAME}",
                searched_from=env_path if env_path.is_dir() else None,
            )
        )

    search_start = (start_dir or Path.cwd()).resolve()
    found = find_project_upward(search_start)
    if found is None:
        return Err(
            ProjectError(
                message=f"could not find project ({CONFIG_FILENAME} not found)",
                searched_from=search_start,
            )
        )
    return Ok(Project(root=found))
