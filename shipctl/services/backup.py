"""Database backup and restore through ``kubectl exec``.

The dump never passes through shipctl: ``pg_dump`` stdout is redirected to
the backup file, and the file is fed to ``psql`` stdin on restore.
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable, Mapping
from pathlib import Path

from shipctl.core.config import ProjectConfig
from shipctl.core.project import Project
from shipctl.core.result import Err, Ok, Result
from shipctl.output.console import ConsoleProtocol
from shipctl.tools.kubectl import KubectlCli

from .base import BaseService
from .errors import ToolError

DEFAULT_BACKUP_DIR = "backups"


def resolve_backup_dir(project: Project, env: Mapping[str, str] | None = None) -> Path:
    """``$BACKUP_DIR``, else ``backups/`` in the project root."""
    environ = os.environ if env is None else env
    return project.resolve(environ.get("BACKUP_DIR") or DEFAULT_BACKUP_DIR)


class BackupService(BaseService):
    def __init__(
        self,
        *,
        project: Project,
        config: ProjectConfig,
        console: ConsoleProtocol,
        kubectl: KubectlCli,
        env: Mapping[str, str] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(project=project, config=config, console=console)
        self._kubectl = kubectl
        self._env = os.environ if env is None else env
        self._clock = clock

    @property
    def backup_dir(self) -> Path:
        return resolve_backup_dir(self._project, self._env)

    def backup(self) -> Result[Path, ToolError]:
        dest = self.backup_dir / f"{self._config.name}-{int(self._clock())}.sql"
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return Err(ToolError(tool="pg_dump", message=f"cannot create {dest.parent}: {e}"))

        result = self._kubectl.exec_to_file(
            pod=self._config.db_pod,
            namespace=self._config.namespace,
            command=["pg_dump", "-U", self._config.db_user, self._config.db_name],
            dest=dest,
        )
        if isinstance(result, Err):
            # A failed dump leaves a truncated file behind.
            dest.unlink(missing_ok=True)
            return Err(
                ToolError(
                    tool="pg_dump",
                    message=f"backup of {self._config.db_name} failed",
                    hint=f"Is {self._config.db_pod} running in namespace {self._config.namespace}?",
                    returncode=result.error.returncode if result.error.returncode > 0 else None,
                )
            )
        self._console.success(f"backup written to {dest}")
        return Ok(dest)

    def restore(self, source: Path) -> Result[None, ToolError]:
        if not source.is_file():
            return Err(ToolError(tool="psql", message=f"backup file not found: {source}"))

        result = self._kubectl.exec_from_file(
            pod=self._config.db_pod,
            namespace=self._config.namespace,
            command=["psql", "-U", self._config.db_user, self._config.db_name],
            source=source,
        )
        if isinstance(result, Err):
            return Err(
                ToolError(
                    tool="psql",
                    message=f"restore of {self._config.db_name} from {source.name} failed",
                    returncode=result.error.returncode if result.error.returncode > 0 else None,
                )
            )
        self._console.success(f"restored {self._config.db_name} from {source}")
        return Ok(None)
