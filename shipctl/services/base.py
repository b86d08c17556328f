"""Common service plumbing."""

from __future__ import annotations

from shipctl.core.config import ProjectConfig
from shipctl.core.project import Project
from shipctl.output.console import ConsoleProtocol


class BaseService:
    """Holds what every service needs: project layout, config, console."""

    def __init__(
        self,
        *,
        project: Project,
        config: ProjectConfig,
        console: ConsoleProtocol,
    ) -> None:
        self._project = project
        self._config = config
        self._console = console
