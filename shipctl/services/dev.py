"""Developer commands: deps, lint, test, run, stop.

Thin wrappers around pip, flake8, spectral, pytest and docker run in the
project root. None of them touch the cluster.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence

from shipctl.core.config import ProjectConfig
from shipctl.core.project import Project
from shipctl.core.result import Err, Ok, Result
from shipctl.output.console import ConsoleProtocol, Style
from shipctl.platform.process import ProcessError
from shipctl.tools.docker import DockerCli
from shipctl.tools.runner import CommandRunner

from .base import BaseService
from .builder import ImageBuilder
from .context import new_version
from .errors import ToolError, hint_from

REQUIREMENTS_FILES = ("requirements.txt", "requirements-dev.txt")


def _tool_error(tool: str, message: str, error: ProcessError) -> ToolError:
    return ToolError(
        tool=tool,
        message=message,
        hint=hint_from(error),
        returncode=error.returncode if error.returncode > 0 else None,
    )


class DevService(BaseService):
    def __init__(
        self,
        *,
        project: Project,
        config: ProjectConfig,
        console: ConsoleProtocol,
        runner: CommandRunner,
        docker: DockerCli,
        builder: ImageBuilder,
        python: str = sys.executable,
    ) -> None:
        super().__init__(project=project, config=config, console=console)
        self._runner = runner
        self._docker = docker
        self._builder = builder
        self._python = python

    def deps(self) -> Result[int, ToolError]:
        """Install requirements files; Ok(number of files installed)."""
        files = [self._project.root / f for f in REQUIREMENTS_FILES]
        present = [f for f in files if f.is_file()]
        if not present:
            return Err(
                ToolError(
                    tool="pip",
                    message=f"no requirements.txt in {self._project.root}",
                )
            )

        for req in present:
            result = self._runner.stream(
                [self._python, "-m", "pip", "install", "-r", req.name]
            )
            if isinstance(result, Err):
                return Err(_tool_error("pip", f"pip install -r {req.name} failed", result.error))
        return Ok(len(present))

    def lint(self) -> Result[None, ToolError]:
        dirs = [d for d in self._config.source_dirs if self._project.resolve(d).exists()]
        if dirs:
            result = self._runner.stream(["flake8", *dirs])
            if isinstance(result, Err):
                return Err(_tool_error("flake8", "flake8 reported problems", result.error))
        else:
            self._console.print("no source directories to lint", Style.DIM)

        openapi = self._project.resolve(self._config.openapi)
        if openapi.is_file():
            result = self._runner.stream(["spectral", "lint", self._config.openapi])
            if isinstance(result, Err):
                return Err(
                    _tool_error("spectral", f"spectral lint failed for {openapi.name}", result.error)
                )
        return Ok(None)

    def test(self, args: Sequence[str] = ()) -> Result[None, ToolError]:
        result = self._runner.stream([self._python, "-m", "pytest", *args])
        if isinstance(result, Err):
            return Err(_tool_error("pytest", "tests failed", result.error))
        return Ok(None)

    def run_container(self) -> Result[str, ToolError]:
        """Start the service image in the local docker daemon.

        Reuses the last local build if it is still current. Returns the
        container id.
        """
        built = self._builder.ensure(new_version)
        if isinstance(built, Err):
            return Err(
                ToolError(
                    tool="docker",
                    message=built.error.message,
                    hint=built.error.hint,
                    returncode=built.error.returncode,
                )
            )
        marker = built.value

        started = self._docker.run_detached(
            name=self._config.name, image_ref=marker.local_image_ref, port=self._config.port
        )
        if isinstance(started, Err):
            return Err(
                _tool_error("docker", f"cannot start container '{self._config.name}'", started.error)
            )
        self._console.success(
            f"{self._config.name} running on http://localhost:{self._config.port}"
        )
        return Ok(started.value)

    def stop(self) -> Result[None, ToolError]:
        result = self._docker.stop(self._config.name)
        if isinstance(result, Err):
            return Err(
                _tool_error("docker", f"cannot stop container '{self._config.name}'", result.error)
            )
        return Ok(None)
