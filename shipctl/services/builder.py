"""Image builder stage.

Builds ``<org>/<project>:<version>`` from the project root and records the
result in the build marker. For a local cluster the build runs against the
cluster's docker daemon so the image is usable without a push.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path

from shipctl.core.config import ProjectConfig
from shipctl.core.markers import (
    BUILD_MARKER,
    PUSH_MARKER,
    BuildMarker,
    clear_marker,
    newest_source_mtime,
    read_build_marker,
    write_build_marker,
)
from shipctl.core.project import Project
from shipctl.core.result import Err, Ok, Result
from shipctl.output.console import ConsoleProtocol, Style
from shipctl.tools.docker import DockerCli
from shipctl.tools.minikube import MinikubeCli

from .base import BaseService
from .errors import BuildError, hint_from

VERSION_BUILD_ARG = "VERSION"


class ImageBuilder(BaseService):
    def __init__(
        self,
        *,
        project: Project,
        config: ProjectConfig,
        console: ConsoleProtocol,
        docker: DockerCli,
        markers_dir: Path,
        minikube: MinikubeCli | None = None,
        minikube_profile: str | None = None,
        ignored: Sequence[Path] = (),
    ) -> None:
        super().__init__(project=project, config=config, console=console)
        self._docker = docker
        self._ignored = tuple(ignored)
        self._markers_dir = markers_dir
        self._minikube = minikube
        self._minikube_profile = minikube_profile
        self._daemon_env: dict[str, str] | None = None

    @property
    def markers_dir(self) -> Path:
        return self._markers_dir

    def _env(self) -> Result[dict[str, str], BuildError]:
        if self._daemon_env is not None:
            return Ok(self._daemon_env)
        if self._minikube is None or self._minikube_profile is None:
            self._daemon_env = {}
            return Ok(self._daemon_env)

        result = self._minikube.docker_env(self._minikube_profile)
        if isinstance(result, Err):
            return Err(
                BuildError(
                    kind="daemon_unavailable",
                    message=f"cannot reach the docker daemon of '{self._minikube_profile}'",
                    hint=hint_from(result.error, "Run: minikube start"),
                    returncode=result.error.returncode,
                )
            )
        self._daemon_env = result.value
        return Ok(self._daemon_env)

    def current(self) -> Result[BuildMarker | None, BuildError]:
        """Return the build marker if it can be reused, else None.

        A marker is stale when any file in the build context is newer than
        it, or when its image is gone from the daemon.
        """
        read = read_build_marker(self._markers_dir)
        if isinstance(read, Err):
            return Err(BuildError(kind="marker_unreadable", message=read.error.message))
        marker = read.value
        if marker is None:
            return Ok(None)

        marker_mtime = (self._markers_dir / BUILD_MARKER).stat().st_mtime
        if newest_source_mtime(self._project.root, exclude=self._ignored) > marker_mtime:
            self._console.print("sources changed since last build", Style.DIM)
            return Ok(None)

        env = self._env()
        if isinstance(env, Err):
            return env
        if not self._docker.image_exists(marker.local_image_ref, env=env.value):
            self._console.print(f"image {marker.local_image_ref} no longer exists", Style.DIM)
            return Ok(None)

        return Ok(marker)

    def build(self, version: str) -> Result[BuildMarker, BuildError]:
        """Build the image and persist the build marker.

        Any push marker is dropped: it described the previous image.
        """
        env = self._env()
        if isinstance(env, Err):
            return env

        image_ref = self._config.local_image_ref(version)
        result = self._docker.build(
            image_ref=image_ref,
            context_dir=self._project.root,
            build_args={VERSION_BUILD_ARG: version},
            env=env.value,
        )
        if isinstance(result, Err):
            return Err(
                BuildError(
                    kind="build_failed",
                    message=f"docker build failed for {image_ref}",
                    returncode=result.error.returncode,
                )
            )

        marker = BuildMarker(image_tag=version, local_image_ref=image_ref)
        write_build_marker(self._markers_dir, marker)
        clear_marker(self._markers_dir, PUSH_MARKER)
        return Ok(marker)

    def ensure(self, version_factory: Callable[[], str]) -> Result[BuildMarker, BuildError]:
        """Reuse the current build marker, or build a new image."""
        current = self.current()
        if isinstance(current, Err):
            return current
        if current.value is not None:
            return Ok(current.value)
        return self.build(version_factory())
