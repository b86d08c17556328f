"""Release installer stage.

``helm upgrade --install --atomic --wait``: the release either becomes
ready within the timeout or helm rolls it back to the previous revision.
"""

from __future__ import annotations

from shipctl.core.config import ProjectConfig
from shipctl.core.markers import BuildMarker, PushMarker
from shipctl.core.project import Project
from shipctl.core.result import Err, Ok, Result
from shipctl.output.console import ConsoleProtocol
from shipctl.tools.helm import PENDING_STATUSES, HelmCli, is_locked, was_rolled_back

from .base import BaseService
from .context import DeployContext
from .errors import InstallError, MissingArtifactError, hint_from


class ReleaseInstaller(BaseService):
    def __init__(
        self,
        *,
        project: Project,
        config: ProjectConfig,
        console: ConsoleProtocol,
        helm: HelmCli,
        deploy_context: DeployContext,
    ) -> None:
        super().__init__(project=project, config=config, console=console)
        self._helm = helm
        self._deploy_context = deploy_context

    def select_image(
        self, build: BuildMarker, push: PushMarker | None
    ) -> Result[str, MissingArtifactError]:
        """Local image for the local cluster, pushed image everywhere else."""
        if self._deploy_context.is_local:
            return Ok(build.local_image_ref)
        if push is None:
            return Err(
                MissingArtifactError(
                    message=(
                        f"context '{self._deploy_context}' needs a pushed image "
                        f"but {build.local_image_ref} was not published"
                    ),
                    hint="Set image_repo (ecr or nexus) in shipctl.yaml, then run: shipctl push",
                )
            )
        return Ok(push.remote_image_ref)

    def install(
        self, build: BuildMarker, push: PushMarker | None
    ) -> Result[None, InstallError | MissingArtifactError]:
        image = self.select_image(build, push)
        if isinstance(image, Err):
            return image

        chart = self._project.resolve(self._config.chart)
        if not chart.exists():
            return Err(
                InstallError(
                    kind="chart_missing",
                    message=f"helm chart not found: {chart}",
                    hint="Set 'chart' in shipctl.yaml",
                )
            )

        release = self._config.name
        namespace = self._config.namespace
        status = self._helm.release_status(release, namespace)
        if isinstance(status, Err):
            return Err(
                InstallError(
                    kind="status_failed",
                    message=f"cannot read status of release '{release}'",
                    hint=hint_from(status.error),
                    returncode=status.error.returncode,
                )
            )
        if status.value in PENDING_STATUSES:
            return Err(
                InstallError(
                    kind="release_locked",
                    message=f"release '{release}' is {status.value}: another operation is in flight",
                    hint=f"Wait for it to finish, or run: helm rollback {release} -n {namespace}",
                )
            )

        values = self._project.resolve(self._config.values)
        result = self._helm.upgrade_install(
            release=release,
            chart=chart,
            namespace=namespace,
            values_files=[values] if values.is_file() else [],
            set_values={
                "local": "true" if self._deploy_context.is_local else "false",
                "image": image.value,
            },
            timeout=self._config.helm_timeout,
        )
        if isinstance(result, Err):
            if is_locked(result.error):
                return Err(
                    InstallError(
                        kind="release_locked",
                        message=f"release '{release}' is locked by another helm operation",
                        hint=f"Wait for it to finish, or run: helm rollback {release} -n {namespace}",
                        returncode=result.error.returncode,
                    )
                )
            suffix = " (rolled back)" if was_rolled_back(result.error) else ""
            return Err(
                InstallError(
                    kind="helm_failed",
                    message=f"helm upgrade --install failed for '{release}'{suffix}",
                    hint=hint_from(result.error),
                    returncode=result.error.returncode,
                )
            )
        return Ok(None)

    def uninstall(self) -> Result[None, InstallError]:
        release = self._config.name
        status = self._helm.release_status(release, self._config.namespace)
        if isinstance(status, Ok) and status.value is None:
            return Ok(None)

        result = self._helm.uninstall(release, self._config.namespace)
        if isinstance(result, Err):
            return Err(
                InstallError(
                    kind="helm_failed",
                    message=f"helm uninstall failed for '{release}'",
                    returncode=result.error.returncode,
                )
            )
        return Ok(None)
