"""Image publisher stage.

Pushes the built image to the configured registry and records the remote
reference in the push marker.

- ``none``: nothing to do, no external calls.
- ``ecr``: log in with ``aws ecr get-login-password``; on first use create
  the repository and attach the lifecycle policy fetched from
  ``lifecycle_policy_url``.
- ``nexus``: log in with ``$NEXUS_USERNAME``/``$NEXUS_PASSWORD``.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path

from shipctl.core.config import ImageRepoKind, ProjectConfig
from shipctl.core.markers import BuildMarker, PushMarker, read_push_marker, write_push_marker
from shipctl.core.project import Project
from shipctl.core.result import Err, Ok, Result
from shipctl.output.console import ConsoleProtocol, Style
from shipctl.tools.aws import EcrCli, ecr_registry
from shipctl.tools.docker import DockerCli
from shipctl.tools.http import HttpClient

from .base import BaseService
from .errors import PublishError, hint_from

ECR_USERNAME = "AWS"


class ImagePublisher(BaseService):
    def __init__(
        self,
        *,
        project: Project,
        config: ProjectConfig,
        console: ConsoleProtocol,
        docker: DockerCli,
        ecr: EcrCli,
        http: HttpClient,
        markers_dir: Path,
        env: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(project=project, config=config, console=console)
        self._docker = docker
        self._ecr = ecr
        self._http = http
        self._markers_dir = markers_dir
        self._env = os.environ if env is None else env

    def current(self, build: BuildMarker) -> Result[PushMarker | None, PublishError]:
        """Return the push marker if it describes ``build``'s image."""
        if self._config.image_repo == ImageRepoKind.none:
            return Ok(None)
        read = read_push_marker(self._markers_dir)
        if isinstance(read, Err):
            return Err(PublishError(kind="marker_unreadable", message=read.error.message))
        marker = read.value
        if marker is None or marker.image_tag != build.image_tag:
            return Ok(None)
        if not self._pushed_to_current_registry(marker):
            self._console.print(
                f"{marker.remote_image_ref} is not in the configured registry", Style.DIM
            )
            return Ok(None)
        return Ok(marker)

    def _pushed_to_current_registry(self, marker: PushMarker) -> bool:
        """Whether ``marker`` points at this project in the configured registry.

        For ECR only the region is compared: the account id needs a call to
        AWS and is checked by the next publish.
        """
        registry, _, path = marker.remote_image_ref.partition("/")
        if path != f"{self._config.name}:{marker.image_tag}":
            return False
        match self._config.image_repo:
            case ImageRepoKind.nexus:
                return registry == self._config.nexus_registry
            case ImageRepoKind.ecr:
                region = self._ecr_region()
                return isinstance(region, Ok) and registry.endswith(
                    f".dkr.ecr.{region.value}.amazonaws.com"
                )
            case ImageRepoKind.none:
                return False

    def ensure(self, build: BuildMarker) -> Result[PushMarker | None, PublishError]:
        """Reuse a push of the same tag, or publish ``build`` now."""
        current = self.current(build)
        if isinstance(current, Err):
            return current
        if current.value is not None:
            return Ok(current.value)
        return self.publish(build)

    def publish(self, build: BuildMarker) -> Result[PushMarker | None, PublishError]:
        """Tag and push ``build``; Ok(None) when no registry is configured."""
        match self._config.image_repo:
            case ImageRepoKind.none:
                return Ok(None)
            case ImageRepoKind.ecr:
                registry = self._login_ecr()
            case ImageRepoKind.nexus:
                registry = self._login_nexus()
        if isinstance(registry, Err):
            return registry

        remote_ref = f"{registry.value}/{self._config.name}:{build.image_tag}"
        tagged = self._docker.tag(build.local_image_ref, remote_ref)
        if isinstance(tagged, Err):
            return Err(
                PublishError(
                    kind="push_failed",
                    message=f"cannot tag {build.local_image_ref} as {remote_ref}",
                    hint=hint_from(tagged.error),
                    returncode=tagged.error.returncode,
                )
            )

        pushed = self._docker.push(remote_ref)
        if isinstance(pushed, Err):
            return Err(
                PublishError(
                    kind="push_failed",
                    message=f"docker push failed for {remote_ref}",
                    returncode=pushed.error.returncode,
                )
            )

        marker = PushMarker(remote_image_ref=remote_ref)
        write_push_marker(self._markers_dir, marker)
        return Ok(marker)

    # -------------------------------------------------------------------------
    # ECR
    # -------------------------------------------------------------------------

    def _ecr_region(self) -> Result[str, PublishError]:
        if self._config.aws_region:
            return Ok(self._config.aws_region)
        region = self._ecr.configured_region()
        if isinstance(region, Err) or not region.value:
            return Err(
                PublishError(
                    kind="credentials_missing",
                    message="no AWS region configured",
                    hint="Set aws_region in shipctl.yaml or AWS_REGION",
                )
            )
        return Ok(region.value)

    def _login_ecr(self) -> Result[str, PublishError]:
        region = self._ecr_region()
        if isinstance(region, Err):
            return region

        account = self._ecr.account_id()
        if isinstance(account, Err):
            return Err(
                PublishError(
                    kind="auth_failed",
                    message="cannot resolve AWS account (aws sts get-caller-identity failed)",
                    hint=hint_from(account.error, "Run: aws configure"),
                    returncode=account.error.returncode,
                )
            )
        registry = ecr_registry(account.value, region.value)

        password = self._ecr.login_password(region.value)
        if isinstance(password, Err):
            return Err(
                PublishError(
                    kind="auth_failed",
                    message="aws ecr get-login-password failed",
                    hint=hint_from(password.error),
                    returncode=password.error.returncode,
                )
            )

        login = self._docker.login(
            registry=registry, username=ECR_USERNAME, password=password.value
        )
        if isinstance(login, Err):
            return Err(
                PublishError(
                    kind="auth_failed",
                    message=f"docker login to {registry} failed",
                    hint=hint_from(login.error),
                    returncode=login.error.returncode,
                )
            )

        ensured = self._ensure_ecr_repository(region.value)
        if isinstance(ensured, Err):
            return ensured
        return Ok(registry)

    def _ensure_ecr_repository(self, region: str) -> Result[None, PublishError]:
        name = self._config.name
        exists = self._ecr.repository_exists(name, region)
        if isinstance(exists, Err):
            return Err(
                PublishError(
                    kind="repository_failed",
                    message=f"cannot look up ECR repository '{name}'",
                    hint=hint_from(exists.error),
                    returncode=exists.error.returncode,
                )
            )
        if exists.value:
            return Ok(None)

        created = self._ecr.create_repository(name, region)
        if isinstance(created, Err):
            return Err(
                PublishError(
                    kind="repository_failed",
                    message=f"cannot create ECR repository '{name}'",
                    hint=hint_from(created.error),
                    returncode=created.error.returncode,
                )
            )
        if not created.value:
            # Lost a creation race; the winner attaches the policy.
            return Ok(None)

        self._console.info(f"created ECR repository '{name}'")
        return self._attach_lifecycle_policy(name, region)

    def _attach_lifecycle_policy(self, name: str, region: str) -> Result[None, PublishError]:
        url = self._config.lifecycle_policy_url
        fetched = self._http.get_text(url)
        if isinstance(fetched, Err):
            return Err(
                PublishError(
                    kind="policy_failed",
                    message="cannot download ECR lifecycle policy",
                    hint=str(fetched.error),
                )
            )

        try:
            json.loads(fetched.value)
        except json.JSONDecodeError as e:
            return Err(
                PublishError(
                    kind="policy_failed",
                    message=f"lifecycle policy is not valid JSON: {e}",
                    hint=url,
                )
            )

        attached = self._ecr.put_lifecycle_policy(name, region, fetched.value)
        if isinstance(attached, Err):
            return Err(
                PublishError(
                    kind="policy_failed",
                    message=f"cannot attach lifecycle policy to '{name}'",
                    hint=hint_from(attached.error),
                    returncode=attached.error.returncode,
                )
            )
        return Ok(None)

    # -------------------------------------------------------------------------
    # Nexus
    # -------------------------------------------------------------------------

    def _login_nexus(self) -> Result[str, PublishError]:
        registry = self._config.nexus_registry
        username = self._env.get("NEXUS_USERNAME", "")
        password = self._env.get("NEXUS_PASSWORD", "")
        if not username or not password:
            return Err(
                PublishError(
                    kind="credentials_missing",
                    message=f"no credentials for {registry}",
                    hint="Set NEXUS_USERNAME and NEXUS_PASSWORD",
                )
            )

        login = self._docker.login(registry=registry, username=username, password=password)
        if isinstance(login, Err):
            return Err(
                PublishError(
                    kind="auth_failed",
                    message=f"docker login to {registry} failed",
                    hint=hint_from(login.error),
                    returncode=login.error.returncode,
                )
            )
        return Ok(registry)
