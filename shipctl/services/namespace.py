"""Namespace provisioner stage."""

from __future__ import annotations

import time
from collections.abc import Callable

from shipctl.core.config import ProjectConfig
from shipctl.core.project import Project
from shipctl.core.result import Err, Ok, Result
from shipctl.output.console import ConsoleProtocol
from shipctl.tools.kubectl import KubectlCli

from .base import BaseService
from .errors import NamespaceError, hint_from


class NamespaceProvisioner(BaseService):
    def __init__(
        self,
        *,
        project: Project,
        config: ProjectConfig,
        console: ConsoleProtocol,
        kubectl: KubectlCli,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(project=project, config=config, console=console)
        self._kubectl = kubectl
        self._clock = clock

    def ensure(self, namespace: str) -> Result[bool, NamespaceError]:
        """Create ``namespace`` if absent; Ok(True) when it was created.

        A fresh namespace has no secrets yet, so creation also kicks the
        secret-management cron job once.
        """
        exists = self._kubectl.namespace_exists(namespace)
        if isinstance(exists, Err):
            return Err(
                NamespaceError(
                    kind="lookup_failed",
                    message=f"cannot look up namespace '{namespace}'",
                    hint=hint_from(exists.error),
                    returncode=exists.error.returncode,
                )
            )
        if exists.value:
            return Ok(False)

        created = self._kubectl.create_namespace(namespace)
        if isinstance(created, Err):
            return Err(
                NamespaceError(
                    kind="create_failed",
                    message=f"cannot create namespace '{namespace}'",
                    hint=hint_from(created.error),
                    returncode=created.error.returncode,
                )
            )
        self._console.success(f"namespace {namespace} created")

        self._trigger_secret_job()
        return Ok(True)

    def _trigger_secret_job(self) -> None:
        """Fire one run of the secret cron job; failures only warn."""
        cronjob = self._config.secret_cronjob
        cron_ns = self._config.secret_cronjob_namespace

        found = self._kubectl.cronjob_exists(cronjob, cron_ns)
        if isinstance(found, Err):
            self._console.warning(f"cannot look up cronjob {cron_ns}/{cronjob}: {found.error}")
            return
        if not found.value:
            return

        job_name = f"{cronjob}-manual-{int(self._clock())}"[:63]
        triggered = self._kubectl.create_job_from_cronjob(
            cronjob=cronjob, job_name=job_name, namespace=cron_ns
        )
        if isinstance(triggered, Err):
            self._console.warning(f"cannot trigger {cron_ns}/{cronjob}: {triggered.error}")
            return
        self._console.info(f"triggered {cron_ns}/{job_name}")

    def delete(self, namespace: str) -> Result[None, NamespaceError]:
        deleted = self._kubectl.delete_namespace(namespace)
        if isinstance(deleted, Err):
            return Err(
                NamespaceError(
                    kind="delete_failed",
                    message=f"cannot delete namespace '{namespace}'",
                    returncode=deleted.error.returncode,
                )
            )
        return Ok(None)
