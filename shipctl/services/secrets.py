"""Secret provisioner stage.

Runs on every deploy, with no marker: secret material may need rotation.
"""

from __future__ import annotations

from shipctl.core.config import ProjectConfig
from shipctl.core.project import Project
from shipctl.core.result import Err, Ok, Result
from shipctl.output.console import ConsoleProtocol
from shipctl.tools.secretgen import SecretGenCli

from .base import BaseService
from .errors import SecretError


class SecretProvisioner(BaseService):
    def __init__(
        self,
        *,
        project: Project,
        config: ProjectConfig,
        console: ConsoleProtocol,
        secretgen: SecretGenCli,
    ) -> None:
        super().__init__(project=project, config=config, console=console)
        self._secretgen = secretgen

    def provision(self, namespace: str) -> Result[None, SecretError]:
        secrets_file = self._project.resolve(self._config.secrets_file)
        result = self._secretgen.generate(
            namespace, config_file=secrets_file if secrets_file.is_file() else None
        )
        if isinstance(result, Err):
            return Err(
                SecretError(
                    kind="secretgen_failed",
                    message=f"k8s-secretgen failed for namespace '{namespace}'",
                    returncode=result.error.returncode,
                )
            )
        return Ok(None)
