"""k8s-secretgen CLI adapter."""

from __future__ import annotations

from pathlib import Path

from shipctl.core.result import Result
from shipctl.platform.process import ProcessError

from .runner import CommandRunner


class SecretGenCli:
    def __init__(self, runner: CommandRunner, *, kube_context: str | None = None) -> None:
        self._runner = runner
        self._kube_context = kube_context

    def generate(self, namespace: str, *, config_file: Path | None) -> Result[None, ProcessError]:
        cmd = ["k8s-secretgen", "--namespace", namespace]
        if self._kube_context:
            cmd += ["--context", self._kube_context]
        if config_file is not None:
            cmd += ["--config", str(config_file)]
        return self._runner.stream(cmd)
