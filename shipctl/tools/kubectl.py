"""kubectl CLI adapter."""

from __future__ import annotations

from pathlib import Path

from shipctl.core.result import Err, Ok, Result
from shipctl.platform.process import ProcessError

from .runner import CommandRunner


def _is_not_found(error: ProcessError) -> bool:
    text = error.output
    return "NotFound" in text or "not found" in text


class KubectlCli:
    """kubectl bound to one kube context (or the current one when None)."""

    def __init__(self, runner: CommandRunner, *, context: str | None = None) -> None:
        self._runner = runner
        self._context = context

    def _cmd(self, *args: str) -> list[str]:
        cmd = ["kubectl"]
        if self._context:
            cmd += ["--context", self._context]
        return cmd + list(args)

    def with_context(self, context: str) -> KubectlCli:
        return KubectlCli(self._runner, context=context)

    def current_context(self) -> Result[str, ProcessError]:
        result = self._runner.capture(["kubectl", "config", "current-context"])
        return result.map(str.strip)

    def _exists(self, *args: str) -> Result[bool, ProcessError]:
        result = self._runner.capture(self._cmd("get", *args, "-o", "name"))
        if isinstance(result, Ok):
            return Ok(True)
        if _is_not_found(result.error):
            return Ok(False)
        return Err(result.error)

    def namespace_exists(self, namespace: str) -> Result[bool, ProcessError]:
        return self._exists("namespace", namespace)

    def create_namespace(self, namespace: str) -> Result[None, ProcessError]:
        result = self._runner.capture(self._cmd("create", "namespace", namespace))
        if isinstance(result, Err):
            return result
        return Ok(None)

    def delete_namespace(self, namespace: str) -> Result[None, ProcessError]:
        return self._runner.stream(
            self._cmd("delete", "namespace", namespace, "--ignore-not-found", "--wait")
        )

    def cronjob_exists(self, name: str, namespace: str) -> Result[bool, ProcessError]:
        return self._exists("cronjob", name, "--namespace", namespace)

    def create_job_from_cronjob(
        self, *, cronjob: str, job_name: str, namespace: str
    ) -> Result[None, ProcessError]:
        result = self._runner.capture(
            self._cmd(
                "create",
                "job",
                job_name,
                f"--from=cronjob/{cronjob}",
                "--namespace",
                namespace,
            )
        )
        if isinstance(result, Err):
            return result
        return Ok(None)

    def exec_to_file(
        self, *, pod: str, namespace: str, command: list[str], dest: Path
    ) -> Result[None, ProcessError]:
        """Run a command in a pod, writing its stdout to ``dest``."""
        return self._runner.stream(
            self._cmd("exec", pod, "--namespace", namespace, "--", *command), stdout=dest
        )

    def exec_from_file(
        self, *, pod: str, namespace: str, command: list[str], source: Path
    ) -> Result[None, ProcessError]:
        """Run a command in a pod with ``source`` on its stdin."""
        return self._runner.stream(
            self._cmd("exec", "-i", pod, "--namespace", namespace, "--", *command), stdin=source
        )
