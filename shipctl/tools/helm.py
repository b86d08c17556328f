"""helm CLI adapter."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from pathlib import Path

from shipctl.core.result import Err, Ok, Result
from shipctl.core.structured import as_str_dict, get_str
from shipctl.platform.process import ProcessError

from .runner import CommandRunner

# Statuses helm reports while another install/upgrade/rollback holds the release.
PENDING_STATUSES = frozenset({"pending-install", "pending-upgrade", "pending-rollback"})

# helm refuses to start while another operation holds the release lock.
LOCKED_MESSAGE = "another operation (install/upgrade/rollback) is in progress"
# Printed by --atomic after it undid a failed upgrade.
ROLLED_BACK_MESSAGE = "has been rolled back"


def is_locked(error: ProcessError) -> bool:
    return LOCKED_MESSAGE in error.output


def was_rolled_back(error: ProcessError) -> bool:
    return ROLLED_BACK_MESSAGE in error.output


class HelmCli:
    def __init__(self, runner: CommandRunner, *, kube_context: str | None = None) -> None:
        self._runner = runner
        self._kube_context = kube_context

    def _cmd(self, *args: str) -> list[str]:
        cmd = ["helm", *args]
        if self._kube_context:
            cmd += ["--kube-context", self._kube_context]
        return cmd

    def release_status(self, release: str, namespace: str) -> Result[str | None, ProcessError]:
        """Return the release status, or None when the release does not exist."""
        result = self._runner.capture(
            self._cmd("status", release, "--namespace", namespace, "--output", "json")
        )
        if isinstance(result, Err):
            if "not found" in result.error.output:
                return Ok(None)
            return result

        try:
            payload: object = json.loads(result.value)
        except json.JSONDecodeError:
            return Ok(None)
        data = as_str_dict(payload)
        info = as_str_dict(data.get("info")) if data is not None else None
        return Ok(get_str(info, "status") if info is not None else None)

    def upgrade_install(
        self,
        *,
        release: str,
        chart: Path,
        namespace: str,
        values_files: Sequence[Path],
        set_values: Mapping[str, str],
        timeout: str,
    ) -> Result[None, ProcessError]:
        """Install or upgrade atomically and wait for readiness.

        ``--atomic`` rolls the release back if it does not become ready
        within ``timeout``.
        """
        args = [
            "upgrade",
            "--install",
            release,
            str(chart),
            "--namespace",
            namespace,
            "--create-namespace",
            "--atomic",
            "--wait",
            "--timeout",
            timeout,
        ]
        for values_file in values_files:
            args += ["--values", str(values_file)]
        for key, value in set_values.items():
            args += ["--set", f"{key}={value}"]
        return self._runner.stream(self._cmd(*args))

    def uninstall(self, release: str, namespace: str) -> Result[None, ProcessError]:
        return self._runner.stream(
            self._cmd("uninstall", release, "--namespace", namespace, "--wait")
        )
