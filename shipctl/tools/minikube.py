"""minikube CLI adapter."""

from __future__ import annotations

from shipctl.core.result import Err, Ok, Result
from shipctl.platform.process import ProcessError

from .runner import CommandRunner


def parse_env_lines(text: str) -> dict[str, str]:
    """Parse ``KEY=value`` / ``KEY="value"`` lines, skipping comments."""
    env: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export ") :]
        key, _, value = line.partition("=")
        env[key.strip()] = value.strip().strip('"').strip("'")
    return env


class MinikubeCli:
    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def docker_env(self, profile: str) -> Result[dict[str, str], ProcessError]:
        """Environment that points docker at the cluster's own daemon.

        Images built this way are visible to the cluster without a push.
        """
        result = self._runner.capture(["minikube", "-p", profile, "docker-env", "--shell", "none"])
        if isinstance(result, Err):
            return result
        return Ok(parse_env_lines(result.value))
