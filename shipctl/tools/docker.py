"""docker CLI adapter."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from shipctl.core.result import Err, Ok, Result
from shipctl.platform.process import ProcessError

from .runner import CommandRunner


class DockerCli:
    """Build, tag, push and run images.

    ``env`` selects the daemon: an empty mapping means the local daemon,
    the output of ``minikube docker-env`` means the cluster's daemon.
    """

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def build(
        self,
        *,
        image_ref: str,
        context_dir: Path,
        build_args: Mapping[str, str],
        env: Mapping[str, str] | None = None,
    ) -> Result[None, ProcessError]:
        cmd = ["docker", "build"]
        for key, value in build_args.items():
            cmd += ["--build-arg", f"{key}={value}"]
        cmd += ["-t", image_ref, str(context_dir)]
        return self._runner.stream(cmd, env=env)

    def image_exists(
        self, image_ref: str, *, env: Mapping[str, str] | None = None
    ) -> bool:
        result = self._runner.capture(
            ["docker", "image", "inspect", "--format", "{{.Id}}", image_ref], env=env
        )
        return isinstance(result, Ok)

    def login(self, *, registry: str, username: str, password: str) -> Result[None, ProcessError]:
        result = self._runner.capture(
            ["docker", "login", registry, "--username", username, "--password-stdin"],
            input=password,
        )
        if isinstance(result, Err):
            return result
        return Ok(None)

    def tag(self, source: str, target: str) -> Result[None, ProcessError]:
        result = self._runner.capture(["docker", "tag", source, target])
        if isinstance(result, Err):
            return result
        return Ok(None)

    def push(self, image_ref: str) -> Result[None, ProcessError]:
        return self._runner.stream(["docker", "push", image_ref])

    def run_detached(
        self, *, name: str, image_ref: str, port: int
    ) -> Result[str, ProcessError]:
        """Start a container and return its id."""
        result = self._runner.capture(
            ["docker", "run", "-d", "--rm", "--name", name, "-p", f"{port}:{port}", image_ref]
        )
        return result.map(str.strip)

    def stop(self, name: str) -> Result[None, ProcessError]:
        result = self._runner.capture(["docker", "stop", name])
        if isinstance(result, Err):
            return result
        return Ok(None)
