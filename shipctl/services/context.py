"""Deploy context and version resolution."""

from __future__ import annotations

import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from shipctl.core.config import ConfigError, ProjectConfig
from shipctl.core.result import Err, Ok, Result
from shipctl.tools.kubectl import KubectlCli

__all__ = ["DeployContext", "new_version", "resolve_deploy_context"]


@dataclass(frozen=True, slots=True)
class DeployContext:
    """The kube context a pipeline targets.

    ``is_local`` selects the local branch everywhere: build into the
    cluster's daemon, skip publishing, install the local image.
    """

    name: str
    is_local: bool

    def __str__(self) -> str:
        return self.name


def resolve_deploy_context(
    config: ProjectConfig,
    *,
    kubectl: KubectlCli,
    override: str | None = None,
    env: Mapping[str, str] | None = None,
) -> Result[DeployContext, ConfigError]:
    """Pick the context: ``--context``, then ``$KUBE_CONTEXT``, then kubectl's current one."""
    environ = os.environ if env is None else env

    name = (override or "").strip() or environ.get("KUBE_CONTEXT", "").strip()
    if not name:
        current = kubectl.current_context()
        if isinstance(current, Err):
            return Err(
                ConfigError(
                    "no active kube context",
                    hint="Pass --context, set KUBE_CONTEXT, or run: kubectl config use-context",
                )
            )
        name = current.value
    if not name:
        return Err(ConfigError("kubectl reported an empty current context"))

    return Ok(DeployContext(name=name, is_local=name == config.local_context))


def new_version(clock: Callable[[], float] = time.time) -> str:
    """Image tag for a new build: wall-clock seconds.

    Monotonic across builds a second or more apart; two builds in the same
    second get the same tag.
    """
    return str(int(clock()))
