"""Project configuration (shipctl.yaml).

Only top-level scalars are read. Everything except ``name`` has a default,
and a few registry settings fall back to environment variables so CI can
override them without editing the file.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

import yaml

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_int, get_str

__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "ImageRepoKind",
    "ProjectConfig",
    "load_project_config",
    "parse_project_config",
]

CONFIG_FILENAME = "shipctl.yaml"

DEFAULT_ORG = "local"
DEFAULT_CHART = "helm"
DEFAULT_VALUES = "helm/values.yaml"
DEFAULT_HELM_TIMEOUT = "5m0s"
DEFAULT_LOCAL_CONTEXT = "minikube"
DEFAULT_PORT = 8080
DEFAULT_NEXUS_REGISTRY = "docker.nexus.local:8443"
DEFAULT_LIFECYCLE_POLICY_URL = (
    "https://raw.githubusercontent.com/shipctl/policies/main/ecr/lifecycle-policy.json"
)
DEFAULT_SECRET_CRONJOB = "k8s-secretgen"
DEFAULT_SECRETS_FILE = "secrets.yaml"
DEFAULT_DB_USER = "postgres"
DEFAULT_OPENAPI = "openapi.yaml"
DEFAULT_SOURCE_DIRS = ("src", "tests")


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Config file missing, unreadable, or missing a required field."""

    message: str
    path: Path | None = None
    hint: str | None = None


class ImageRepoKind(StrEnum):
    none = "none"
    ecr = "ecr"
    nexus = "nexus"


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    """Project identity and deployment settings.

    Loaded once per invocation and never mutated.
    """

    name: str
    namespace: str
    image_repo: ImageRepoKind = ImageRepoKind.none
    org: str = DEFAULT_ORG
    chart: str = DEFAULT_CHART
    values: str = DEFAULT_VALUES
    helm_timeout: str = DEFAULT_HELM_TIMEOUT
    local_context: str = DEFAULT_LOCAL_CONTEXT
    port: int = DEFAULT_PORT
    aws_region: str | None = None
    nexus_registry: str = DEFAULT_NEXUS_REGISTRY
    lifecycle_policy_url: str = DEFAULT_LIFECYCLE_POLICY_URL
    secret_cronjob: str = DEFAULT_SECRET_CRONJOB
    secret_cronjob_namespace: str = DEFAULT_SECRET_CRONJOB
    secrets_file: str = DEFAULT_SECRETS_FILE
    db_pod: str = ""
    db_user: str = DEFAULT_DB_USER
    db_name: str = ""
    openapi: str = DEFAULT_OPENAPI
    source_dirs: tuple[str, ...] = DEFAULT_SOURCE_DIRS

    @property
    def image_name(self) -> str:
        """Local repository part of the image reference (``org/name``)."""
        return f"{self.org}/{self.name}"

    def local_image_ref(self, version: str) -> str:
        return f"{self.image_name}:{version}"


def parse_project_config(
    data: Mapping[str, object],
    *,
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
) -> Result[ProjectConfig, ConfigError]:
    """Build a ProjectConfig from a parsed mapping.

    ``namespace`` defaults to ``name`` when unset or null.
    """
    environ = os.environ if env is None else env

    name = get_str(data, "name")
    if name is None:
        return Err(
            ConfigError(
                "config is missing required field 'name'",
                path=path,
                hint=f"Add 'name: <service>' to {CONFIG_FILENAME}",
            )
        )

    raw_kind = (get_str(data, "image_repo") or ImageRepoKind.none.value).lower()
    try:
        kind = ImageRepoKind(raw_kind)
    except ValueError:
        allowed = ", ".join(k.value for k in ImageRepoKind)
        return Err(
            ConfigError(f"invalid image_repo '{raw_kind}' (expected one of: {allowed})", path=path)
        )

    source_dirs = get_str(data, "source_dirs")

    return Ok(
        ProjectConfig(
            name=name,
            namespace=get_str(data, "namespace") or name,
            image_repo=kind,
            org=get_str(data, "org") or DEFAULT_ORG,
            chart=get_str(data, "chart") or DEFAULT_CHART,
            values=get_str(data, "values") or DEFAULT_VALUES,
            helm_timeout=get_str(data, "helm_timeout") or DEFAULT_HELM_TIMEOUT,
            local_context=get_str(data, "local_context") or DEFAULT_LOCAL_CONTEXT,
            port=get_int(data, "port") or DEFAULT_PORT,
            aws_region=(
                get_str(data, "aws_region")
                or environ.get("AWS_REGION")
                or environ.get("AWS_DEFAULT_REGION")
                or None
            ),
            nexus_registry=(
                get_str(data, "nexus_registry")
                or environ.get("NEXUS_REGISTRY")
                or DEFAULT_NEXUS_REGISTRY
            ),
            lifecycle_policy_url=(
                get_str(data, "lifecycle_policy_url")
                or environ.get("ECR_LIFECYCLE_POLICY_URL")
                or DEFAULT_LIFECYCLE_POLICY_URL
            ),
            secret_cronjob=get_str(data, "secret_cronjob") or DEFAULT_SECRET_CRONJOB,
            secret_cronjob_namespace=(
                get_str(data, "secret_cronjob_namespace") or DEFAULT_SECRET_CRONJOB
            ),
            secrets_file=get_str(data, "secrets_file") or DEFAULT_SECRETS_FILE,
            db_pod=get_str(data, "db_pod") or f"{name}-postgresql-0",
            db_user=get_str(data, "db_user") or DEFAULT_DB_USER,
            db_name=get_str(data, "db_name") or name,
            openapi=get_str(data, "openapi") or DEFAULT_OPENAPI,
            source_dirs=tuple(source_dirs.split()) if source_dirs else DEFAULT_SOURCE_DIRS,
        )
    )


def _parse_yaml(path: Path) -> Result[StrDict, ConfigError]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return Err(ConfigError(f"config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"permission denied reading: {path}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"error reading config: {e}", path=path))

    try:
        data_obj: object = yaml.safe_load(text)
    except yaml.YAMLError as e:
        return Err(ConfigError(f"invalid YAML syntax: {e}", path=path))

    if data_obj is None:
        return Ok({})
    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("config root must be a mapping", path=path))
    return Ok(data)


def load_project_config(
    path: Path,
    *,
    env: Mapping[str, str] | None = None,
) -> Result[ProjectConfig, ConfigError]:
    """Load and validate shipctl.yaml.

    Args:
        path: Path to the config file.
        env: Environment used for fallbacks (defaults to os.environ).

    Returns:
        Ok(ProjectConfig) on success, Err(ConfigError) on failure.
    """
    parsed = _parse_yaml(path)
    if isinstance(parsed, Err):
        return parsed
    return parse_project_config(parsed.value, env=env, path=path)
