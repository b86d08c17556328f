"""Pipeline stages and developer services."""

from .backup import BackupService
from .builder import ImageBuilder
from .context import DeployContext, new_version, resolve_deploy_context
from .dev import DevService
from .errors import (
    BuildError,
    InstallError,
    MissingArtifactError,
    NamespaceError,
    PipelineError,
    PublishError,
    SecretError,
    ToolError,
)
from .installer import ReleaseInstaller
from .namespace import NamespaceProvisioner
from .pipeline import PipelineOptions, PipelineReport, ReleasePipeline, Stage
from .publisher import ImagePublisher
from .secrets import SecretProvisioner

__all__ = [
    "BackupService",
    "BuildError",
    "DeployContext",
    "DevService",
    "ImageBuilder",
    "ImagePublisher",
    "InstallError",
    "MissingArtifactError",
    "NamespaceError",
    "NamespaceProvisioner",
    "PipelineError",
    "PipelineOptions",
    "PipelineReport",
    "PublishError",
    "ReleaseInstaller",
    "ReleasePipeline",
    "SecretError",
    "SecretProvisioner",
    "Stage",
    "ToolError",
    "new_version",
    "resolve_deploy_context",
]
