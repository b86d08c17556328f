"""Core types: config, project layout, markers, results."""

from .config import ConfigError, ImageRepoKind, ProjectConfig, load_project_config
from .errors import ErrorCode
from .markers import BuildMarker, PushMarker
from .project import Project, ProjectError, detect_project
from .result import Err, Ok, Result, is_err, is_ok

__all__ = [
    # config
    "ConfigError",
    "ImageRepoKind",
    "ProjectConfig",
    "load_project_config",
    # errors
    "ErrorCode",
    # markers
    "BuildMarker",
    "PushMarker",
    # project
    "Project",
    "ProjectError",
    "detect_project",
    # result
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
]
