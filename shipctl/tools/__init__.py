"""Adapters for the external CLIs shipctl drives."""

from .aws import EcrCli, ecr_registry
from .docker import DockerCli
from .helm import HelmCli
from .http import HttpClient, HttpError, MockHttpClient, RealHttpClient
from .kubectl import KubectlCli
from .minikube import MinikubeCli
from .runner import CommandRunner, FakeRunner, ProcessRunner
from .secretgen import SecretGenCli

__all__ = [
    "CommandRunner",
    "DockerCli",
    "EcrCli",
    "FakeRunner",
    "HelmCli",
    "HttpClient",
    "HttpError",
    "KubectlCli",
    "MinikubeCli",
    "MockHttpClient",
    "ProcessRunner",
    "RealHttpClient",
    "SecretGenCli",
    "ecr_registry",
]
