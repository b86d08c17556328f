from __future__ import annotations

from dataclasses import dataclass

import typer

from shipctl.core.config import ProjectConfig, load_project_config
from shipctl.core.errors import ErrorCode
from shipctl.core.project import Project, detect_project
from shipctl.core.result import Err
from shipctl.output.console import ConsoleProtocol, RichConsole
from shipctl.output.errors import print_error
from shipctl.services.backup import BackupService, resolve_backup_dir
from shipctl.services.builder import ImageBuilder
from shipctl.services.context import DeployContext, resolve_deploy_context
from shipctl.services.dev import DevService
from shipctl.services.installer import ReleaseInstaller
from shipctl.services.namespace import NamespaceProvisioner
from shipctl.services.pipeline import PipelineOptions, ReleasePipeline
from shipctl.services.publisher import ImagePublisher
from shipctl.services.secrets import SecretProvisioner
from shipctl.tools.aws import EcrCli
from shipctl.tools.docker import DockerCli
from shipctl.tools.helm import HelmCli
from shipctl.tools.http import HttpClient, RealHttpClient
from shipctl.tools.kubectl import KubectlCli
from shipctl.tools.minikube import MinikubeCli
from shipctl.tools.runner import CommandRunner, ProcessRunner
from shipctl.tools.secretgen import SecretGenCli

# Markers of images built for ``shipctl run`` (host docker daemon).
DOCKER_MARKERS = "_docker"


@dataclass(frozen=True, slots=True)
class CLIContext:
    project: Project
    config: ProjectConfig
    console: ConsoleProtocol
    runner: CommandRunner
    http: HttpClient

    def deploy_context(self) -> DeployContext:
        """Resolve the target kube context or exit."""
        resolved = resolve_deploy_context(self.config, kubectl=KubectlCli(self.runner))
        if isinstance(resolved, Err):
            print_error(resolved.error, self.console)
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))
        return resolved.value

    # -------------------------------------------------------------------------
    # Service wiring
    # -------------------------------------------------------------------------

    def kubectl(self, target: DeployContext) -> KubectlCli:
        return KubectlCli(self.runner, context=target.name)

    def builder(self, target: DeployContext) -> ImageBuilder:
        return ImageBuilder(
            project=self.project,
            config=self.config,
            console=self.console,
            docker=DockerCli(self.runner),
            markers_dir=self.project.markers_dir(target.name),
            minikube=MinikubeCli(self.runner) if target.is_local else None,
            minikube_profile=target.name if target.is_local else None,
            ignored=(resolve_backup_dir(self.project),),
        )

    def publisher(self, target: DeployContext) -> ImagePublisher:
        return ImagePublisher(
            project=self.project,
            config=self.config,
            console=self.console,
            docker=DockerCli(self.runner),
            ecr=EcrCli(self.runner),
            http=self.http,
            markers_dir=self.project.markers_dir(target.name),
        )

    def namespaces(self, target: DeployContext) -> NamespaceProvisioner:
        return NamespaceProvisioner(
            project=self.project,
            config=self.config,
            console=self.console,
            kubectl=self.kubectl(target),
        )

    def secrets(self, target: DeployContext) -> SecretProvisioner:
        return SecretProvisioner(
            project=self.project,
            config=self.config,
            console=self.console,
            secretgen=SecretGenCli(self.runner, kube_context=target.name),
        )

    def installer(self, target: DeployContext) -> ReleaseInstaller:
        return ReleaseInstaller(
            project=self.project,
            config=self.config,
            console=self.console,
            helm=HelmCli(self.runner, kube_context=target.name),
            deploy_context=target,
        )

    def pipeline(
        self, target: DeployContext, options: PipelineOptions | None = None
    ) -> ReleasePipeline:
        return ReleasePipeline(
            config=self.config,
            deploy_context=target,
            console=self.console,
            builder=self.builder(target),
            publisher=self.publisher(target),
            namespaces=self.namespaces(target),
            secrets=self.secrets(target),
            installer=self.installer(target),
            options=options,
        )

    def dev(self) -> DevService:
        docker = DockerCli(self.runner)
        return DevService(
            project=self.project,
            config=self.config,
            console=self.console,
            runner=self.runner,
            docker=docker,
            builder=ImageBuilder(
                project=self.project,
                config=self.config,
                console=self.console,
                docker=docker,
                markers_dir=self.project.markers_dir(DOCKER_MARKERS),
                ignored=(resolve_backup_dir(self.project),),
            ),
        )

    def backups(self, target: DeployContext) -> BackupService:
        return BackupService(
            project=self.project,
            config=self.config,
            console=self.console,
            kubectl=self.kubectl(target),
        )


def build_context() -> CLIContext:
    project_result = detect_project()
    if isinstance(project_result, Err):
        typer.echo(f"error: {project_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))
    project = project_result.value

    console = RichConsole()
    config_result = load_project_config(project.config_path)
    if isinstance(config_result, Err):
        print_error(config_result.error, console)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    return CLIContext(
        project=project,
        config=config_result.value,
        console=console,
        runner=ProcessRunner(cwd=project.root, console=console),
        http=RealHttpClient(),
    )
