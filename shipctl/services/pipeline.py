"""Release pipeline.

    init -> building -> publishing -> namespace -> secrets -> installing -> done

Stages run strictly in order; each one's typed output (build marker, push
marker) is the next one's input. Any error is terminal for the invocation.
Re-running the pipeline re-checks the markers and skips stages whose
output is still valid.

The installer may report a missing pushed image. That is handled as a
precondition failure with one recovery: go back to publishing (forced),
then straight to installing. A second miss is fatal. A remote context
with no registry configured fails before any stage runs.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import StrEnum

from shipctl.core.config import ImageRepoKind, ProjectConfig
from shipctl.core.markers import BuildMarker, PushMarker
from shipctl.core.result import Err, Ok, Result
from shipctl.output.console import ConsoleProtocol, Style

from .builder import ImageBuilder
from .context import DeployContext, new_version
from .errors import InstallError, MissingArtifactError, PipelineError
from .fsm import FINISH, StepOutcome, advance, run_state_machine
from .installer import ReleaseInstaller
from .namespace import NamespaceProvisioner
from .publisher import ImagePublisher
from .secrets import SecretProvisioner

__all__ = [
    "PipelineOptions",
    "PipelineReport",
    "PipelineState",
    "ReleasePipeline",
    "Stage",
]


class Stage(StrEnum):
    INIT = "init"
    BUILDING = "building"
    PUBLISHING = "publishing"
    NAMESPACE = "namespace"
    SECRETS = "secrets"
    INSTALLING = "installing"
    DONE = "done"


_ORDER: tuple[Stage, ...] = (
    Stage.BUILDING,
    Stage.PUBLISHING,
    Stage.NAMESPACE,
    Stage.SECRETS,
    Stage.INSTALLING,
)


@dataclass(frozen=True, slots=True)
class PipelineState:
    stage: Stage
    build: BuildMarker | None = None
    push: PushMarker | None = None
    executed: tuple[Stage, ...] = ()
    skipped: tuple[Stage, ...] = ()
    recovering: bool = False


@dataclass(frozen=True, slots=True)
class PipelineOptions:
    """``until`` is the last stage to run (``build``/``push`` stop early)."""

    until: Stage = Stage.INSTALLING
    force_build: bool = False


@dataclass(frozen=True, slots=True)
class PipelineReport:
    context: DeployContext
    build: BuildMarker | None
    push: PushMarker | None
    executed: tuple[Stage, ...] = field(default_factory=tuple)
    skipped: tuple[Stage, ...] = field(default_factory=tuple)


def unknown_stage_error(step: str) -> InstallError:
    return InstallError(
        kind="unknown_stage",
        message=f"internal error: no handler for pipeline stage '{step}'",
    )


class ReleasePipeline:
    def __init__(
        self,
        *,
        config: ProjectConfig,
        deploy_context: DeployContext,
        console: ConsoleProtocol,
        builder: ImageBuilder,
        publisher: ImagePublisher,
        namespaces: NamespaceProvisioner,
        secrets: SecretProvisioner,
        installer: ReleaseInstaller,
        options: PipelineOptions | None = None,
        version_factory: Callable[[], str] = new_version,
    ) -> None:
        self._config = config
        self._context = deploy_context
        self._console = console
        self._builder = builder
        self._publisher = publisher
        self._namespaces = namespaces
        self._secrets = secrets
        self._installer = installer
        self._options = options or PipelineOptions()
        self._version_factory = version_factory
        self._last_stage = Stage.INIT

    @property
    def last_stage(self) -> Stage:
        """The stage that was running when ``run`` returned."""
        return self._last_stage

    def run(self) -> Result[PipelineReport, PipelineError]:
        handlers = {
            Stage.INIT.value: self._init,
            Stage.BUILDING.value: self._building,
            Stage.PUBLISHING.value: self._publishing,
            Stage.NAMESPACE.value: self._namespace,
            Stage.SECRETS.value: self._provision_secrets,
            Stage.INSTALLING.value: self._installing,
            Stage.DONE.value: self._done,
        }
        result = run_state_machine(
            initial_state=PipelineState(stage=Stage.INIT),
            get_step=lambda s: s.stage.value,
            handlers=handlers,
            on_advance=self._on_advance,
            unknown_step=unknown_stage_error,
        )
        if isinstance(result, Err):
            return result

        final = result.value
        return Ok(
            PipelineReport(
                context=self._context,
                build=final.build,
                push=final.push,
                executed=final.executed,
                skipped=final.skipped,
            )
        )

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _next(self, stage: Stage) -> Stage:
        if stage == self._options.until:
            return Stage.DONE
        return _ORDER[_ORDER.index(stage) + 1]

    def _on_advance(self, state: PipelineState) -> None:
        self._last_stage = state.stage
        if state.stage in _ORDER:
            total = _ORDER.index(self._options.until) + 1
            n = _ORDER.index(state.stage) + 1
            self._console.header(f"[{n}/{total}] {state.stage.value}")

    def _ran(self, state: PipelineState) -> StepOutcome[PipelineState]:
        return advance(
            replace(state, stage=self._next(state.stage), executed=(*state.executed, state.stage))
        )

    def _skip(self, state: PipelineState, reason: str) -> StepOutcome[PipelineState]:
        self._console.print(f"skipped: {reason}", Style.DIM)
        return advance(
            replace(state, stage=self._next(state.stage), skipped=(*state.skipped, state.stage))
        )

    def _needs_registry(self) -> bool:
        return not self._context.is_local and self._config.image_repo == ImageRepoKind.none

    def _missing_registry(self) -> MissingArtifactError:
        return MissingArtifactError(
            message=f"context '{self._context}' needs a registry but image_repo is none",
            hint="Set image_repo (ecr or nexus) in shipctl.yaml",
        )

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def _init(self, state: PipelineState) -> Result[StepOutcome[PipelineState], PipelineError]:
        self._console.print(
            f"{self._config.name} -> {self._context} (namespace {self._config.namespace})",
            Style.BOLD,
        )
        # Remote installs need a pushed image: fail before any stage runs.
        if self._needs_registry() and self._options.until == Stage.INSTALLING:
            return Err(self._missing_registry())
        return Ok(advance(replace(state, stage=Stage.BUILDING)))

    def _building(self, state: PipelineState) -> Result[StepOutcome[PipelineState], PipelineError]:
        if not self._options.force_build:
            current = self._builder.current()
            if isinstance(current, Err):
                return current
            if current.value is not None:
                return Ok(
                    self._skip(
                        replace(state, build=current.value),
                        f"{current.value.local_image_ref} is up to date",
                    )
                )

        built = self._builder.build(self._version_factory())
        if isinstance(built, Err):
            return built
        self._console.success(f"built {built.value.local_image_ref}")
        # A new image invalidates whatever was pushed before.
        return Ok(self._ran(replace(state, build=built.value, push=None)))

    def _publishing(
        self, state: PipelineState
    ) -> Result[StepOutcome[PipelineState], PipelineError]:
        build = state.build
        if build is None:
            return Ok(advance(replace(state, stage=Stage.BUILDING)))

        if self._context.is_local:
            return Ok(self._skip(state, f"local context {self._context} uses the local image"))
        if self._config.image_repo == ImageRepoKind.none:
            if state.recovering:
                return Err(self._missing_registry())
            return Ok(self._skip(state, "no image_repo configured"))

        if not state.recovering:
            current = self._publisher.current(build)
            if isinstance(current, Err):
                return current
            if current.value is not None:
                return Ok(
                    self._skip(
                        replace(state, push=current.value),
                        f"{current.value.remote_image_ref} already pushed",
                    )
                )

        pushed = self._publisher.publish(build)
        if isinstance(pushed, Err):
            return pushed
        if pushed.value is not None:
            self._console.success(f"pushed {pushed.value.remote_image_ref}")

        if state.recovering:
            return Ok(
                advance(
                    replace(
                        state,
                        stage=Stage.INSTALLING,
                        push=pushed.value,
                        executed=(*state.executed, Stage.PUBLISHING),
                    )
                )
            )
        return Ok(self._ran(replace(state, push=pushed.value)))

    def _namespace(self, state: PipelineState) -> Result[StepOutcome[PipelineState], PipelineError]:
        ensured = self._namespaces.ensure(self._config.namespace)
        if isinstance(ensured, Err):
            return ensured
        if not ensured.value:
            return Ok(self._skip(state, f"namespace {self._config.namespace} exists"))
        return Ok(self._ran(state))

    def _provision_secrets(
        self, state: PipelineState
    ) -> Result[StepOutcome[PipelineState], PipelineError]:
        provisioned = self._secrets.provision(self._config.namespace)
        if isinstance(provisioned, Err):
            return provisioned
        return Ok(self._ran(state))

    def _installing(
        self, state: PipelineState
    ) -> Result[StepOutcome[PipelineState], PipelineError]:
        build = state.build
        if build is None:
            return Ok(advance(replace(state, stage=Stage.BUILDING)))

        installed = self._installer.install(build, state.push)
        if isinstance(installed, Err):
            error = installed.error
            if isinstance(error, MissingArtifactError) and not state.recovering:
                self._console.warning(f"{error.message}; publishing again")
                return Ok(advance(replace(state, stage=Stage.PUBLISHING, recovering=True)))
            return Err(error)

        self._console.success(f"release {self._config.name} installed in {self._context}")
        return Ok(self._ran(state))

    def _done(self, state: PipelineState) -> Result[StepOutcome[PipelineState], PipelineError]:
        self._last_stage = Stage.DONE
        return Ok(FINISH)
