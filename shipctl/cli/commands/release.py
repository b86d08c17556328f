"""Release commands: build, push, deploy, undeploy, redeploy, secrets."""

from __future__ import annotations

import typer

from shipctl.cli.commands._helpers import exit_on_error, exit_with_code, non_interactive
from shipctl.cli.context import CLIContext, build_context
from shipctl.core.errors import ErrorCode
from shipctl.output.console import Style
from shipctl.services.context import DeployContext
from shipctl.services.pipeline import PipelineOptions, PipelineReport, Stage


def _run_pipeline(
    ctx: CLIContext, target: DeployContext, options: PipelineOptions
) -> PipelineReport:
    report = exit_on_error(ctx.pipeline(target, options).run(), ctx)
    ctx.console.newline()
    if report.executed:
        ctx.console.print(
            f"ran: {', '.join(s.value for s in report.executed)}", Style.DIM
        )
    if report.skipped:
        ctx.console.print(
            f"skipped: {', '.join(s.value for s in report.skipped)}", Style.DIM
        )
    return report


def _confirm_target(ctx: CLIContext, target: DeployContext, confirm: str | None) -> None:
    """Require the operator to type ``<context>/<project>`` before deleting."""
    expected = f"{target}/{ctx.config.name}"
    typed = confirm
    if typed is None:
        if non_interactive():
            ctx.console.error(f"refusing to delete without --confirm {expected}")
            exit_with_code(int(ErrorCode.USER_ERROR))
        ctx.console.warning(
            f"this deletes release '{ctx.config.name}' and namespace "
            f"'{ctx.config.namespace}' from {target}"
        )
        typed = typer.prompt(f"Type '{expected}' to confirm")

    if typed.strip() != expected:
        ctx.console.error(f"confirmation mismatch: expected '{expected}'")
        exit_with_code(int(ErrorCode.USER_ERROR))


def _undeploy(ctx: CLIContext, target: DeployContext) -> None:
    exit_on_error(ctx.installer(target).uninstall(), ctx)
    exit_on_error(ctx.namespaces(target).delete(ctx.config.namespace), ctx)
    ctx.console.success(f"{ctx.config.name} removed from {target}")


def build(
    force: bool = typer.Option(False, "--force", help="Rebuild even if the image is current"),
) -> None:
    """Build the service image for the active context."""
    ctx = build_context()
    target = ctx.deploy_context()
    _run_pipeline(ctx, target, PipelineOptions(until=Stage.BUILDING, force_build=force))


def push() -> None:
    """Build (if needed) and push the image to the configured registry."""
    ctx = build_context()
    target = ctx.deploy_context()
    _run_pipeline(ctx, target, PipelineOptions(until=Stage.PUBLISHING))


def deploy(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    force_build: bool = typer.Option(False, "--force-build", help="Rebuild the image"),
) -> None:
    """Build, push and install the release into the active context."""
    ctx = build_context()
    target = ctx.deploy_context()

    if not yes and not non_interactive():
        if not typer.confirm(f"Deploy {ctx.config.name} to {target}?"):
            ctx.console.print("aborted", Style.DIM)
            exit_with_code(int(ErrorCode.USER_ERROR))

    _run_pipeline(ctx, target, PipelineOptions(force_build=force_build))


def undeploy(
    confirm: str | None = typer.Option(
        None,
        "--confirm",
        metavar="CONTEXT/PROJECT",
        help="Confirm non-interactively (must match exactly)",
        show_default=False,
    ),
) -> None:
    """Uninstall the release and delete its namespace."""
    ctx = build_context()
    target = ctx.deploy_context()
    _confirm_target(ctx, target, confirm)
    _undeploy(ctx, target)


def redeploy(
    confirm: str | None = typer.Option(
        None,
        "--confirm",
        metavar="CONTEXT/PROJECT",
        help="Confirm non-interactively (must match exactly)",
        show_default=False,
    ),
    force_build: bool = typer.Option(False, "--force-build", help="Rebuild the image"),
) -> None:
    """Undeploy, then deploy from scratch."""
    ctx = build_context()
    target = ctx.deploy_context()
    _confirm_target(ctx, target, confirm)
    _undeploy(ctx, target)
    _run_pipeline(ctx, target, PipelineOptions(force_build=force_build))


def secrets() -> None:
    """Regenerate the namespace secrets."""
    ctx = build_context()
    target = ctx.deploy_context()
    exit_on_error(ctx.secrets(target).provision(ctx.config.namespace), ctx)
    ctx.console.success(f"secrets regenerated in {target}/{ctx.config.namespace}")
