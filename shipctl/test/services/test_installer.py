from __future__ import annotations

from pathlib import Path

import pytest

from shipctl.core.config import ProjectConfig
from shipctl.core.markers import BuildMarker, PushMarker
from shipctl.core.project import Project
from shipctl.core.result import Err, Ok
from shipctl.output.console import MockConsole
from shipctl.services.context import DeployContext
from shipctl.services.errors import InstallError, MissingArtifactError
from shipctl.services.installer import ReleaseInstaller
from shipctl.tools.helm import HelmCli
from shipctl.tools.runner import FakeRunner

BUILD = BuildMarker(image_tag="7", local_image_ref="local/todo:7")
PUSH = PushMarker(remote_image_ref="docker.nexus.local:8443/todo:7")
LOCAL = DeployContext(name="minikube", is_local=True)
REMOTE = DeployContext(name="prod", is_local=False)


@pytest.fixture
def chart_root(tmp_path: Path) -> Path:
    (tmp_path / "helm").mkdir()
    return tmp_path


def _installer(root: Path, runner: FakeRunner, target: DeployContext) -> ReleaseInstaller:
    return ReleaseInstaller(
        project=Project(root=root),
        config=ProjectConfig(name="todo", namespace="todo"),
        console=MockConsole(),
        helm=HelmCli(runner, kube_context=target.name),
        deploy_context=target,
    )


def _upgrade_call(runner: FakeRunner) -> tuple[str, ...]:
    calls = [c.cmd for c in runner.calls if c.cmd[:2] == ("helm", "upgrade")]
    assert len(calls) == 1
    return calls[0]


def test_select_image() -> None:
    local = _installer(Path("/srv/todo"), FakeRunner(), LOCAL)
    remote = _installer(Path("/srv/todo"), FakeRunner(), REMOTE)

    assert local.select_image(BUILD, None) == Ok("local/todo:7")
    assert local.select_image(BUILD, PUSH) == Ok("local/todo:7")
    assert remote.select_image(BUILD, PUSH) == Ok("docker.nexus.local:8443/todo:7")
    assert isinstance(remote.select_image(BUILD, None), Err)


def test_local_install_uses_local_image(chart_root: Path) -> None:
    runner = FakeRunner()

    assert _installer(chart_root, runner, LOCAL).install(BUILD, None) == Ok(None)

    cmd = _upgrade_call(runner)
    assert "local=true" in cmd
    assert "image=local/todo:7" in cmd
    assert "--atomic" in cmd
    assert "--create-namespace" in cmd
    assert "--values" not in cmd


def test_remote_install_uses_pushed_image_and_values(chart_root: Path) -> None:
    (chart_root / "helm" / "values.yaml").write_text("replicas: 2\n", encoding="utf-8")
    runner = FakeRunner()

    assert _installer(chart_root, runner, REMOTE).install(BUILD, PUSH) == Ok(None)

    cmd = _upgrade_call(runner)
    assert "local=false" in cmd
    assert "image=docker.nexus.local:8443/todo:7" in cmd
    assert str(chart_root / "helm" / "values.yaml") in cmd
    assert cmd[-2:] == ("--kube-context", "prod")


def test_remote_without_push_is_missing_artifact(chart_root: Path) -> None:
    runner = FakeRunner()

    result = _installer(chart_root, runner, REMOTE).install(BUILD, None)

    assert isinstance(result, Err)
    assert isinstance(result.error, MissingArtifactError)
    assert runner.calls == []


def test_missing_chart(tmp_path: Path) -> None:
    runner = FakeRunner()

    result = _installer(tmp_path, runner, LOCAL).install(BUILD, None)

    assert isinstance(result, Err)
    assert isinstance(result.error, InstallError)
    assert result.error.kind == "chart_missing"
    assert runner.calls == []


@pytest.mark.parametrize("status", ["pending-install", "pending-upgrade", "pending-rollback"])
def test_pending_release_is_locked(chart_root: Path, status: str) -> None:
    runner = FakeRunner()
    runner.on("helm status", f'{{"info": {{"status": "{status}"}}}}')

    result = _installer(chart_root, runner, REMOTE).install(BUILD, PUSH)

    assert isinstance(result, Err)
    assert isinstance(result.error, InstallError)
    assert result.error.kind == "release_locked"
    assert not runner.called("helm upgrade")


def test_helm_failure(chart_root: Path) -> None:
    runner = FakeRunner()
    runner.fail("helm upgrade", returncode=1)

    result = _installer(chart_root, runner, REMOTE).install(BUILD, PUSH)

    assert isinstance(result, Err)
    assert isinstance(result.error, InstallError)
    assert result.error.kind == "helm_failed"
    assert result.error.returncode == 1
    assert "rolled back" not in result.error.message


def test_lock_held_during_upgrade_is_reported(chart_root: Path) -> None:
    runner = FakeRunner()
    runner.fail(
        "helm upgrade",
        stderr="Error: UPGRADE FAILED: another operation (install/upgrade/rollback) is in progress",
    )

    result = _installer(chart_root, runner, REMOTE).install(BUILD, PUSH)

    assert isinstance(result, Err)
    assert isinstance(result.error, InstallError)
    assert result.error.kind == "release_locked"
    assert "rolled back" not in result.error.message


def test_atomic_rollback_is_reported(chart_root: Path) -> None:
    runner = FakeRunner()
    runner.fail(
        "helm upgrade",
        stderr=(
            "Error: UPGRADE FAILED: release todo failed, and has been rolled back "
            "due to atomic being set: context deadline exceeded"
        ),
    )

    result = _installer(chart_root, runner, REMOTE).install(BUILD, PUSH)

    assert isinstance(result, Err)
    assert isinstance(result.error, InstallError)
    assert result.error.kind == "helm_failed"
    assert result.error.message.endswith("(rolled back)")
    assert result.error.hint is not None
    assert "context deadline exceeded" in result.error.hint


def test_uninstall_missing_release_is_noop(chart_root: Path) -> None:
    runner = FakeRunner()
    runner.fail("helm status", stderr="Error: release: not found")

    assert _installer(chart_root, runner, REMOTE).uninstall() == Ok(None)
    assert not runner.called("helm uninstall")


def test_uninstall(chart_root: Path) -> None:
    runner = FakeRunner()
    runner.on("helm status", '{"info": {"status": "deployed"}}')

    assert _installer(chart_root, runner, REMOTE).uninstall() == Ok(None)
    assert runner.called("helm uninstall todo --namespace todo --wait --kube-context prod")
