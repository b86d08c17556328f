from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from shipctl.cli.app import app
from shipctl.cli.context import CLIContext
from shipctl.core.config import ImageRepoKind, ProjectConfig
from shipctl.core.errors import ErrorCode
from shipctl.core.project import Project
from shipctl.output.console import MockConsole
from shipctl.tools.http import MockHttpClient
from shipctl.tools.runner import FakeRunner

DEPLOYED = '{"info": {"status": "deployed"}}'


def _ctx(
    tmp_path: Path, runner: FakeRunner, *, image_repo: ImageRepoKind = ImageRepoKind.none
) -> CLIContext:
    (tmp_path / "shipctl.yaml").write_text("name: todo\n", encoding="utf-8")
    (tmp_path / "helm").mkdir(exist_ok=True)
    return CLIContext(
        project=Project(root=tmp_path),
        config=ProjectConfig(name="todo", namespace="todo", image_repo=image_repo),
        console=MockConsole(),
        runner=runner,
        http=MockHttpClient(),
    )


def _patch(monkeypatch: pytest.MonkeyPatch, ctx: CLIContext, *, kube_context: str) -> None:
    import shipctl.cli.commands.release as release_cmd

    monkeypatch.setattr(release_cmd, "build_context", lambda: ctx)
    monkeypatch.setenv("KUBE_CONTEXT", kube_context)
    monkeypatch.delenv("NONINTERACTIVE", raising=False)


def _deletions(runner: FakeRunner) -> list[str]:
    return [
        line
        for line in runner.lines
        if line.startswith("helm uninstall") or " delete namespace " in line
    ]


class TestUndeploy:
    def test_mismatched_confirmation_deletes_nothing(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        runner = FakeRunner()
        runner.on("helm status", DEPLOYED)
        _patch(monkeypatch, _ctx(tmp_path, runner), kube_context="prod")

        result = CliRunner().invoke(app, ["undeploy"], input="staging/todo\n")

        assert result.exit_code == ErrorCode.USER_ERROR
        assert _deletions(runner) == []
        assert not runner.called("helm")

    def test_mismatched_confirm_flag_deletes_nothing(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        runner = FakeRunner()
        ctx = _ctx(tmp_path, runner)
        _patch(monkeypatch, ctx, kube_context="prod")

        result = CliRunner().invoke(app, ["undeploy", "--confirm", "prod/other"])

        assert result.exit_code == ErrorCode.USER_ERROR
        assert runner.calls == []
        assert isinstance(ctx.console, MockConsole)
        assert ctx.console.find("confirmation mismatch")

    def test_non_interactive_requires_confirm_flag(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        runner = FakeRunner()
        _patch(monkeypatch, _ctx(tmp_path, runner), kube_context="prod")
        monkeypatch.setenv("NONINTERACTIVE", "1")

        result = CliRunner().invoke(app, ["undeploy"])

        assert result.exit_code == ErrorCode.USER_ERROR
        assert runner.calls == []

    def test_typed_confirmation_deletes_release_and_namespace(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        runner = FakeRunner()
        runner.on("helm status", DEPLOYED)
        _patch(monkeypatch, _ctx(tmp_path, runner), kube_context="prod")

        result = CliRunner().invoke(app, ["undeploy"], input="prod/todo\n")

        assert result.exit_code == 0, result.output
        assert _deletions(runner) == [
            "helm uninstall todo --namespace todo --wait --kube-context prod",
            "kubectl --context prod delete namespace todo --ignore-not-found --wait",
        ]

    def test_confirm_flag(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        runner = FakeRunner()
        runner.on("helm status", DEPLOYED)
        _patch(monkeypatch, _ctx(tmp_path, runner), kube_context="prod")

        result = CliRunner().invoke(app, ["undeploy", "--confirm", "prod/todo"])

        assert result.exit_code == 0, result.output
        assert len(_deletions(runner)) == 2


class TestDeploy:
    def test_yes_skips_prompt(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        runner = FakeRunner()
        _patch(monkeypatch, _ctx(tmp_path, runner), kube_context="minikube")

        result = CliRunner().invoke(app, ["deploy", "--yes"])

        assert result.exit_code == 0, result.output
        assert runner.called("docker build")
        assert runner.called("helm upgrade --install todo")

    def test_declined_prompt_does_nothing(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        runner = FakeRunner()
        _patch(monkeypatch, _ctx(tmp_path, runner), kube_context="minikube")

        result = CliRunner().invoke(app, ["deploy"], input="n\n")

        assert result.exit_code == ErrorCode.USER_ERROR
        assert runner.calls == []

    def test_non_interactive_skips_prompt(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        runner = FakeRunner()
        _patch(monkeypatch, _ctx(tmp_path, runner), kube_context="minikube")
        monkeypatch.setenv("NONINTERACTIVE", "true")

        result = CliRunner().invoke(app, ["deploy"])

        assert result.exit_code == 0, result.output
        assert runner.called("helm upgrade")

    def test_tool_exit_code_is_propagated(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        runner = FakeRunner()
        runner.fail("docker build", returncode=42)
        _patch(monkeypatch, _ctx(tmp_path, runner), kube_context="minikube")

        result = CliRunner().invoke(app, ["deploy", "-y"])

        assert result.exit_code == 42
        assert not runner.called("helm")

    def test_missing_registry_for_remote_context(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        runner = FakeRunner()
        _patch(monkeypatch, _ctx(tmp_path, runner), kube_context="prod")

        result = CliRunner().invoke(app, ["deploy", "-y"])

        assert result.exit_code == ErrorCode.USER_ERROR
        assert not runner.called("helm upgrade")


class TestBuildAndPush:
    def test_build_stops_after_build(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        runner = FakeRunner()
        _patch(monkeypatch, _ctx(tmp_path, runner), kube_context="prod")

        result = CliRunner().invoke(app, ["build"])

        assert result.exit_code == 0, result.output
        assert [line.split()[:2] for line in runner.lines] == [["docker", "build"]]

    def test_push_to_nexus(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        runner = FakeRunner()
        ctx = _ctx(tmp_path, runner, image_repo=ImageRepoKind.nexus)
        _patch(monkeypatch, ctx, kube_context="prod")
        monkeypatch.setenv("NEXUS_USERNAME", "ci")
        monkeypatch.setenv("NEXUS_PASSWORD", "pw")

        result = CliRunner().invoke(app, ["push"])

        assert result.exit_code == 0, result.output
        assert runner.called("docker push docker.nexus.local:8443/todo:")
        assert not runner.called("kubectl")
        assert not runner.called("helm")

    def test_context_option_overrides_env(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        runner = FakeRunner()
        _patch(monkeypatch, _ctx(tmp_path, runner), kube_context="prod")

        result = CliRunner().invoke(app, ["--context", "minikube", "build"])

        assert result.exit_code == 0, result.output
        assert runner.lines[0] == "minikube -p minikube docker-env --shell none"


def test_secrets_command(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    runner = FakeRunner()
    _patch(monkeypatch, _ctx(tmp_path, runner), kube_context="prod")

    result = CliRunner().invoke(app, ["secrets"])

    assert result.exit_code == 0, result.output
    assert runner.lines == ["k8s-secretgen --namespace todo --context prod"]
