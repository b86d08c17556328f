from __future__ import annotations

import os
from pathlib import Path

from shipctl.core.config import ProjectConfig
from shipctl.core.project import Project
from shipctl.core.result import Err, Ok
from shipctl.output.console import MockConsole
from shipctl.services.builder import ImageBuilder
from shipctl.services.dev import DevService
from shipctl.tools.docker import DockerCli
from shipctl.tools.runner import FakeRunner


def _dev(tmp_path: Path, runner: FakeRunner) -> DevService:
    project = Project(root=tmp_path)
    config = ProjectConfig(name="todo", namespace="todo", port=9000)
    console = MockConsole()
    docker = DockerCli(runner)
    return DevService(
        project=project,
        config=config,
        console=console,
        runner=runner,
        docker=docker,
        builder=ImageBuilder(
            project=project,
            config=config,
            console=console,
            docker=docker,
            markers_dir=project.markers_dir("_docker"),
        ),
        python="python3",
    )


def test_deps_installs_present_requirement_files(tmp_path: Path) -> None:
    (tmp_path / "requirements.txt").write_text("flask\n", encoding="utf-8")
    (tmp_path / "requirements-dev.txt").write_text("pytest\n", encoding="utf-8")
    runner = FakeRunner()

    assert _dev(tmp_path, runner).deps() == Ok(2)
    assert runner.lines == [
        "python3 -m pip install -r requirements.txt",
        "python3 -m pip install -r requirements-dev.txt",
    ]


def test_deps_without_requirements(tmp_path: Path) -> None:
    result = _dev(tmp_path, FakeRunner()).deps()
    assert isinstance(result, Err)
    assert result.error.tool == "pip"


def test_lint_runs_flake8_and_spectral(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "openapi.yaml").write_text("openapi: 3.0.0\n", encoding="utf-8")
    runner = FakeRunner()

    assert _dev(tmp_path, runner).lint() == Ok(None)
    assert runner.lines == ["flake8 src", "spectral lint openapi.yaml"]


def test_lint_failure_stops_before_spectral(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "tests").mkdir()
    (tmp_path / "openapi.yaml").write_text("openapi: 3.0.0\n", encoding="utf-8")
    runner = FakeRunner()
    runner.fail("flake8", returncode=1)

    result = _dev(tmp_path, runner).lint()

    assert isinstance(result, Err)
    assert result.error.tool == "flake8"
    assert result.error.returncode == 1
    assert runner.lines == ["flake8 src tests"]


def test_test_passes_arguments(tmp_path: Path) -> None:
    runner = FakeRunner()
    assert _dev(tmp_path, runner).test(["-k", "todo", "-x"]) == Ok(None)
    assert runner.lines == ["python3 -m pytest -k todo -x"]


def test_test_failure_propagates_exit_code(tmp_path: Path) -> None:
    runner = FakeRunner()
    runner.fail("python3 -m pytest", returncode=5)
    result = _dev(tmp_path, runner).test()
    assert isinstance(result, Err)
    assert result.error.returncode == 5


def test_run_builds_then_starts_container(tmp_path: Path) -> None:
    (tmp_path / "Dockerfile").write_text("FROM scratch\n", encoding="utf-8")
    os.utime(tmp_path / "Dockerfile", (1000.0, 1000.0))
    runner = FakeRunner()
    runner.on("docker run", "c0ffee\n")

    result = _dev(tmp_path, runner).run_container()

    assert result == Ok("c0ffee")
    assert runner.called("docker build")
    assert runner.lines[-1].startswith("docker run -d --rm --name todo -p 9000:9000 local/todo:")
    # The host daemon is used: no cluster environment.
    assert all(c.env == {} for c in runner.calls)


def test_stop(tmp_path: Path) -> None:
    runner = FakeRunner()
    assert _dev(tmp_path, runner).stop() == Ok(None)
    assert runner.lines == ["docker stop todo"]
