from __future__ import annotations

from pathlib import Path

from shipctl.core.config import ImageRepoKind, ProjectConfig
from shipctl.core.markers import BuildMarker, PushMarker, read_push_marker, write_push_marker
from shipctl.core.project import Project
from shipctl.core.result import Err, Ok
from shipctl.output.console import MockConsole
from shipctl.services.publisher import ImagePublisher
from shipctl.tools.aws import EcrCli
from shipctl.tools.docker import DockerCli
from shipctl.tools.http import HttpError, MockHttpClient
from shipctl.tools.runner import FakeRunner

POLICY_URL = "https://policies.example.test/ecr.json"
POLICY = '{"rules": [{"rulePriority": 1, "selection": {"tagStatus": "any", "countType": "imageCountMoreThan", "countNumber": 20}, "action": {"type": "expire"}}]}'
REGISTRY = "123456789012.dkr.ecr.eu-west-1.amazonaws.com"
BUILD = BuildMarker(image_tag="1700000000", local_image_ref="local/todo:1700000000")


def _publisher(
    tmp_path: Path,
    runner: FakeRunner,
    kind: ImageRepoKind,
    *,
    env: dict[str, str] | None = None,
    http: MockHttpClient | None = None,
    aws_region: str | None = "eu-west-1",
) -> ImagePublisher:
    project = Project(root=tmp_path)
    http_client = http or MockHttpClient()
    return ImagePublisher(
        project=project,
        config=ProjectConfig(
            name="todo",
            namespace="todo",
            image_repo=kind,
            aws_region=aws_region,
            lifecycle_policy_url=POLICY_URL,
        ),
        console=MockConsole(),
        docker=DockerCli(runner),
        ecr=EcrCli(runner),
        http=http_client,
        markers_dir=project.markers_dir("prod-cluster"),
        env=env or {},
    )


def _ecr_runner(*, repo_exists: bool) -> FakeRunner:
    runner = FakeRunner()
    runner.on("aws sts get-caller-identity", "123456789012\n")
    runner.on("aws ecr get-login-password", "ecr-token\n")
    if not repo_exists:
        runner.fail(
            "aws ecr describe-repositories",
            stderr="An error occurred (RepositoryNotFoundException) when calling ...",
            returncode=254,
        )
    return runner


def test_none_makes_no_calls(tmp_path: Path) -> None:
    runner = FakeRunner()
    publisher = _publisher(tmp_path, runner, ImageRepoKind.none)

    assert publisher.publish(BUILD) == Ok(None)
    assert publisher.current(BUILD) == Ok(None)
    assert runner.calls == []


def test_ecr_first_push_creates_repository_with_policy(tmp_path: Path) -> None:
    runner = _ecr_runner(repo_exists=False)
    http = MockHttpClient()
    http.set_text(POLICY_URL, POLICY)
    publisher = _publisher(tmp_path, runner, ImageRepoKind.ecr, http=http)

    result = publisher.publish(BUILD)

    expected = PushMarker(remote_image_ref=f"{REGISTRY}/todo:1700000000")
    assert result == Ok(expected)
    assert runner.lines == [
        "aws sts get-caller-identity --query Account --output text",
        "aws ecr get-login-password --region eu-west-1",
        f"docker login {REGISTRY} --username AWS --password-stdin",
        "aws ecr describe-repositories --repository-names todo --region eu-west-1",
        "aws ecr create-repository --repository-name todo "
        "--image-scanning-configuration scanOnPush=true --region eu-west-1",
        f"aws ecr put-lifecycle-policy --repository-name todo --lifecycle-policy-text {POLICY} "
        "--region eu-west-1",
        f"docker tag local/todo:1700000000 {REGISTRY}/todo:1700000000",
        f"docker push {REGISTRY}/todo:1700000000",
    ]
    assert runner.calls[2].input == "ecr-token"
    assert http.calls == [POLICY_URL]
    assert read_push_marker(tmp_path / ".shipctl" / "prod-cluster") == Ok(expected)


def test_ecr_existing_repository_skips_creation(tmp_path: Path) -> None:
    runner = _ecr_runner(repo_exists=True)
    http = MockHttpClient()
    publisher = _publisher(tmp_path, runner, ImageRepoKind.ecr, http=http)

    assert isinstance(publisher.publish(BUILD), Ok)
    assert not runner.called("aws ecr create-repository")
    assert not runner.called("aws ecr put-lifecycle-policy")
    assert http.calls == []


def test_ecr_creation_race_skips_policy(tmp_path: Path) -> None:
    runner = _ecr_runner(repo_exists=False)
    runner.fail(
        "aws ecr create-repository",
        stderr="An error occurred (RepositoryAlreadyExistsException)",
        returncode=254,
    )
    publisher = _publisher(tmp_path, runner, ImageRepoKind.ecr)

    assert isinstance(publisher.publish(BUILD), Ok)
    assert not runner.called("aws ecr put-lifecycle-policy")


def test_ecr_policy_download_failure(tmp_path: Path) -> None:
    runner = _ecr_runner(repo_exists=False)
    http = MockHttpClient()
    http.set_text(POLICY_URL, HttpError(url=POLICY_URL, status=503, message="Service Unavailable"))
    publisher = _publisher(tmp_path, runner, ImageRepoKind.ecr, http=http)

    result = publisher.publish(BUILD)

    assert isinstance(result, Err)
    assert result.error.kind == "policy_failed"
    assert not runner.called("docker push")


def test_ecr_region_from_aws_config(tmp_path: Path) -> None:
    runner = _ecr_runner(repo_exists=True)
    runner.on("aws configure get region", "us-east-2\n")
    publisher = _publisher(tmp_path, runner, ImageRepoKind.ecr, aws_region=None)

    result = publisher.publish(BUILD)

    assert isinstance(result, Ok)
    assert runner.called("aws ecr get-login-password --region us-east-2")


def test_ecr_without_region(tmp_path: Path) -> None:
    runner = FakeRunner()
    runner.fail("aws configure get region")
    publisher = _publisher(tmp_path, runner, ImageRepoKind.ecr, aws_region=None)

    result = publisher.publish(BUILD)

    assert isinstance(result, Err)
    assert result.error.kind == "credentials_missing"


def test_ecr_login_failure(tmp_path: Path) -> None:
    runner = _ecr_runner(repo_exists=True)
    runner.fail("docker login", stderr="unauthorized", returncode=1)
    publisher = _publisher(tmp_path, runner, ImageRepoKind.ecr)

    result = publisher.publish(BUILD)

    assert isinstance(result, Err)
    assert result.error.kind == "auth_failed"
    assert result.error.hint == "unauthorized"


def test_nexus_requires_credentials(tmp_path: Path) -> None:
    runner = FakeRunner()
    publisher = _publisher(tmp_path, runner, ImageRepoKind.nexus)

    result = publisher.publish(BUILD)

    assert isinstance(result, Err)
    assert result.error.kind == "credentials_missing"
    assert runner.calls == []


def test_nexus_push(tmp_path: Path) -> None:
    runner = FakeRunner()
    publisher = _publisher(
        tmp_path,
        runner,
        ImageRepoKind.nexus,
        env={"NEXUS_USERNAME": "ci", "NEXUS_PASSWORD": "pw"},
    )

    result = publisher.publish(BUILD)

    assert result == Ok(PushMarker(remote_image_ref="docker.nexus.local:8443/todo:1700000000"))
    assert runner.lines[0] == "docker login docker.nexus.local:8443 --username ci --password-stdin"
    assert runner.calls[0].input == "pw"
    assert runner.lines[-1] == "docker push docker.nexus.local:8443/todo:1700000000"


def test_push_failure(tmp_path: Path) -> None:
    runner = FakeRunner()
    runner.fail("docker push", returncode=1)
    publisher = _publisher(
        tmp_path, runner, ImageRepoKind.nexus, env={"NEXUS_USERNAME": "ci", "NEXUS_PASSWORD": "pw"}
    )

    result = publisher.publish(BUILD)

    assert isinstance(result, Err)
    assert result.error.kind == "push_failed"
    assert result.error.returncode == 1
    assert read_push_marker(tmp_path / ".shipctl" / "prod-cluster") == Ok(None)


def test_current_matches_tag(tmp_path: Path) -> None:
    runner = FakeRunner()
    publisher = _publisher(tmp_path, runner, ImageRepoKind.nexus)
    markers = tmp_path / ".shipctl" / "prod-cluster"

    write_push_marker(markers, PushMarker(remote_image_ref="docker.nexus.local:8443/todo:1"))
    assert publisher.current(BUILD) == Ok(None)

    same = PushMarker(remote_image_ref="docker.nexus.local:8443/todo:1700000000")
    write_push_marker(markers, same)
    assert publisher.current(BUILD) == Ok(same)
    assert publisher.ensure(BUILD) == Ok(same)
    assert runner.calls == []


def test_current_rejects_push_to_another_nexus_registry(tmp_path: Path) -> None:
    runner = FakeRunner()
    publisher = _publisher(tmp_path, runner, ImageRepoKind.nexus)
    markers = tmp_path / ".shipctl" / "prod-cluster"

    write_push_marker(markers, PushMarker(remote_image_ref="old-nexus:5000/todo:1700000000"))

    assert publisher.current(BUILD) == Ok(None)
    assert runner.calls == []


def test_current_rejects_push_from_another_repo_kind(tmp_path: Path) -> None:
    runner = FakeRunner()
    publisher = _publisher(tmp_path, runner, ImageRepoKind.ecr)
    markers = tmp_path / ".shipctl" / "prod-cluster"

    write_push_marker(markers, PushMarker(remote_image_ref="docker.nexus.local:8443/todo:1700000000"))
    assert publisher.current(BUILD) == Ok(None)

    same = PushMarker(remote_image_ref=f"{REGISTRY}/todo:1700000000")
    write_push_marker(markers, same)
    assert publisher.current(BUILD) == Ok(same)

    other_region = PushMarker(
        remote_image_ref="123456789012.dkr.ecr.us-east-1.amazonaws.com/todo:1700000000"
    )
    write_push_marker(markers, other_region)
    assert publisher.current(BUILD) == Ok(None)
    assert runner.calls == []
