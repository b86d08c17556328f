"""aws CLI adapter (ECR and STS)."""

from __future__ import annotations

from shipctl.core.result import Err, Ok, Result
from shipctl.platform.process import ProcessError

from .runner import CommandRunner

_NOT_FOUND = "RepositoryNotFoundException"
_ALREADY_EXISTS = "RepositoryAlreadyExistsException"


def ecr_registry(account_id: str, region: str) -> str:
    return f"{account_id}.dkr.ecr.{region}.amazonaws.com"


class EcrCli:
    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def account_id(self) -> Result[str, ProcessError]:
        result = self._runner.capture(
            ["aws", "sts", "get-caller-identity", "--query", "Account", "--output", "text"]
        )
        return result.map(str.strip)

    def configured_region(self) -> Result[str, ProcessError]:
        result = self._runner.capture(["aws", "configure", "get", "region"])
        return result.map(str.strip)

    def login_password(self, region: str) -> Result[str, ProcessError]:
        result = self._runner.capture(["aws", "ecr", "get-login-password", "--region", region])
        return result.map(str.strip)

    def repository_exists(self, name: str, region: str) -> Result[bool, ProcessError]:
        result = self._runner.capture(
            [
                "aws",
                "ecr",
                "describe-repositories",
                "--repository-names",
                name,
                "--region",
                region,
            ]
        )
        if isinstance(result, Ok):
            return Ok(True)
        if _NOT_FOUND in result.error.output:
            return Ok(False)
        return result

    def create_repository(self, name: str, region: str) -> Result[bool, ProcessError]:
        """Create the repository.

        Returns Ok(False) when another invocation created it first.
        """
        result = self._runner.capture(
            [
                "aws",
                "ecr",
                "create-repository",
                "--repository-name",
                name,
                "--image-scanning-configuration",
                "scanOnPush=true",
                "--region",
                region,
            ]
        )
        if isinstance(result, Ok):
            return Ok(True)
        if _ALREADY_EXISTS in result.error.output:
            return Ok(False)
        return Err(result.error)

    def put_lifecycle_policy(
        self, name: str, region: str, policy_text: str
    ) -> Result[None, ProcessError]:
        result = self._runner.capture(
            [
                "aws",
                "ecr",
                "put-lifecycle-policy",
                "--repository-name",
                name,
                "--lifecycle-policy-text",
                policy_text,
                "--region",
                region,
            ]
        )
        if isinstance(result, Err):
            return result
        return Ok(None)
