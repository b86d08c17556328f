"""Command runner shared by all tool adapters.

The adapters in this package never touch ``subprocess``; they hand an argv
to a ``CommandRunner``. Production code uses ``ProcessRunner``; tests pass
``FakeRunner`` and script the results.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from shipctl.core.result import Err, Ok, Result
from shipctl.output.console import ConsoleProtocol
from shipctl.platform.process import ProcessError, run, run_silent

__all__ = ["CommandRunner", "FakeRunner", "ProcessRunner", "RecordedCall"]


class CommandRunner(Protocol):
    """Runs external tools on behalf of the adapters."""

    def capture(
        self,
        cmd: list[str],
        *,
        env: Mapping[str, str] | None = None,
        input: str | None = None,
    ) -> Result[str, ProcessError]:
        """Run and capture stdout (for queries such as ``kubectl get``)."""
        ...

    def stream(
        self,
        cmd: list[str],
        *,
        env: Mapping[str, str] | None = None,
        stdin: Path | None = None,
        stdout: Path | None = None,
    ) -> Result[None, ProcessError]:
        """Run with output streamed to the terminal (builds, installs)."""
        ...


class ProcessRunner:
    """Runs commands in the project root and echoes each one first.

    ``env`` entries are layered over the current environment rather than
    replacing it.
    """

    def __init__(self, *, cwd: Path, console: ConsoleProtocol) -> None:
        self._cwd = cwd
        self._console = console

    def _env(self, overlay: Mapping[str, str] | None) -> dict[str, str] | None:
        if not overlay:
            return None
        merged = dict(os.environ)
        merged.update(overlay)
        return merged

    def capture(
        self,
        cmd: list[str],
        *,
        env: Mapping[str, str] | None = None,
        input: str | None = None,
    ) -> Result[str, ProcessError]:
        self._console.command(cmd)
        return run(cmd, cwd=self._cwd, env=self._env(env), input=input)

    def stream(
        self,
        cmd: list[str],
        *,
        env: Mapping[str, str] | None = None,
        stdin: Path | None = None,
        stdout: Path | None = None,
    ) -> Result[None, ProcessError]:
        self._console.command(cmd)
        return run_silent(cmd, cwd=self._cwd, env=self._env(env), stdin=stdin, stdout=stdout)


@dataclass(frozen=True, slots=True)
class RecordedCall:
    cmd: tuple[str, ...]
    env: dict[str, str]
    input: str | None = None
    stdin: Path | None = None
    stdout: Path | None = None

    @property
    def line(self) -> str:
        return " ".join(self.cmd)


Responder = Callable[[tuple[str, ...]], Result[str, ProcessError] | None]


def _no_calls() -> list[RecordedCall]:
    return []


def _no_responders() -> list[tuple[str, Responder | Result[str, ProcessError]]]:
    return []


@dataclass
class FakeRunner:
    """Records every command and answers from scripted responses.

    Responses are matched by command-line prefix, most recent ``on`` call
    first. Unmatched commands succeed with empty output.

    Usage:
        runner = FakeRunner()
        runner.fail("kubectl get namespace", stderr="NotFound")
        runner.on("aws sts get-caller-identity", "123456789012\\n")
    """

    calls: list[RecordedCall] = field(default_factory=_no_calls)
    _responses: list[tuple[str, Responder | Result[str, ProcessError]]] = field(
        default_factory=_no_responders
    )

    def on(self, prefix: str, stdout: str = "") -> None:
        self._responses.insert(0, (prefix, Ok(stdout)))

    def fail(self, prefix: str, *, stderr: str = "", returncode: int = 1) -> None:
        error = ProcessError(
            command=tuple(prefix.split()), returncode=returncode, stdout="", stderr=stderr
        )
        self._responses.insert(0, (prefix, Err(error)))

    def respond(self, prefix: str, responder: Responder) -> None:
        """Answer with a callable; returning None falls through to later rules."""
        self._responses.insert(0, (prefix, responder))

    def _answer(self, cmd: tuple[str, ...]) -> Result[str, ProcessError]:
        line = " ".join(cmd)
        for prefix, response in self._responses:
            if not line.startswith(prefix):
                continue
            if callable(response):
                answered = response(cmd)
                if answered is None:
                    continue
                return answered
            return response
        return Ok("")

    def capture(
        self,
        cmd: list[str],
        *,
        env: Mapping[str, str] | None = None,
        input: str | None = None,
    ) -> Result[str, ProcessError]:
        self.calls.append(RecordedCall(cmd=tuple(cmd), env=dict(env or {}), input=input))
        return self._answer(tuple(cmd))

    def stream(
        self,
        cmd: list[str],
        *,
        env: Mapping[str, str] | None = None,
        stdin: Path | None = None,
        stdout: Path | None = None,
    ) -> Result[None, ProcessError]:
        self.calls.append(
            RecordedCall(cmd=tuple(cmd), env=dict(env or {}), stdin=stdin, stdout=stdout)
        )
        result = self._answer(tuple(cmd))
        if isinstance(result, Err):
            return result
        return Ok(None)

    @property
    def lines(self) -> list[str]:
        return [c.line for c in self.calls]

    def called(self, prefix: str) -> bool:
        return any(line.startswith(prefix) for line in self.lines)
