"""Subprocess execution with Result-based error handling.

This is the only module allowed to call ``subprocess`` directly; tool
adapters in ``shipctl.tools`` go through ``run`` and ``run_silent``.

Usage:
    result = run(["kubectl", "config", "current-context"], cwd=root)
    match result:
        case Ok(stdout):
            print(stdout.strip())
        case Err(error):
            print(f"kubectl failed: {error.stderr}")
"""

from __future__ import annotations

import contextlib
import subprocess
import sys
from collections import deque
from dataclasses import dataclass
from pathlib import Path

from shipctl.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run", "run_silent"]

# Lines of stderr kept from a streamed command for error matching.
STDERR_TAIL_LINES = 50


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The command that was executed.
        returncode: Exit code of the process (-1 if it never ran or timed out).
        stdout: Standard output (may be empty).
        stderr: Standard error (its last lines when output was streamed).
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        return f"{cmd_str} failed (exit {self.returncode})"

    @property
    def output(self) -> str:
        """Combined stderr and stdout, for matching tool error messages."""
        return f"{self.stderr}\n{self.stdout}".strip()


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
    input: str | None = None,
) -> Result[str, ProcessError]:
    """Execute a command, capture output, return stdout or error.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Full environment (inherits the current one if None).
        timeout: Maximum seconds to wait (None for no limit).
        input: Text fed to stdin (used for --password-stdin).
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
            input=input,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout=e.stdout if isinstance(e.stdout, str) else "",
                stderr=f"Command timed out after {timeout}s",
            )
        )
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr=str(e)))

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
            )
        )

    return Ok(proc.stdout)


def _tee_stderr(proc: subprocess.Popen[str]) -> str:
    """Echo the process stderr as it arrives and keep its last lines."""
    tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
    assert proc.stderr is not None
    for line in proc.stderr:
        sys.stderr.write(line)
        sys.stderr.flush()
        tail.append(line)
    return "".join(tail)


def run_silent(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
    stdin: Path | None = None,
    stdout: Path | None = None,
) -> Result[None, ProcessError]:
    """Execute a command with output streamed to the terminal.

    Use this for long-running tools (docker build, helm --wait, pytest)
    whose progress the operator should see. stderr is echoed as it
    arrives and its tail is kept on failure, so callers can still match
    tool error messages.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Full environment (inherits the current one if None).
        timeout: Maximum seconds to wait after stderr closes (None for no limit).
        stdin: File whose content is fed to the process.
        stdout: File that receives the process stdout instead of the terminal.
    """
    try:
        with (
            stdin.open("rb") if stdin is not None else contextlib.nullcontext() as in_handle,
            stdout.open("wb") if stdout is not None else contextlib.nullcontext() as out_handle,
            subprocess.Popen(
                cmd,
                cwd=str(cwd),
                env=env,
                stdin=in_handle,
                stdout=out_handle,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            ) as proc,
        ):
            stderr = _tee_stderr(proc)
            try:
                returncode = proc.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                proc.kill()
                raise
    except subprocess.TimeoutExpired:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout="",
                stderr=f"Command timed out after {timeout}s",
            )
        )
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr=str(e)))

    if returncode != 0:
        return Err(
            ProcessError(command=tuple(cmd), returncode=returncode, stdout="", stderr=stderr)
        )

    return Ok(None)
