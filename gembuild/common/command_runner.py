from __future__ import annotations

import logging
import shlex
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence


@dataclass(slots=True)
class CommandResult:
    """Exit status and captured output of one external command."""

    command: Sequence[str]
    return_code: Optional[int]
    stdout: str
    stderr: str
    duration: float
    tool_available: bool = True
    timed_out: bool = False

    def succeeded(self) -> bool:
        """Return True when the command ran and exited with status 0."""
        return self.return_code == 0 and self.tool_available and not self.timed_out

    @property
    def display(self) -> str:
        """Shell-quoted rendering of the command, for log and error messages."""
        return " ".join(shlex.quote(str(part)) for part in self.command)

    def error_message(self, default: str = "Unknown error") -> str:
        """Best human-readable reason for a failure: stderr, then stdout."""
        return self.stderr.strip() or self.stdout.strip() or default


class CommandRunner:
    """Thin wrapper over subprocess that never raises for a failing command."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        """
        Execute a command to completion and capture its output.

        Args:
            command: Program and arguments, no shell involved.
            cwd: Working directory for the child process.
            timeout: Seconds before the child is killed; None waits forever.
            env: Full replacement environment, when given.

        Returns:
            CommandResult describing the exit status. A missing executable is
            reported with ``tool_available=False`` rather than raised.
        """
        start = time.time()
        self.logger.debug("Executing command: %s (cwd=%s)", " ".join(command), cwd)
        try:
            completed = subprocess.run(
                list(command),
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env else None,
            )
        except subprocess.TimeoutExpired as exc:
            self.logger.warning("Command timed out after %.2fs: %s", time.time() - start, " ".join(command))
            return CommandResult(
                command=command,
                return_code=None,
                stdout=_as_text(exc.stdout),
                stderr=_as_text(exc.stderr),
                duration=time.time() - start,
                timed_out=True,
            )
        except FileNotFoundError:
            self.logger.debug("Command not found: %s", command[0])
            return CommandResult(
                command=command,
                return_code=None,
                stdout="",
                stderr=f"Command not found: {command[0]}",
                duration=time.time() - start,
                tool_available=False,
            )

        result = CommandResult(
            command=command,
            return_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            duration=time.time() - start,
        )
        if not result.succeeded():
            self.logger.debug(
                "Command exited with %s after %.2fs: %s",
                result.return_code,
                result.duration,
                result.error_message("")[:500],
            )
        return result


def _as_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode(errors="replace")
    return str(value)
