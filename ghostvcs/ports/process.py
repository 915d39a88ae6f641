"""Process runner port interface.

Defines the interface backends use to execute external commands.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True)
class ProcessOutput:
    """Captured result of a completed command.

    Attributes:
        stdout: Decoded standard output.
        stderr: Decoded standard error.
        returncode: Exit status (one of the accepted codes).
    """

    stdout: str
    stderr: str = ""
    returncode: int = 0


class ProcessRunner(Protocol):
    """Protocol for running external commands with a hard timeout."""

    def run(
        self,
        cwd: Path,
        command: str,
        args: Sequence[str],
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
        ok_codes: Sequence[int] = (0,),
    ) -> ProcessOutput:
        """Run a command and capture its output.

        Args:
            cwd: Working directory.
            command: Executable name or path.
            args: Arguments (without the executable).
            timeout: Seconds before the command is killed. None = runner default.
            env: Variables overlaid on the inherited environment.
            ok_codes: Exit statuses treated as success.

        Returns:
            ProcessOutput for a successful run.

        Raises:
            ProcessTimeoutError: If the timeout expired.
            ProcessSpawnError: If the executable could not be launched.
            ProcessExitError: If the exit status is not in ok_codes.
        """
        ...

    def tool_available(self, command: str) -> bool:
        """Check whether an executable can be found on PATH."""
        ...
