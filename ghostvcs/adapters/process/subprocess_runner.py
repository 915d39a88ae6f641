"""Process runner implementing the ProcessRunner protocol with subprocess."""

import logging
import os
import shutil
import signal
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from ghostvcs.domain.exceptions import (
    ProcessExitError,
    ProcessSpawnError,
    ProcessTimeoutError,
    format_command,
)
from ghostvcs.ports.process import ProcessOutput

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0

# Grace period for reaping a killed child before giving up on its pipes
_KILL_REAP_TIMEOUT = 2.0

_IS_POSIX = os.name == "posix"


def _decode(data: bytes | None) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


class SubprocessRunner:
    """Runs external commands with captured output and a hard timeout.

    No retries are attempted; callers decide whether a failure is fatal.
    """

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize the runner.

        Args:
            default_timeout: Timeout in seconds applied when a call passes none.

        Raises:
            ValueError: If default_timeout is not positive.
        """
        if default_timeout <= 0:
            raise ValueError(f"default_timeout must be positive, got {default_timeout}")
        self.default_timeout = default_timeout

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
            timeout: Seconds before the command is killed. None = default.
            env: Variables overlaid on the inherited environment.
            ok_codes: Exit statuses treated as success.

        Returns:
            ProcessOutput for a successful run.

        Raises:
            ProcessTimeoutError: If the timeout expired (the child is killed).
            ProcessSpawnError: If the executable could not be launched.
            ProcessExitError: If the exit status is not in ok_codes.
        """
        limit = self.default_timeout if timeout is None else timeout
        rendered = format_command(command, args)
        full_env = None
        if env:
            full_env = {**os.environ, **env}

        logger.debug("Running %s in %s (timeout %ss)", rendered, cwd, limit)
        try:
            process = subprocess.Popen(
                [command, *args],
                cwd=cwd,
                env=full_env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                # Own session so a timeout can take down grandchildren too
                start_new_session=_IS_POSIX,
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
            raise ProcessSpawnError(rendered, cwd, e.strerror or str(e)) from e
        except OSError as e:
            raise ProcessSpawnError(rendered, cwd, str(e)) from e

        try:
            stdout, stderr = process.communicate(timeout=limit)
        except subprocess.TimeoutExpired as e:
            self._terminate(process)
            logger.debug("Timed out after %ss: %s", limit, rendered)
            raise ProcessTimeoutError(rendered, cwd, limit) from e

        output = ProcessOutput(
            stdout=_decode(stdout),
            stderr=_decode(stderr),
            returncode=process.returncode,
        )
        if output.returncode not in ok_codes:
            logger.debug("Exit code %s from %s", output.returncode, rendered)
            raise ProcessExitError(rendered, cwd, output.returncode, output.stderr)
        return output

    def _terminate(self, process: subprocess.Popen) -> None:
        """Kill a timed-out child (and its process group) and reap it."""
        try:
            if _IS_POSIX:
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass
        try:
            process.communicate(timeout=_KILL_REAP_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.error("Process %s did not exit after SIGKILL", process.pid)

    def tool_available(self, command: str) -> bool:
        """Check whether an executable can be found on PATH."""
        return shutil.which(command) is not None
