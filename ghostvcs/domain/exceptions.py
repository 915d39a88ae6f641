"""Domain exceptions for ghostvcs.

Every failure mode of detection, subprocess execution, remote diffing and
snapshot handling has its own class so callers can branch on the kind.
Layers add context by raising a new error ``from`` the original, never by
replacing the kind. These exceptions should be caught at the application
boundary (CLI, UI) and converted to user-facing messages.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ghostvcs.domain.entities import BackendKind


class GhostVcsError(Exception):
    """Base exception for all ghostvcs errors.

    Attributes:
        message: User-facing error message.
        hint: Optional actionable suggestion.
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class DetectionFailedError(GhostVcsError):
    """No supported backend governs the directory or any of its parents."""

    def __init__(self, path: Path) -> None:
        super().__init__(
            f"No supported revision control system found at or above {path}",
            hint="Run inside a Git or Darcs checkout",
        )
        self.path = path


# =============================================================================
# Process errors
# =============================================================================


def format_command(command: str, args: Sequence[str]) -> str:
    """Render a command line for error messages."""
    return " ".join([command, *args])


class ProcessError(GhostVcsError):
    """An external command could not produce a usable result.

    Attributes:
        command: The rendered command line.
        cwd: Working directory the command ran in.
    """

    def __init__(self, message: str, command: str, cwd: Path) -> None:
        super().__init__(message)
        self.command = command
        self.cwd = cwd


class ProcessTimeoutError(ProcessError):
    """The command exceeded its time bound and was terminated."""

    def __init__(self, command: str, cwd: Path, timeout: float) -> None:
        super().__init__(f"`{command}` timed out after {timeout:g}s", command, cwd)
        self.timeout = timeout


class ProcessSpawnError(ProcessError):
    """The executable could not be launched (missing, not permitted)."""

    def __init__(self, command: str, cwd: Path, reason: str) -> None:
        super().__init__(f"Failed to launch `{command}`: {reason}", command, cwd)
        self.reason = reason


class ProcessExitError(ProcessError):
    """The command ran but exited with an unaccepted status."""

    def __init__(self, command: str, cwd: Path, returncode: int, stderr: str) -> None:
        stderr = stderr.strip()
        detail = stderr if stderr else "(no error output)"
        super().__init__(
            f"`{command}` failed with exit code {returncode}: {detail}", command, cwd
        )
        self.returncode = returncode
        self.stderr = stderr


# =============================================================================
# Remote diff errors
# =============================================================================


class NoRemoteError(GhostVcsError):
    """The repository has no configured remote to diff against."""

    def __init__(self, root: Path) -> None:
        super().__init__(
            f"Repository at {root} has no remotes configured",
            hint="Add a remote before comparing against it",
        )
        self.root = root


class NoCommonAncestorError(GhostVcsError):
    """No local history point is also present on a remote branch."""

    def __init__(self, root: Path, branches: Sequence[str] = ()) -> None:
        tried = ", ".join(branches) if branches else "none"
        super().__init__(
            f"No history shared with a remote found in {root} (branches tried: {tried})",
            hint="Fetch from the remote and try again",
        )
        self.root = root
        self.branches = tuple(branches)


# =============================================================================
# Snapshot errors
# =============================================================================


class SnapshotError(GhostVcsError):
    """Base class for snapshot create/restore failures."""


class NotARepositoryError(SnapshotError):
    """The path is not managed by a supported revision control system."""

    def __init__(self, path: Path) -> None:
        super().__init__(
            f"{path} is not managed by a supported revision control system"
        )
        self.path = path


class UnsupportedBackendError(SnapshotError):
    """The detected backend does not support snapshot operations."""

    def __init__(self, kind: BackendKind) -> None:
        super().__init__(
            f"{kind.display_name} repositories are not supported for snapshot operations"
        )
        self.kind = kind


class MissingToolError(SnapshotError):
    """The backend's command-line tool is not installed."""

    def __init__(self, tool: str) -> None:
        super().__init__(
            f"Missing required tooling: {tool}",
            hint=f"Install `{tool}` and make sure it is on PATH",
        )
        self.tool = tool


class PathOutsideRepositoryError(SnapshotError):
    """A requested snapshot path escapes the repository root."""

    def __init__(self, path: Path, root: Path) -> None:
        super().__init__(f"{path} is outside the repository rooted at {root}")
        self.path = path
        self.root = root


class BackendMismatchError(SnapshotError):
    """A snapshot was restored against a repository of a different kind."""

    def __init__(self, expected: BackendKind, actual: BackendKind) -> None:
        super().__init__(
            f"Snapshot of a {actual.display_name} repository cannot be restored "
            f"in a {expected.display_name} repository"
        )
        self.expected = expected
        self.actual = actual


class ObjectNotFoundError(SnapshotError):
    """The snapshot identifier no longer resolves (e.g. garbage-collected)."""

    def __init__(self, snapshot_id: str) -> None:
        super().__init__(f"Snapshot {snapshot_id} no longer exists")
        self.snapshot_id = snapshot_id


class InvalidSnapshotIdError(SnapshotError):
    """The identifier cannot name a snapshot of this backend."""

    def __init__(self, snapshot_id: str) -> None:
        super().__init__(
            f"{snapshot_id!r} is not a snapshot identifier",
            hint="Pass the identifier printed by `ghostvcs snapshot`",
        )
        self.snapshot_id = snapshot_id


class SnapshotOperationError(SnapshotError):
    """A backend step failed while creating or restoring a snapshot.

    Attributes:
        kind: Backend that was running the operation.
        cause: The original ProcessError or OSError.
    """

    def __init__(self, kind: BackendKind, cause: Exception) -> None:
        super().__init__(f"{kind.display_name} snapshot error: {cause}")
        self.kind = kind
        self.cause = cause
