"""Revision control backend port interface.

Defines the capability set every supported backend implements. The metadata
pipeline and the snapshot manager depend only on this protocol.
"""

from pathlib import Path
from typing import Protocol

from ghostvcs.domain.entities import (
    BackendKind,
    CreateSnapshotOptions,
    DiffResult,
    HistoryEntry,
    RepoMetadata,
    RevisionControlCapabilities,
    Snapshot,
)
from ghostvcs.ports.progress import ProgressCallback


class RevisionControlBackend(Protocol):
    """Protocol for revision control operations (Git, Darcs)."""

    @property
    def kind(self) -> BackendKind: ...

    @property
    def root(self) -> Path: ...

    @property
    def capabilities(self) -> RevisionControlCapabilities: ...

    def current_revision(self) -> str | None:
        """Get the current commit SHA or latest patch hash.

        Returns:
            Identifier, or None if the repository has no history yet.

        Raises:
            ProcessError: If the backend command fails.
        """
        ...

    def current_branch(self) -> str | None:
        """Get the current branch name (None when detached or unnamed).

        Raises:
            ProcessError: If the backend command fails.
        """
        ...

    def remote_url(self) -> str | None:
        """Get the URL of the default remote.

        Raises:
            ProcessError: If the backend command fails.
        """
        ...

    def collect_metadata(self) -> RepoMetadata:
        """Run the revision, branch and remote queries.

        A failure in one query yields None for that field only.
        """
        ...

    def recent_history(self, limit: int) -> list[HistoryEntry]:
        """List the most recent history records, newest first.

        Unparsable records are skipped.

        Raises:
            ProcessError: If the backend command fails.
        """
        ...

    def local_branches(self) -> list[str]:
        """List local branches with the default branch first.

        Raises:
            ProcessError: If the backend command fails.
        """
        ...

    def workspace_diff(self) -> str:
        """Diff of uncommitted changes, including untracked files.

        Raises:
            ProcessError: If the backend command fails.
        """
        ...

    def diff_to_remote(self) -> DiffResult:
        """Diff the working tree against the closest point shared with a remote.

        Raises:
            NoRemoteError: If no remote is configured.
            NoCommonAncestorError: If no shared history point exists.
            ProcessError: If a backend command fails.
        """
        ...

    def create_snapshot(
        self, options: CreateSnapshotOptions, progress: ProgressCallback | None = None
    ) -> Snapshot:
        """Capture the working tree without touching the user's staging state.

        Args:
            options: Repository path, message and scope.
            progress: Optional callback for staging or copy steps.

        Raises:
            PathOutsideRepositoryError: If a requested path escapes the root.
            MissingToolError: If the backend CLI is not installed.
            ProcessError: If a backend command fails.
            OSError: If snapshot storage cannot be written.
        """
        ...

    def restore_snapshot(
        self, snapshot: Snapshot, progress: ProgressCallback | None = None
    ) -> None:
        """Write the snapshot's captured paths back onto the working tree.

        Raises:
            ObjectNotFoundError: If the snapshot no longer resolves.
            MissingToolError: If the backend CLI is not installed.
            ProcessError: If a backend command fails.
            OSError: If working-tree files cannot be written.
        """
        ...

    def restore_to_commit(self, commit_id: str) -> None:
        """Write every path of an existing history object onto the working tree.

        Raises:
            UnsupportedBackendError: If the backend cannot address history objects.
            ObjectNotFoundError: If the identifier does not resolve.
            ProcessError: If a backend command fails.
        """
        ...


class BackendProvider(Protocol):
    """Protocol for obtaining the backend that governs a directory."""

    def for_path(self, path: Path) -> RevisionControlBackend | None:
        """Detect the repository at or above ``path`` and build its backend.

        Returns:
            Backend instance, or None if no supported repository is found.
        """
        ...
