"""Metadata pipeline for status panels, branch pickers and history views.

Every entry point takes the target directory explicitly and detects its
backend fresh, so nothing is cached between calls.
"""

import logging
from pathlib import Path

from ghostvcs.domain.config import GhostConfig
from ghostvcs.domain.entities import BackendKind, DiffResult, HistoryEntry, RepoMetadata
from ghostvcs.domain.exceptions import DetectionFailedError, ProcessError
from ghostvcs.ports.vcs import BackendProvider, RevisionControlBackend

logger = logging.getLogger(__name__)


class MetadataPipeline:
    """Read-only queries against whichever backend governs a directory.

    Metadata and branch listings degrade to empty values on failure; remote
    diffs surface their errors unchanged so callers can tell them apart.
    """

    def __init__(self, config: GhostConfig, backend_factory: BackendProvider) -> None:
        """Initialize pipeline.

        Args:
            config: Configuration (history limit).
            backend_factory: Builds the backend for a directory.
        """
        self._config = config
        self._backend_factory = backend_factory

    def _backend(self, root: Path) -> RevisionControlBackend | None:
        return self._backend_factory.for_path(root)

    def collect_git_info(self, root: Path) -> RepoMetadata | None:
        """Collect commit, branch and remote URL concurrently.

        Returns:
            RepoMetadata whose fields are None where their query failed, or
            None if no repository governs ``root``.
        """
        backend = self._backend(root)
        if backend is None:
            return None
        return backend.collect_metadata()

    def recent_history(self, root: Path, limit: int | None = None) -> list[HistoryEntry]:
        """List recent commits or patches, newest first.

        Args:
            root: Directory inside the repository.
            limit: Number of entries. None = configured history limit.

        Returns:
            History entries, or [] outside a repository or if listing fails.
        """
        backend = self._backend(root)
        if backend is None:
            return []
        count = limit if limit is not None else self._config.history.limit
        try:
            return backend.recent_history(count)
        except ProcessError as e:
            logger.warning("Failed to list history in %s: %s", backend.root, e)
            return []

    def git_diff_to_remote(self, root: Path) -> DiffResult:
        """Diff the working tree against the closest point shared with a remote.

        Raises:
            DetectionFailedError: If no repository governs ``root``.
            NoRemoteError: If no remote is configured.
            NoCommonAncestorError: If no shared history point exists.
            ProcessError: If a backend command fails.
        """
        backend = self._backend(root)
        if backend is None:
            raise DetectionFailedError(root)
        return backend.diff_to_remote()

    def repo_diff(self, root: Path) -> tuple[BackendKind | None, str]:
        """Uncommitted changes of the repository governing ``root``.

        Returns:
            (backend kind, diff text), or (None, "") outside a repository.

        Raises:
            ProcessError: If a backend command fails.
        """
        backend = self._backend(root)
        if backend is None:
            return None, ""
        return backend.kind, backend.workspace_diff()

    def local_branches(self, root: Path) -> list[str]:
        """Local branches with the default branch first ([] on failure)."""
        backend = self._backend(root)
        if backend is None:
            return []
        try:
            return backend.local_branches()
        except ProcessError as e:
            logger.warning("Failed to list branches in %s: %s", backend.root, e)
            return []

    def current_branch_name(self, root: Path) -> str | None:
        backend = self._backend(root)
        if backend is None:
            return None
        try:
            return backend.current_branch()
        except ProcessError as e:
            logger.debug("Failed to read current branch in %s: %s", backend.root, e)
            return None
