"""Snapshot manager: create and restore ghost snapshots.

Validates preconditions before any command runs, serializes overlapping
operations on the same repository root, and converts backend failures into
the SnapshotError hierarchy so callers need no backend-specific handling.
"""

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from ghostvcs.core.detection import detect_revision_control
from ghostvcs.domain.entities import BackendKind, CreateSnapshotOptions, Snapshot
from ghostvcs.domain.exceptions import (
    BackendMismatchError,
    NotARepositoryError,
    PathOutsideRepositoryError,
    ProcessError,
    SnapshotOperationError,
    UnsupportedBackendError,
)
from ghostvcs.ports.progress import ProgressCallback
from ghostvcs.ports.vcs import RevisionControlBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")

_registry_lock = threading.Lock()
_root_locks: dict[Path, threading.Lock] = {}


def _lock_for_root(root: Path) -> threading.Lock:
    """Process-wide lock for one resolved repository root.

    Entries are never removed, so the registry grows by one lock per
    distinct root seen. Hosts that visit many repositories over a long
    lifetime keep all of them.
    """
    key = root.resolve()
    with _registry_lock:
        lock = _root_locks.get(key)
        if lock is None:
            lock = _root_locks[key] = threading.Lock()
        return lock


@contextmanager
def _serialized(root: Path) -> Iterator[None]:
    lock = _lock_for_root(root)
    if not lock.acquire(blocking=False):
        logger.debug("Waiting for snapshot operation in progress at %s", root)
        lock.acquire()
    try:
        yield
    finally:
        lock.release()


class SnapshotManager:
    """Creates and restores snapshots through the active backend.

    Holds nothing but the backend reference, so one instance can be reused
    across calls without reset. Operations on the same root are serialized
    through a module-level lock registry that is never pruned.
    """

    def __init__(self, backend: RevisionControlBackend | None) -> None:
        """Initialize manager.

        Args:
            backend: Backend for the repository, or None when no repository
                was detected.
        """
        self._backend = backend

    def _require_backend(self, path: Path) -> RevisionControlBackend:
        if self._backend is None:
            raise NotARepositoryError(path)
        if not self._backend.capabilities.supports_snapshots:
            raise UnsupportedBackendError(self._backend.kind)
        return self._backend

    def _run(self, backend: RevisionControlBackend, operation: Callable[[], T]) -> T:
        """Run a backend operation under the root lock, normalizing failures.

        Raises:
            SnapshotOperationError: If a command or filesystem step failed.
            SnapshotError: Backend precondition failures pass through unchanged.
        """
        with _serialized(backend.root):
            try:
                return operation()
            except (ProcessError, OSError) as e:
                logger.error("%s snapshot operation failed: %s", backend.kind.display_name, e)
                raise SnapshotOperationError(backend.kind, e) from e

    def create_snapshot(
        self, options: CreateSnapshotOptions, progress: ProgressCallback | None = None
    ) -> Snapshot:
        """Capture the working tree of ``options.repo_path``.

        Args:
            options: Snapshot options (repository path, message, scope).
            progress: Optional callback for staging or copy steps.

        Returns:
            Snapshot handle for restore_snapshot.

        Raises:
            NotARepositoryError: If no backend is active.
            UnsupportedBackendError: If the backend cannot take snapshots.
            PathOutsideRepositoryError: If a requested path escapes the root.
            MissingToolError: If the backend CLI is not installed.
            SnapshotOperationError: If a backend step failed.
        """
        backend = self._require_backend(options.repo_path)
        snapshot = self._run(backend, lambda: backend.create_snapshot(options, progress=progress))
        logger.debug("Snapshot %s created for %s", snapshot.id, backend.root)
        return snapshot

    def _require_restorable(self, root: Path, kind: BackendKind) -> RevisionControlBackend:
        """Check that ``root`` is the backend's repository and of ``kind``."""
        backend = self._require_backend(root)
        detected = detect_revision_control(root)
        if detected is None:
            raise NotARepositoryError(root)
        if detected.kind is not kind:
            raise BackendMismatchError(expected=detected.kind, actual=kind)
        if detected.root != backend.root:
            raise PathOutsideRepositoryError(root, backend.root)
        if backend.kind is not kind:
            raise BackendMismatchError(expected=backend.kind, actual=kind)
        return backend

    def restore_snapshot(
        self, root: Path, snapshot: Snapshot, progress: ProgressCallback | None = None
    ) -> None:
        """Write a snapshot's captured paths back onto the working tree at ``root``.

        Raises:
            NotARepositoryError: If no backend is active or ``root`` is not a repository.
            UnsupportedBackendError: If the backend cannot restore snapshots.
            BackendMismatchError: If ``root`` is not of the snapshot's kind.
            ObjectNotFoundError: If the snapshot no longer resolves.
            SnapshotOperationError: If a backend step failed.
        """
        backend = self._require_restorable(root, snapshot.kind)
        self._run(backend, lambda: backend.restore_snapshot(snapshot, progress=progress))

    def restore_to_commit(self, root: Path, commit_id: str) -> None:
        """Write every path of an existing commit onto the working tree at ``root``.

        Raises:
            NotARepositoryError: If no backend is active or ``root`` is not a repository.
            UnsupportedBackendError: If the backend cannot address commits.
            ObjectNotFoundError: If the commit does not exist.
            SnapshotOperationError: If a backend step failed.
        """
        kind = self._require_backend(root).kind
        backend = self._require_restorable(root, kind)
        self._run(backend, lambda: backend.restore_to_commit(commit_id))
