"""Unit tests for SnapshotManager preconditions, locking and error normalization."""

import threading
import time
from pathlib import Path
from unittest.mock import Mock

import pytest

from ghostvcs.core.snapshots.snapshot_manager import SnapshotManager, _lock_for_root, _root_locks
from ghostvcs.domain.entities import (
    BackendKind,
    CreateSnapshotOptions,
    RevisionControlCapabilities,
    Snapshot,
)
from ghostvcs.domain.exceptions import (
    BackendMismatchError,
    MissingToolError,
    NotARepositoryError,
    ObjectNotFoundError,
    PathOutsideRepositoryError,
    ProcessExitError,
    SnapshotOperationError,
    UnsupportedBackendError,
)


@pytest.fixture
def git_root(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    (root / ".git").mkdir(parents=True)
    return root.resolve()


def make_backend(root: Path, kind: BackendKind = BackendKind.GIT, snapshots: bool = True) -> Mock:
    backend = Mock()
    backend.kind = kind
    backend.root = root
    backend.capabilities = RevisionControlCapabilities(
        supports_diffs=True, supports_snapshots=snapshots
    )
    backend.create_snapshot.side_effect = lambda options, progress=None: Snapshot(id="ghost", kind=kind)
    return backend


class TestPreconditions:
    def test_no_backend(self, tmp_path: Path):
        with pytest.raises(NotARepositoryError):
            SnapshotManager(None).create_snapshot(CreateSnapshotOptions(repo_path=tmp_path))

    def test_backend_without_snapshot_support(self, git_root: Path):
        backend = make_backend(git_root, snapshots=False)

        with pytest.raises(UnsupportedBackendError):
            SnapshotManager(backend).create_snapshot(CreateSnapshotOptions(repo_path=git_root))
        backend.create_snapshot.assert_not_called()

    def test_restore_without_backend(self, git_root: Path):
        with pytest.raises(NotARepositoryError):
            SnapshotManager(None).restore_snapshot(git_root, Snapshot(id="x", kind=BackendKind.GIT))


class TestCreate:
    def test_delegates_to_backend(self, git_root: Path):
        backend = make_backend(git_root)
        options = CreateSnapshotOptions(repo_path=git_root, message="before edit")

        snapshot = SnapshotManager(backend).create_snapshot(options)

        assert snapshot.id == "ghost"
        backend.create_snapshot.assert_called_once_with(options, progress=None)

    def test_process_error_is_normalized(self, git_root: Path):
        backend = make_backend(git_root)
        cause = ProcessExitError("git write-tree", git_root, 128, "fatal")
        backend.create_snapshot.side_effect = cause

        with pytest.raises(SnapshotOperationError) as exc_info:
            SnapshotManager(backend).create_snapshot(CreateSnapshotOptions(repo_path=git_root))

        assert exc_info.value.cause is cause
        assert exc_info.value.__cause__ is cause
        assert exc_info.value.kind is BackendKind.GIT

    def test_os_error_is_normalized(self, git_root: Path):
        backend = make_backend(git_root, kind=BackendKind.DARCS)
        backend.create_snapshot.side_effect = PermissionError("denied")

        with pytest.raises(SnapshotOperationError) as exc_info:
            SnapshotManager(backend).create_snapshot(CreateSnapshotOptions(repo_path=git_root))
        assert exc_info.value.kind is BackendKind.DARCS

    def test_snapshot_errors_pass_through(self, git_root: Path):
        backend = make_backend(git_root)
        backend.create_snapshot.side_effect = MissingToolError("git")

        with pytest.raises(MissingToolError):
            SnapshotManager(backend).create_snapshot(CreateSnapshotOptions(repo_path=git_root))


class TestRestore:
    def test_mismatched_kind_performs_no_restore(self, git_root: Path):
        backend = make_backend(git_root)
        snapshot = Snapshot(id="ghostvcs-darcs-1", kind=BackendKind.DARCS)

        with pytest.raises(BackendMismatchError) as exc_info:
            SnapshotManager(backend).restore_snapshot(git_root, snapshot)

        assert exc_info.value.expected is BackendKind.GIT
        assert exc_info.value.actual is BackendKind.DARCS
        backend.restore_snapshot.assert_not_called()

    def test_root_detected_as_other_kind(self, tmp_path: Path):
        darcs_root = tmp_path / "darcs"
        (darcs_root / "_darcs").mkdir(parents=True)
        backend = make_backend(darcs_root.resolve(), kind=BackendKind.GIT)

        with pytest.raises(BackendMismatchError):
            SnapshotManager(backend).restore_snapshot(
                darcs_root, Snapshot(id="abc", kind=BackendKind.GIT)
            )
        backend.restore_snapshot.assert_not_called()

    def test_root_of_another_repository(self, git_root: Path, tmp_path: Path):
        other = tmp_path / "other"
        (other / ".git").mkdir(parents=True)
        backend = make_backend(git_root)

        with pytest.raises(PathOutsideRepositoryError):
            SnapshotManager(backend).restore_snapshot(other, Snapshot(id="abc", kind=BackendKind.GIT))
        backend.restore_snapshot.assert_not_called()

    def test_delegates_from_subdirectory(self, git_root: Path):
        (git_root / "src").mkdir()
        backend = make_backend(git_root)
        snapshot = Snapshot(id="abc", kind=BackendKind.GIT)

        SnapshotManager(backend).restore_snapshot(git_root / "src", snapshot)

        backend.restore_snapshot.assert_called_once_with(snapshot, progress=None)

    def test_missing_object_passes_through(self, git_root: Path):
        backend = make_backend(git_root)
        backend.restore_snapshot.side_effect = ObjectNotFoundError("abc")

        with pytest.raises(ObjectNotFoundError):
            SnapshotManager(backend).restore_snapshot(git_root, Snapshot(id="abc", kind=BackendKind.GIT))

    def test_restore_to_commit(self, git_root: Path):
        backend = make_backend(git_root)

        SnapshotManager(backend).restore_to_commit(git_root, "abc123")

        backend.restore_to_commit.assert_called_once_with("abc123")


class TestSerialization:
    def test_same_root_shares_lock(self, git_root: Path):
        assert _lock_for_root(git_root) is _lock_for_root(git_root / "src" / "..")
        assert _lock_for_root(git_root) is not _lock_for_root(git_root.parent)

    def test_registry_keeps_one_lock_per_root(self, git_root: Path):
        first = _lock_for_root(git_root)
        size = len(_root_locks)

        _lock_for_root(git_root / "src" / "..")

        assert len(_root_locks) == size
        assert _root_locks[git_root.resolve()] is first

    def test_overlapping_calls_do_not_interleave(self, git_root: Path):
        active = 0
        overlap = False
        guard = threading.Lock()

        def slow_create(options, progress=None):
            nonlocal active, overlap
            with guard:
                active += 1
                overlap = overlap or active > 1
            time.sleep(0.05)
            with guard:
                active -= 1
            return Snapshot(id="ghost", kind=BackendKind.GIT)

        backend = make_backend(git_root)
        backend.create_snapshot.side_effect = slow_create
        manager = SnapshotManager(backend)
        options = CreateSnapshotOptions(repo_path=git_root)

        threads = [threading.Thread(target=manager.create_snapshot, args=(options,)) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert backend.create_snapshot.call_count == 4
        assert not overlap
