"""Integration tests for ghost-commit snapshots in real git repositories.

Snapshots must never touch the user's index, branches or other refs, and
restoring must only rewrite the paths the snapshot captured.
"""

import subprocess
from pathlib import Path

import pytest

from ghostvcs.adapters.git_cmd.git_adapter import GitBackend
from ghostvcs.adapters.process.subprocess_runner import SubprocessRunner
from ghostvcs.core.snapshots.snapshot_manager import SnapshotManager
from ghostvcs.domain.entities import BackendKind, CreateSnapshotOptions, Snapshot
from ghostvcs.domain.exceptions import ObjectNotFoundError, PathOutsideRepositoryError
from tests.conftest import RecordingProgress, git_add_and_commit, init_git_repo, run_git


@pytest.fixture
def manager(git_repo: Path) -> SnapshotManager:
    return SnapshotManager(GitBackend(git_repo, SubprocessRunner(default_timeout=10.0)))


def refs_of(repo: Path) -> str:
    return run_git(repo, "for-each-ref", "--format=%(refname) %(objectname)")


def show(repo: Path, commit: str, path: str) -> str:
    return run_git(repo, "show", f"{commit}:{path}")


def test_snapshot_round_trip(git_repo: Path, manager: SnapshotManager):
    (git_repo / "f.txt").write_text("edited\n")
    snapshot = manager.create_snapshot(CreateSnapshotOptions(repo_path=git_repo))

    (git_repo / "f.txt").write_text("later\n")
    manager.restore_snapshot(git_repo, snapshot)

    assert (git_repo / "f.txt").read_text() == "edited\n"
    assert snapshot.kind is BackendKind.GIT
    assert snapshot.parent == run_git(git_repo, "rev-parse", "HEAD").strip()


def test_snapshot_leaves_index_and_refs_alone(git_repo: Path, manager: SnapshotManager):
    (git_repo / "f.txt").write_text("staged\n")
    run_git(git_repo, "add", "f.txt")
    (git_repo / "f.txt").write_text("worktree\n")
    (git_repo / "untracked.txt").write_text("u\n")
    cached_before = run_git(git_repo, "diff", "--cached")
    status_before = run_git(git_repo, "status", "--porcelain")
    refs_before = refs_of(git_repo)

    snapshot = manager.create_snapshot(CreateSnapshotOptions(repo_path=git_repo))

    assert run_git(git_repo, "diff", "--cached") == cached_before
    assert run_git(git_repo, "status", "--porcelain") == status_before
    assert refs_of(git_repo) == refs_before
    assert show(git_repo, snapshot.id, "f.txt") == "worktree\n"
    assert show(git_repo, snapshot.id, "untracked.txt") == "u\n"


def test_ghost_commit_uses_synthetic_identity(git_repo: Path, manager: SnapshotManager):
    options = CreateSnapshotOptions(repo_path=git_repo, message="before refactor")
    snapshot = manager.create_snapshot(options)

    author = run_git(git_repo, "log", "-1", "--format=%an <%ae>|%s", snapshot.id).strip()

    assert author == "ghostvcs snapshot <snapshot@ghostvcs.local>|before refactor"


def test_restore_keeps_files_created_later(git_repo: Path, manager: SnapshotManager):
    snapshot = manager.create_snapshot(CreateSnapshotOptions(repo_path=git_repo))
    (git_repo / "created_after.txt").write_text("keep me\n")

    manager.restore_snapshot(git_repo, snapshot)

    assert (git_repo / "created_after.txt").read_text() == "keep me\n"


def test_restore_does_not_touch_index(git_repo: Path, manager: SnapshotManager):
    (git_repo / "f.txt").write_text("snapshotted\n")
    snapshot = manager.create_snapshot(CreateSnapshotOptions(repo_path=git_repo))
    cached_before = run_git(git_repo, "diff", "--cached")

    manager.restore_snapshot(git_repo, snapshot)

    assert run_git(git_repo, "diff", "--cached") == cached_before
    assert run_git(git_repo, "rev-parse", "HEAD").strip() == snapshot.parent


class TestScopedSnapshots:
    def test_capture_only_requested_paths(self, git_repo: Path, manager: SnapshotManager):
        (git_repo / "f.txt").write_text("outside scope\n")
        (git_repo / "src" / "app.py").write_text("print('inside')\n")

        snapshot = manager.create_snapshot(
            CreateSnapshotOptions(repo_path=git_repo, paths=(git_repo / "src",))
        )

        assert snapshot.paths == (Path("src"),)
        assert show(git_repo, snapshot.id, "src/app.py") == "print('inside')\n"
        assert show(git_repo, snapshot.id, "f.txt") == "original\n"

    def test_restore_only_rewrites_scope(self, git_repo: Path, manager: SnapshotManager):
        (git_repo / "src" / "app.py").write_text("print('inside')\n")
        snapshot = manager.create_snapshot(
            CreateSnapshotOptions(repo_path=git_repo, paths=(Path("src"),))
        )
        (git_repo / "src" / "app.py").write_text("print('changed')\n")
        (git_repo / "f.txt").write_text("unrelated edit\n")

        manager.restore_snapshot(git_repo, snapshot)

        assert (git_repo / "src" / "app.py").read_text() == "print('inside')\n"
        assert (git_repo / "f.txt").read_text() == "unrelated edit\n"

    def test_two_scopes_are_independent(self, git_repo: Path, manager: SnapshotManager):
        (git_repo / "f.txt").write_text("first\n")
        (git_repo / "src" / "app.py").write_text("print('first')\n")
        top = manager.create_snapshot(
            CreateSnapshotOptions(repo_path=git_repo, paths=(Path("f.txt"),))
        )
        src = manager.create_snapshot(
            CreateSnapshotOptions(repo_path=git_repo, paths=(Path("src"),))
        )
        (git_repo / "f.txt").write_text("second\n")
        (git_repo / "src" / "app.py").write_text("print('second')\n")

        manager.restore_snapshot(git_repo, top)
        assert (git_repo / "f.txt").read_text() == "first\n"
        assert (git_repo / "src" / "app.py").read_text() == "print('second')\n"

        manager.restore_snapshot(git_repo, src)
        assert (git_repo / "src" / "app.py").read_text() == "print('first')\n"

    def test_subdirectory_repo_path_limits_capture(self, git_repo: Path, manager: SnapshotManager):
        (git_repo / "f.txt").write_text("outside subtree\n")
        (git_repo / "src" / "app.py").write_text("print('inside')\n")

        snapshot = manager.create_snapshot(CreateSnapshotOptions(repo_path=git_repo / "src"))

        assert snapshot.paths == (Path("src"),)
        assert show(git_repo, snapshot.id, "src/app.py") == "print('inside')\n"
        assert show(git_repo, snapshot.id, "f.txt") == "original\n"

    def test_path_not_created_yet(self, git_repo: Path, manager: SnapshotManager):
        (git_repo / "src" / "app.py").write_text("print('inside')\n")

        snapshot = manager.create_snapshot(
            CreateSnapshotOptions(repo_path=git_repo, paths=(Path("new_module.py"), Path("src")))
        )
        (git_repo / "new_module.py").write_text("created by the edit\n")
        (git_repo / "src" / "app.py").write_text("print('changed')\n")
        manager.restore_snapshot(git_repo, snapshot)

        assert show(git_repo, snapshot.id, "src/app.py") == "print('inside')\n"
        assert (git_repo / "src" / "app.py").read_text() == "print('inside')\n"
        assert (git_repo / "new_module.py").read_text() == "created by the edit\n"

    def test_only_missing_paths(self, git_repo: Path, manager: SnapshotManager):
        head_tree = run_git(git_repo, "rev-parse", "HEAD^{tree}").strip()

        snapshot = manager.create_snapshot(
            CreateSnapshotOptions(repo_path=git_repo, paths=(Path("does-not-exist"),))
        )

        assert run_git(git_repo, "rev-parse", f"{snapshot.id}^{{tree}}").strip() == head_tree

    def test_deleted_tracked_file_is_captured_as_removed(
        self, git_repo: Path, manager: SnapshotManager
    ):
        (git_repo / "f.txt").unlink()

        snapshot = manager.create_snapshot(
            CreateSnapshotOptions(repo_path=git_repo, paths=(Path("f.txt"),))
        )

        with pytest.raises(subprocess.CalledProcessError):
            show(git_repo, snapshot.id, "f.txt")

    def test_path_outside_repository(self, git_repo: Path, manager: SnapshotManager, tmp_path: Path):
        with pytest.raises(PathOutsideRepositoryError):
            manager.create_snapshot(
                CreateSnapshotOptions(repo_path=git_repo, paths=(tmp_path / "elsewhere",))
            )


def test_force_include_captures_ignored_file(git_repo: Path, manager: SnapshotManager):
    (git_repo / ".gitignore").write_text("*.log\n")
    git_add_and_commit(git_repo, message="Ignore logs")
    (git_repo / "debug.log").write_text("trace\n")

    plain = manager.create_snapshot(CreateSnapshotOptions(repo_path=git_repo))
    forced = manager.create_snapshot(
        CreateSnapshotOptions(repo_path=git_repo, force_include=("*.log",))
    )

    with pytest.raises(subprocess.CalledProcessError):
        show(git_repo, plain.id, "debug.log")
    assert show(git_repo, forced.id, "debug.log") == "trace\n"


def test_snapshot_in_repository_without_commits(tmp_path: Path):
    repo = tmp_path / "fresh"
    repo.mkdir()
    init_git_repo(repo)
    (repo / "draft.txt").write_text("draft\n")
    manager = SnapshotManager(GitBackend(repo, SubprocessRunner(default_timeout=10.0)))

    snapshot = manager.create_snapshot(CreateSnapshotOptions(repo_path=repo))
    (repo / "draft.txt").write_text("overwritten\n")
    manager.restore_snapshot(repo, snapshot)

    assert snapshot.parent is None
    assert (repo / "draft.txt").read_text() == "draft\n"
    assert refs_of(repo) == ""


def test_restore_missing_snapshot(git_repo: Path, manager: SnapshotManager):
    with pytest.raises(ObjectNotFoundError):
        manager.restore_snapshot(git_repo, Snapshot(id="0" * 40, kind=BackendKind.GIT))


def test_restore_to_commit(git_repo: Path, manager: SnapshotManager):
    first = run_git(git_repo, "rev-parse", "HEAD").strip()
    (git_repo / "f.txt").write_text("second version\n")
    second = git_add_and_commit(git_repo, message="Second")

    manager.restore_to_commit(git_repo, first)

    assert (git_repo / "f.txt").read_text() == "original\n"
    assert run_git(git_repo, "rev-parse", "HEAD").strip() == second


def test_progress_reports_git_steps(git_repo: Path, manager: SnapshotManager):
    recorder = RecordingProgress()

    snapshot = manager.create_snapshot(CreateSnapshotOptions(repo_path=git_repo), recorder)
    manager.restore_snapshot(git_repo, snapshot, recorder)

    assert [e for e in recorder.events if e[0] == "start"] == [
        ("start", 3, "Creating snapshot"),
        ("start", 2, "Restoring snapshot"),
    ]
    assert ("progress", 3, "recorded ghost commit") in recorder.events
    assert recorder.events[-1] == ("complete",)
