"""Git backend implementing the RevisionControlBackend protocol using git commands."""

import concurrent.futures
import logging
import os
import tempfile
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path

from ghostvcs.domain.config import GhostConfig
from ghostvcs.domain.entities import (
    BackendKind,
    CreateSnapshotOptions,
    DiffResult,
    HistoryEntry,
    RepoMetadata,
    RevisionControlCapabilities,
    Snapshot,
)
from ghostvcs.domain.exceptions import (
    BackendMismatchError,
    MissingToolError,
    NoCommonAncestorError,
    NoRemoteError,
    ObjectNotFoundError,
)
from ghostvcs.ports.process import ProcessOutput, ProcessRunner
from ghostvcs.ports.progress import ProgressCallback
from ghostvcs.shared.concurrency import gather_optional
from ghostvcs.shared.progress import report_steps
from ghostvcs.shared.paths import relative_scope

logger = logging.getLogger(__name__)

# Unit separator between fields of a `git log` record
_FIELD_SEP = "\x1f"
_LOG_FORMAT = "--pretty=format:%H%x1f%ct%x1f%s"

# Fallback default branch names, in order of preference
_CONVENTIONAL_DEFAULTS = ("main", "master")

# Extra time allowed when joining concurrent metadata queries
_JOIN_GRACE = 1.0

# Upper bound on concurrent `git diff --no-index` calls for untracked files
_MAX_DIFF_WORKERS = 8

# Flags that keep diffs byte-for-byte (no external drivers or textconv filters)
_DIFF_FLAGS = ("--no-textconv", "--no-ext-diff")


def _parse_log_line(line: str) -> HistoryEntry | None:
    """Parse one `git log` record in `<sha> US <commit time> US <subject>` form.

    Args:
        line: A single line of log output.

    Returns:
        HistoryEntry, or None if the id is missing or the timestamp is not numeric.
    """
    parts = line.split(_FIELD_SEP)
    sha = parts[0].strip() if parts else ""
    timestamp = parts[1].strip() if len(parts) > 1 else ""
    subject = parts[2].strip() if len(parts) > 2 else ""
    if not sha or not timestamp.isdigit():
        return None
    return HistoryEntry(id=sha, timestamp=timestamp, subject=subject)


def _order_remotes(output: str) -> list[str]:
    """Split `git remote` output, moving origin to the front."""
    remotes = [line.strip() for line in output.splitlines() if line.strip()]
    if "origin" in remotes:
        remotes.remove("origin")
        remotes.insert(0, "origin")
    return remotes


def _split_nul(output: str) -> list[str]:
    return [item for item in output.split("\0") if item]


class GitBackend:
    """Git backend using subprocess calls to the git CLI.

    Every call runs with the repository root as working directory and is
    bounded by the configured process timeout.
    """

    def __init__(
        self,
        repo_root: Path,
        runner: ProcessRunner,
        config: GhostConfig | None = None,
    ) -> None:
        """Initialize Git backend.

        Args:
            repo_root: Absolute path to the repository root (from detection).
            runner: Process runner used for every git invocation.
            config: Configuration; defaults are used when omitted.
        """
        config = config or GhostConfig.default()
        self._root = repo_root.resolve()
        self._runner = runner
        self._git = config.process.git_binary
        self._timeout = config.process.timeout
        self._snapshot_config = config.snapshot

    @property
    def kind(self) -> BackendKind:
        return BackendKind.GIT

    @property
    def root(self) -> Path:
        return self._root

    @property
    def capabilities(self) -> RevisionControlCapabilities:
        return RevisionControlCapabilities.for_kind(BackendKind.GIT)

    def _run_git(
        self,
        args: Sequence[str],
        env: Mapping[str, str] | None = None,
        ok_codes: Sequence[int] = (0,),
    ) -> ProcessOutput:
        """Run a git command in the repository.

        Raises:
            ProcessError: If git cannot be launched, times out, or fails.
        """
        return self._runner.run(
            self._root,
            self._git,
            list(args),
            timeout=self._timeout,
            env=env,
            ok_codes=ok_codes,
        )

    def _ref_exists(self, ref: str) -> bool:
        result = self._run_git(["rev-parse", "--verify", "--quiet", ref], ok_codes=(0, 1))
        return result.returncode == 0

    def _require_git(self) -> None:
        if not self._runner.tool_available(self._git):
            raise MissingToolError(self._git)

    # =========================================================================
    # Metadata
    # =========================================================================

    def current_revision(self) -> str | None:
        """Get the SHA of HEAD, or None in a repository without commits."""
        result = self._run_git(["rev-parse", "--verify", "--quiet", "HEAD"], ok_codes=(0, 1))
        sha = result.stdout.strip()
        return sha if result.returncode == 0 and sha else None

    def current_branch(self) -> str | None:
        """Get the checked-out branch, or None on a detached HEAD."""
        result = self._run_git(["symbolic-ref", "--quiet", "--short", "HEAD"], ok_codes=(0, 1))
        branch = result.stdout.strip()
        if result.returncode != 0 or not branch or branch == "HEAD":
            return None
        return branch

    def remote_url(self) -> str | None:
        """Get the URL of the `origin` remote.

        Raises:
            ProcessExitError: If no `origin` remote is configured.
        """
        url = self._run_git(["remote", "get-url", "origin"]).stdout.strip()
        return url or None

    def collect_metadata(self) -> RepoMetadata:
        """Run the HEAD, branch and remote queries concurrently."""
        fields = gather_optional(
            {
                "commit_id": self.current_revision,
                "branch": self.current_branch,
                "remote_url": self.remote_url,
            },
            timeout=self._timeout + _JOIN_GRACE,
        )
        return RepoMetadata(**fields)

    def recent_history(self, limit: int) -> list[HistoryEntry]:
        """List the last ``limit`` commits reachable from HEAD, newest first."""
        if self.current_revision() is None:
            return []

        count = str(max(limit, 1))
        output = self._run_git(["log", "-n", count, _LOG_FORMAT]).stdout
        entries: list[HistoryEntry] = []
        for line in output.split("\n"):
            entry = _parse_log_line(line)
            if entry is None:
                logger.debug("Skipping unparsable log record: %r", line)
                continue
            entries.append(entry)
        return entries

    def local_branches(self) -> list[str]:
        """List local branches sorted by name, default branch first."""
        output = self._run_git(["branch", "--format=%(refname:short)"]).stdout
        branches = sorted(line.strip() for line in output.splitlines() if line.strip())

        for candidate in _CONVENTIONAL_DEFAULTS:
            if candidate in branches:
                branches.remove(candidate)
                branches.insert(0, candidate)
                break
        return branches

    # =========================================================================
    # Diffs
    # =========================================================================

    def _untracked_files(self) -> list[str]:
        output = self._run_git(["ls-files", "-z", "--others", "--exclude-standard"]).stdout
        return _split_nul(output)

    def _untracked_diff(self, path: str) -> str:
        # `--` keeps paths starting with "-" from being read as options
        args = ["diff", *_DIFF_FLAGS, "--binary", "--no-index", "--", os.devnull, path]
        return self._run_git(args, ok_codes=(0, 1)).stdout

    def _synthesize_untracked(self) -> str:
        """Diff every untracked, non-ignored file against the null device."""
        files = self._untracked_files()
        if not files:
            return ""
        workers = min(_MAX_DIFF_WORKERS, len(files))
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            return "".join(executor.map(self._untracked_diff, files))

    def workspace_diff(self) -> str:
        """Diff of uncommitted tracked changes plus synthesized untracked additions."""
        tracked = self._run_git(["diff", *_DIFF_FLAGS], ok_codes=(0, 1)).stdout
        return tracked + self._synthesize_untracked()

    def _remotes(self) -> list[str]:
        return _order_remotes(self._run_git(["remote"]).stdout)

    def _default_branch(self, remotes: Sequence[str]) -> str | None:
        """Infer the default branch name.

        Prefers the symbolic `refs/remotes/<remote>/HEAD`, then falls back to
        the conventional names present locally or on a remote.
        """
        for remote in remotes:
            prefix = f"refs/remotes/{remote}/"
            result = self._run_git(
                ["symbolic-ref", "--quiet", f"{prefix}HEAD"], ok_codes=(0, 1, 128)
            )
            target = result.stdout.strip()
            if result.returncode == 0 and target.startswith(prefix):
                return target[len(prefix):]

        for candidate in _CONVENTIONAL_DEFAULTS:
            if self._ref_exists(f"refs/heads/{candidate}"):
                return candidate
            if any(self._ref_exists(f"refs/remotes/{r}/{candidate}") for r in remotes):
                return candidate
        return None

    def _branch_ancestry(self, remotes: Sequence[str]) -> list[str]:
        """Candidate branches: current, default, then remote branches containing HEAD."""
        ancestry: list[str] = []

        def add(name: str | None) -> None:
            if name and name != "HEAD" and name not in ancestry:
                ancestry.append(name)

        add(self.current_branch())
        add(self._default_branch(remotes))

        for remote in remotes:
            output = self._run_git(
                [
                    "for-each-ref",
                    "--format=%(refname)",
                    "--contains=HEAD",
                    f"refs/remotes/{remote}",
                ]
            ).stdout
            prefix = f"refs/remotes/{remote}/"
            for line in output.splitlines():
                ref = line.strip()
                if ref.startswith(prefix):
                    add(ref[len(prefix):])
        return ancestry

    def _shared_point(self, branch: str, remotes: Sequence[str]) -> tuple[str, int] | None:
        """Closest point shared by HEAD and ``branch`` on the first remote that has it.

        Returns:
            (commit SHA, commits HEAD is ahead of it), or None if the branch is
            on no remote or shares no history with HEAD.
        """
        for remote in remotes:
            remote_ref = f"refs/remotes/{remote}/{branch}"
            if not self._ref_exists(remote_ref):
                continue
            base = self._run_git(["merge-base", "HEAD", remote_ref], ok_codes=(0, 1))
            sha = base.stdout.strip()
            if base.returncode != 0 or not sha:
                return None
            count = self._run_git(["rev-list", "--count", f"{sha}..HEAD"]).stdout.strip()
            if not count.isdigit():
                logger.warning("Unexpected rev-list output for %s: %r", sha, count)
                return None
            return sha, int(count)
        return None

    def diff_to_remote(self) -> DiffResult:
        """Diff the working tree against the closest commit shared with a remote.

        Raises:
            NoRemoteError: If the repository has no remotes.
            NoCommonAncestorError: If no candidate branch shares history with HEAD.
            ProcessError: If a git command fails.
        """
        remotes = self._remotes()
        if not remotes:
            raise NoRemoteError(self._root)
        if self.current_revision() is None:
            raise NoCommonAncestorError(self._root)

        branches = self._branch_ancestry(remotes)
        closest: tuple[str, int] | None = None
        for branch in branches:
            point = self._shared_point(branch, remotes)
            if point is not None and (closest is None or point[1] < closest[1]):
                closest = point
        if closest is None:
            raise NoCommonAncestorError(self._root, branches)

        base_sha = closest[0]
        logger.debug("Closest shared commit is %s (%d behind HEAD)", base_sha, closest[1])
        tracked = self._run_git(["diff", *_DIFF_FLAGS, base_sha], ok_codes=(0, 1)).stdout
        return DiffResult(base_reference=base_sha, diff_text=tracked + self._synthesize_untracked())

    # =========================================================================
    # Snapshots
    # =========================================================================

    @contextmanager
    def _isolated_index(self) -> Iterator[dict[str, str]]:
        """Provide env pointing git at a private, throwaway index file.

        The directory holding the index is removed on every exit path, so the
        user's real index is never read or written.
        """
        with tempfile.TemporaryDirectory(prefix="ghostvcs-index-") as tmp:
            yield {"GIT_INDEX_FILE": str(Path(tmp) / "index")}

    def _force_included_files(self, patterns: Sequence[str], env: Mapping[str, str]) -> list[str]:
        """Ignored, untracked files matching the force-include patterns."""
        output = self._run_git(
            ["ls-files", "-z", "--others", "--ignored", "--exclude-standard", "--", *patterns],
            env=env,
        ).stdout
        return _split_nul(output)

    def _present_in_scope(self, scope: Sequence[Path], env: Mapping[str, str]) -> list[str]:
        """Scope entries that exist on disk or in the seeded index.

        Paths that exist in neither place (a file about to be created, say)
        are skipped, since ``git add`` rejects a pathspec matching nothing.
        """
        present = []
        for path in scope:
            on_disk = self._root / path
            if on_disk.exists() or on_disk.is_symlink():
                present.append(path.as_posix())
            elif self._run_git(["ls-files", "-z", "--", path.as_posix()], env=env).stdout:
                present.append(path.as_posix())
            else:
                logger.debug("Skipping %s: not in working tree or index", path)
        return present

    def create_snapshot(
        self, options: CreateSnapshotOptions, progress: ProgressCallback | None = None
    ) -> Snapshot:
        """Capture the working tree as an unreferenced ghost commit.

        Stages into a private index seeded from HEAD, writes a tree, and
        commits it with a synthetic identity. No branch or ref moves.

        Raises:
            MissingToolError: If git is not installed.
            PathOutsideRepositoryError: If a requested path escapes the root.
            ProcessError: If a git command fails.
        """
        self._require_git()
        base = relative_scope(self._root, [options.repo_path])
        scope = relative_scope(self._root, options.paths) if options.paths else base
        parent = self.current_revision()

        with (
            report_steps(progress, 3, "Creating snapshot") as step,
            self._isolated_index() as index_env,
        ):
            if parent is not None:
                self._run_git(["read-tree", parent], env=index_env)
            if scope:
                present = self._present_in_scope(scope, index_env)
                if present:
                    self._run_git(["add", "--all", "--", *present], env=index_env)
            else:
                self._run_git(["add", "--all", "--", "."], env=index_env)

            if options.force_include:
                forced = self._force_included_files(options.force_include, index_env)
                if forced:
                    self._run_git(["add", "--force", "--", *forced], env=index_env)
            step("staged working tree")

            tree = self._run_git(["write-tree"], env=index_env).stdout.strip()
            step("wrote tree")
            commit = self._write_commit(tree, parent, options.message)
            step("recorded ghost commit")

        logger.info("Created ghost commit %s (parent %s)", commit, parent or "none")
        return Snapshot(id=commit, kind=BackendKind.GIT, parent=parent, paths=scope)

    def _write_commit(self, tree: str, parent: str | None, message: str) -> str:
        """Commit ``tree`` under the synthetic identity without updating any ref."""
        commit_env = {
            "GIT_AUTHOR_NAME": self._snapshot_config.author_name,
            "GIT_AUTHOR_EMAIL": self._snapshot_config.author_email,
            "GIT_COMMITTER_NAME": self._snapshot_config.author_name,
            "GIT_COMMITTER_EMAIL": self._snapshot_config.author_email,
        }
        args = ["commit-tree", "--no-gpg-sign", tree, "-m", message]
        if parent is not None:
            args[2:2] = ["-p", parent]
        return self._run_git(args, env=commit_env).stdout.strip()

    def restore_snapshot(
        self, snapshot: Snapshot, progress: ProgressCallback | None = None
    ) -> None:
        """Write the snapshot's paths back onto the working tree.

        Paths absent from the snapshot are left untouched, and the user's
        index is not modified.

        Raises:
            BackendMismatchError: If the snapshot was not taken under Git.
            ObjectNotFoundError: If the ghost commit no longer exists.
            ProcessError: If a git command fails.
        """
        if snapshot.kind is not BackendKind.GIT:
            raise BackendMismatchError(expected=BackendKind.GIT, actual=snapshot.kind)
        self._restore_commit(snapshot.id, snapshot.paths, progress)

    def restore_to_commit(self, commit_id: str) -> None:
        """Write every path of an arbitrary commit back onto the working tree."""
        self._restore_commit(commit_id, (), None)

    def _restore_commit(
        self, commit_id: str, scope: Sequence[Path], progress: ProgressCallback | None
    ) -> None:
        self._require_git()
        check = self._run_git(
            ["cat-file", "-e", f"{commit_id}^{{commit}}"], ok_codes=(0, 1, 128)
        )
        if check.returncode != 0:
            raise ObjectNotFoundError(commit_id)

        with (
            report_steps(progress, 2, "Restoring snapshot") as step,
            self._isolated_index() as index_env,
        ):
            self._run_git(["read-tree", commit_id], env=index_env)
            step("read snapshot tree")
            if not scope:
                self._run_git(["checkout-index", "--all", "--force"], env=index_env)
            else:
                pathspec = [p.as_posix() for p in scope]
                listed = self._run_git(["ls-files", "-z", "--", *pathspec], env=index_env)
                files = _split_nul(listed.stdout)
                if files:
                    self._run_git(["checkout-index", "--force", "--", *files], env=index_env)
            step("wrote files")

        logger.info("Restored working tree from %s", commit_id)
