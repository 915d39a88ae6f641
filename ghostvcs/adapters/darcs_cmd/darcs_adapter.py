"""Darcs backend implementing the RevisionControlBackend protocol using darcs commands.

Darcs has no notion of an unreferenced commit, so snapshots are out-of-band
copies of the working tree kept under the configured storage directory. The
snapshot id is the name of that copy's directory.
"""

import logging
import os
import re
import shutil
import tempfile
import xml.etree.ElementTree as ET
from collections.abc import Iterable, Mapping, Sequence
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
    InvalidSnapshotIdError,
    MissingToolError,
    NoCommonAncestorError,
    NoRemoteError,
    ObjectNotFoundError,
    UnsupportedBackendError,
)
from ghostvcs.ports.process import ProcessOutput, ProcessRunner
from ghostvcs.ports.progress import ProgressCallback
from ghostvcs.shared.concurrency import gather_optional
from ghostvcs.shared.paths import relative_scope
from ghostvcs.shared.progress import report_steps

logger = logging.getLogger(__name__)

DARCS_DIR = "_darcs"

DARCS_MISSING_MESSAGE = (
    "Darcs repository detected but the `darcs` CLI is not installed. "
    "Install it to enable Darcs integration."
)

SNAPSHOT_DIR_PREFIX = "ghostvcs-darcs-"

_JOIN_GRACE = 1.0

_HASH_ATTR = re.compile(r"""\bhash=['"]([^'"]+)['"]""")

# `show repo` keys, in lookup order
_BRANCH_KEYS = ("current branch", "default branch")
_REMOTE_KEYS = ("default remote",)

_missing_cli_warned = False


def warn_missing_darcs_cli(runner: ProcessRunner, binary: str = "darcs") -> str | None:
    """Log a warning once per process when the darcs CLI is missing.

    Returns:
        The warning message so callers can surface it, or None if darcs is available.
    """
    global _missing_cli_warned
    if runner.tool_available(binary):
        return None
    if not _missing_cli_warned:
        _missing_cli_warned = True
        logger.warning(DARCS_MISSING_MESSAGE)
    return DARCS_MISSING_MESSAGE


def _parse_key_values(text: str) -> dict[str, str]:
    """Parse `Key: value` lines (as printed by `darcs show repo`), lowercasing keys."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.strip().partition(":")
        value = value.strip()
        if sep and value:
            values.setdefault(key.strip().lower(), value)
    return values


def _first_value(values: Mapping[str, str], keys: Iterable[str]) -> str | None:
    for key in keys:
        if key in values:
            return values[key]
    return None


def _parse_changelog(xml_text: str) -> list[HistoryEntry]:
    """Parse `darcs log --xml-output` into history entries, newest first.

    Patches without a hash are skipped. Malformed XML yields no entries.
    """
    start = xml_text.find("<")
    if start < 0:
        return []
    try:
        changelog = ET.fromstring(xml_text[start:])
    except ET.ParseError as e:
        logger.warning("Could not parse darcs changelog: %s", e)
        return []

    entries: list[HistoryEntry] = []
    for patch in changelog.iter("patch"):
        patch_hash = (patch.get("hash") or "").strip()
        if not patch_hash:
            logger.debug("Skipping darcs patch without hash")
            continue
        name = patch.findtext("name") or ""
        entries.append(
            HistoryEntry(
                id=patch_hash,
                timestamp=(patch.get("date") or "").strip(),
                subject=name.strip().splitlines()[0] if name.strip() else "",
            )
        )
    return entries


def _patch_hashes(text: str) -> set[str]:
    """Collect every patch hash attribute in darcs XML output."""
    return set(_HASH_ATTR.findall(text))


# =============================================================================
# Working-tree copies
# =============================================================================


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def _copy_entry(source: Path, destination: Path) -> None:
    """Copy one file, symlink or directory node, replacing a conflicting destination."""
    if source.is_symlink():
        if destination.exists() or destination.is_symlink():
            _remove_path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        os.symlink(os.readlink(source), destination)
        return

    if source.is_dir():
        if destination.is_symlink() or (destination.exists() and not destination.is_dir()):
            _remove_path(destination)
        destination.mkdir(parents=True, exist_ok=True)
        return

    if destination.is_symlink() or destination.is_dir():
        _remove_path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    # copy2 carries permissions and timestamps along with the contents
    shutil.copy2(source, destination)


def _copy_tree(source_root: Path, destination_root: Path, start: Path) -> None:
    """Copy ``start`` (relative to source_root) and everything below it."""
    source = source_root / start
    if not source.exists() and not source.is_symlink():
        return
    _copy_entry(source, destination_root / start)
    if source.is_symlink() or not source.is_dir():
        return

    for dirpath, dirnames, filenames in os.walk(source, followlinks=False):
        relative_dir = Path(dirpath).relative_to(source_root)
        for name in [*dirnames, *filenames]:
            relative = relative_dir / name
            _copy_entry(source_root / relative, destination_root / relative)


def _copy_all(
    source_root: Path,
    destination_root: Path,
    starts: Sequence[Path],
    progress: ProgressCallback | None,
    description: str,
) -> None:
    """Copy each start entry in turn, reporting one step per entry."""
    with report_steps(progress, len(starts), description) as step:
        for start in starts:
            _copy_tree(source_root, destination_root, start)
            step(start.as_posix())


class DarcsBackend:
    """Darcs backend using subprocess calls to the darcs CLI."""

    def __init__(
        self,
        repo_root: Path,
        runner: ProcessRunner,
        config: GhostConfig | None = None,
    ) -> None:
        """Initialize Darcs backend.

        Args:
            repo_root: Absolute path to the repository root (from detection).
            runner: Process runner used for every darcs invocation.
            config: Configuration; defaults are used when omitted.
        """
        config = config or GhostConfig.default()
        self._root = repo_root.resolve()
        self._runner = runner
        self._darcs = config.process.darcs_binary
        self._timeout = config.process.timeout
        self._storage_dir = config.snapshot.storage_dir

    @property
    def kind(self) -> BackendKind:
        return BackendKind.DARCS

    @property
    def root(self) -> Path:
        return self._root

    @property
    def capabilities(self) -> RevisionControlCapabilities:
        return RevisionControlCapabilities.for_kind(BackendKind.DARCS)

    @property
    def storage_root(self) -> Path:
        """Directory holding snapshot copies."""
        if self._storage_dir is not None:
            return self._storage_dir
        return Path(tempfile.gettempdir()) / "ghostvcs-snapshots"

    def _run_darcs(self, args: Sequence[str], ok_codes: Sequence[int] = (0,)) -> ProcessOutput:
        return self._runner.run(
            self._root,
            self._darcs,
            list(args),
            timeout=self._timeout,
            ok_codes=ok_codes,
        )

    def _require_darcs(self) -> None:
        if not self._runner.tool_available(self._darcs):
            raise MissingToolError(self._darcs)

    def _repo_info(self) -> dict[str, str]:
        return _parse_key_values(self._run_darcs(["show", "repo"]).stdout)

    # =========================================================================
    # Metadata
    # =========================================================================

    def current_revision(self) -> str | None:
        """Get the hash of the most recently recorded patch."""
        entries = self.recent_history(1)
        return entries[0].id if entries else None

    def current_branch(self) -> str | None:
        return _first_value(self._repo_info(), _BRANCH_KEYS)

    def remote_url(self) -> str | None:
        return _first_value(self._repo_info(), _REMOTE_KEYS)

    def collect_metadata(self) -> RepoMetadata:
        """Run the patch, branch and remote queries concurrently."""
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
        """List the last ``limit`` recorded patches, newest first."""
        count = max(limit, 1)
        output = self._run_darcs(["log", f"--last={count}", "--xml-output"]).stdout
        return _parse_changelog(output)[:count]

    def local_branches(self) -> list[str]:
        """Darcs repositories are their own branch; report its name if known."""
        branch = self.current_branch()
        return [branch] if branch else []

    # =========================================================================
    # Diffs
    # =========================================================================

    def workspace_diff(self) -> str:
        """Unrecorded changes, with unadded files shown as additions."""
        result = self._run_darcs(
            ["whatsnew", "--unified", "--look-for-adds"], ok_codes=(0, 1)
        )
        # Exit status 1 means "No changes!"
        return result.stdout if result.returncode == 0 else ""

    def diff_to_remote(self) -> DiffResult:
        """Diff against the newest local patch that the default remote also has.

        Raises:
            NoRemoteError: If no default remote is configured.
            NoCommonAncestorError: If every local patch is missing from the remote.
            ProcessError: If a darcs command fails.
        """
        remote = self.remote_url()
        if remote is None:
            raise NoRemoteError(self._root)

        local = _parse_changelog(self._run_darcs(["log", "--xml-output"]).stdout)
        unpushed = _patch_hashes(
            self._run_darcs(["push", "--dry-run", "--xml-output", remote]).stdout
        )
        base = next((entry.id for entry in local if entry.id not in unpushed), None)
        if base is None:
            raise NoCommonAncestorError(self._root, [remote])

        recorded = self._run_darcs(
            ["diff", "--unified", f"--from-hash={base}"], ok_codes=(0, 1)
        ).stdout
        return DiffResult(base_reference=base, diff_text=recorded + self.workspace_diff())

    # =========================================================================
    # Snapshots
    # =========================================================================

    def create_snapshot(
        self, options: CreateSnapshotOptions, progress: ProgressCallback | None = None
    ) -> Snapshot:
        """Copy the scoped working tree into a fresh snapshot directory.

        Everything except `_darcs` is copied, so ``force_include`` patterns are
        always covered. A failed copy leaves no snapshot directory behind.

        Raises:
            MissingToolError: If darcs is not installed.
            PathOutsideRepositoryError: If a requested path escapes the root.
            ProcessError: If darcs rejects the repository.
            OSError: If the snapshot cannot be written.
        """
        self._require_darcs()
        base = relative_scope(self._root, [options.repo_path])
        scope = relative_scope(self._root, options.paths) if options.paths else base
        self._run_darcs(["show", "repo"])
        parent = self.current_revision()

        self.storage_root.mkdir(parents=True, exist_ok=True)
        starts = [s for s in scope or self._top_level_entries() if s.parts[:1] != (DARCS_DIR,)]
        storage = Path(tempfile.mkdtemp(prefix=SNAPSHOT_DIR_PREFIX, dir=self.storage_root))
        try:
            _copy_all(self._root, storage, starts, progress, "Copying working tree")
        except BaseException:
            shutil.rmtree(storage, ignore_errors=True)
            raise

        logger.info("Created darcs snapshot %s (%s)", storage.name, options.message)
        return Snapshot(
            id=storage.name,
            kind=BackendKind.DARCS,
            parent=parent,
            paths=scope,
            storage=storage,
        )

    def restore_to_commit(self, commit_id: str) -> None:
        """Darcs patches cannot be checked out as standalone trees.

        Raises:
            UnsupportedBackendError: Always.
        """
        raise UnsupportedBackendError(BackendKind.DARCS)

    def _top_level_entries(self) -> list[Path]:
        return sorted(
            Path(entry.name) for entry in os.scandir(self._root) if entry.name != DARCS_DIR
        )

    def _storage_for_id(self, snapshot_id: str) -> Path:
        """Snapshot directory for an id handed back by the caller."""
        name = Path(snapshot_id).name
        if name != snapshot_id or not name.startswith(SNAPSHOT_DIR_PREFIX) or "\\" in name:
            raise InvalidSnapshotIdError(snapshot_id)
        return self.storage_root / name

    def restore_snapshot(
        self, snapshot: Snapshot, progress: ProgressCallback | None = None
    ) -> None:
        """Copy the snapshot's files back over the working tree.

        Only ``snapshot.paths`` are restored when set. Files created after
        the snapshot are left in place.

        Raises:
            BackendMismatchError: If the snapshot was not taken under Darcs.
            InvalidSnapshotIdError: If the id cannot name a snapshot directory.
            ObjectNotFoundError: If the snapshot directory is gone.
            OSError: If working-tree files cannot be written.
        """
        if snapshot.kind is not BackendKind.DARCS:
            raise BackendMismatchError(expected=BackendKind.DARCS, actual=snapshot.kind)
        storage = snapshot.storage or self._storage_for_id(snapshot.id)
        if not storage.is_dir():
            raise ObjectNotFoundError(snapshot.id)

        starts = snapshot.paths or sorted(Path(entry.name) for entry in os.scandir(storage))
        _copy_all(storage, self._root, list(starts), progress, "Restoring snapshot")
        logger.info("Restored working tree from darcs snapshot %s", snapshot.id)
