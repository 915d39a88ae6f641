"""Domain entities and value objects.

Plain value types shared by the detector, the backends, the metadata
pipeline and the snapshot manager. None of them holds mutable state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class BackendKind(str, Enum):
    """Revision control systems that can govern a working tree."""

    GIT = "git"
    DARCS = "darcs"

    @property
    def display_name(self) -> str:
        """Human readable name for messages."""
        return {BackendKind.GIT: "Git", BackendKind.DARCS: "Darcs"}[self]


@dataclass(frozen=True)
class RevisionControlCapabilities:
    """Features a backend supports.

    Attributes:
        supports_diffs: Backend can produce workspace and remote diffs.
        supports_snapshots: Backend can create and restore snapshots.
    """

    supports_diffs: bool = False
    supports_snapshots: bool = False

    @staticmethod
    def for_kind(kind: BackendKind) -> RevisionControlCapabilities:
        """Capabilities implemented for a backend kind."""
        supports_diffs, supports_snapshots = _KIND_CAPABILITIES[kind]
        return RevisionControlCapabilities(supports_diffs, supports_snapshots)


_KIND_CAPABILITIES: dict[BackendKind, tuple[bool, bool]] = {
    BackendKind.GIT: (True, True),
    BackendKind.DARCS: (True, True),
}


@dataclass(frozen=True)
class DetectedRevisionControl:
    """Result of backend detection for a directory.

    Attributes:
        kind: Which backend governs the directory.
        root: Absolute path of the repository root.
        capabilities: Features available for this backend.
    """

    kind: BackendKind
    root: Path
    capabilities: RevisionControlCapabilities = field(
        default_factory=RevisionControlCapabilities
    )

    @staticmethod
    def for_root(kind: BackendKind, root: Path) -> DetectedRevisionControl:
        return DetectedRevisionControl(
            kind=kind,
            root=root,
            capabilities=RevisionControlCapabilities.for_kind(kind),
        )


@dataclass(frozen=True)
class RepoMetadata:
    """Repository metadata collected from independent queries.

    Each field is optional because each comes from a separate command that
    may fail without invalidating the others.

    Attributes:
        commit_id: Current commit SHA (Git) or latest patch hash (Darcs).
        branch: Current branch name, None when detached or unknown.
        remote_url: URL of the default remote, if configured.
    """

    commit_id: str | None = None
    branch: str | None = None
    remote_url: str | None = None


@dataclass(frozen=True)
class HistoryEntry:
    """One recent history record, as listed newest-first.

    Attributes:
        id: Commit SHA or patch hash.
        timestamp: Backend timestamp string (Unix seconds for Git,
            darcs date stamp for Darcs).
        subject: Single-line summary.
    """

    id: str
    timestamp: str
    subject: str


@dataclass(frozen=True)
class DiffResult:
    """Diff between the closest shared point and the working tree.

    Attributes:
        base_reference: Identifier of the comparison point.
        diff_text: Unified diff, including synthesized diffs for untracked files.
    """

    base_reference: str
    diff_text: str


DEFAULT_SNAPSHOT_MESSAGE = "ghostvcs snapshot"


@dataclass(frozen=True)
class CreateSnapshotOptions:
    """Per-call options for snapshot creation.

    Attributes:
        repo_path: Directory inside the repository to snapshot. A subdirectory
            limits the capture to that subtree when ``paths`` is empty.
        message: Message stored on the snapshot object.
        force_include: Path patterns captured even when ignored by the backend.
        paths: Optional repository-relative paths restricting the capture.
            When empty, the capture covers the ``repo_path`` subtree, which
            is the entire working tree when ``repo_path`` is the root.
    """

    repo_path: Path
    message: str = DEFAULT_SNAPSHOT_MESSAGE
    force_include: tuple[str, ...] = ()
    paths: tuple[Path, ...] = ()

    def __post_init__(self) -> None:
        """Normalize collections to tuples so options stay hashable."""
        object.__setattr__(self, "force_include", tuple(self.force_include))
        object.__setattr__(self, "paths", tuple(Path(p) for p in self.paths))
        if not self.message.strip():
            raise ValueError("snapshot message must not be empty")


@dataclass(frozen=True)
class Snapshot:
    """Opaque handle to a captured working-tree state.

    Only valid for restoration against a repository of the same kind it was
    created from.

    Attributes:
        id: Backend object id (ghost commit SHA, or snapshot directory name).
        kind: Backend the snapshot was taken under.
        parent: Commit/patch the working tree was based on, if any.
        paths: Repository-relative paths the snapshot covers. Empty = whole tree.
        storage: Out-of-band storage location (Darcs only).
    """

    id: str
    kind: BackendKind
    parent: str | None = None
    paths: tuple[Path, ...] = ()
    storage: Path | None = None

    def __str__(self) -> str:
        return self.id
