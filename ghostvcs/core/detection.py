"""Revision control detection.

Functions for finding which backend governs a directory by walking up
towards the filesystem root, the same way git finds .git/.
"""

import logging
from pathlib import Path

from ghostvcs.domain.entities import BackendKind, DetectedRevisionControl
from ghostvcs.domain.exceptions import DetectionFailedError

logger = logging.getLogger(__name__)

GIT_MARKER = ".git"
DARCS_MARKER = "_darcs"


def _marker_kind(directory: Path) -> BackendKind | None:
    """Backend whose marker is present in ``directory``.

    Git is checked before Darcs, so a directory holding both is a Git root.
    """
    # .git is a file in linked worktrees and submodules
    git_marker = directory / GIT_MARKER
    if git_marker.is_dir() or git_marker.is_file():
        return BackendKind.GIT
    if (directory / DARCS_MARKER).is_dir():
        return BackendKind.DARCS
    return None


def detect_revision_control(start_dir: Path | None = None) -> DetectedRevisionControl | None:
    """Find the nearest repository governing a directory.

    Pure filesystem inspection; no commands are run.

    Args:
        start_dir: Directory to start searching from. Defaults to CWD.

    Returns:
        Detected kind, root and capabilities, or None if no marker is found
        before reaching the filesystem root.
    """
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()
    if not current.is_dir():
        current = current.parent

    while True:
        kind = _marker_kind(current)
        if kind is not None:
            logger.debug("Detected %s repository at %s", kind.display_name, current)
            return DetectedRevisionControl.for_root(kind, current)

        parent = current.parent
        if parent == current:
            return None
        current = parent


def require_revision_control(start_dir: Path | None = None) -> DetectedRevisionControl:
    """Like detect_revision_control, but fail when nothing is found.

    Raises:
        DetectionFailedError: If no supported repository governs start_dir.
    """
    detected = detect_revision_control(start_dir)
    if detected is None:
        raise DetectionFailedError(start_dir or Path.cwd())
    return detected
