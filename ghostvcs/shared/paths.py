"""Path helpers for keeping snapshot scopes inside a repository."""

from collections.abc import Iterable
from pathlib import Path

from ghostvcs.domain.exceptions import PathOutsideRepositoryError


def relative_scope(root: Path, paths: Iterable[Path]) -> tuple[Path, ...]:
    """Convert requested paths to repository-relative paths.

    Relative paths are interpreted against ``root``. A path equal to the root
    widens the scope to the whole tree, which is returned as an empty tuple.

    Args:
        root: Resolved repository root.
        paths: Absolute or root-relative paths.

    Returns:
        Unique relative paths in request order, or () for the whole tree.

    Raises:
        PathOutsideRepositoryError: If any path resolves outside ``root``.
    """
    scope: list[Path] = []
    whole_tree = False
    for path in paths:
        candidate = path if path.is_absolute() else root / path
        resolved = candidate.resolve()
        if resolved == root:
            whole_tree = True
            continue
        if not resolved.is_relative_to(root):
            raise PathOutsideRepositoryError(path, root)
        relative = resolved.relative_to(root)
        if relative not in scope:
            scope.append(relative)
    return () if whole_tree else tuple(scope)
