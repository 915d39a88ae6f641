"""Tests for snapshot path scoping."""

from pathlib import Path

import pytest

from ghostvcs.domain.exceptions import PathOutsideRepositoryError
from ghostvcs.shared.paths import relative_scope


@pytest.fixture
def root(tmp_path: Path) -> Path:
    repo = tmp_path / "repo"
    (repo / "src").mkdir(parents=True)
    return repo.resolve()


def test_no_paths_means_whole_tree(root: Path):
    assert relative_scope(root, []) == ()


def test_relative_paths_resolve_against_root(root: Path):
    assert relative_scope(root, [Path("src"), Path("docs/readme.md")]) == (
        Path("src"),
        Path("docs/readme.md"),
    )


def test_absolute_paths_inside_root(root: Path):
    assert relative_scope(root, [root / "src" / "app.py"]) == (Path("src/app.py"),)


def test_duplicates_removed_in_order(root: Path):
    scope = relative_scope(root, [Path("src"), root / "src", Path("src/../src")])
    assert scope == (Path("src"),)


def test_root_itself_widens_to_whole_tree(root: Path):
    assert relative_scope(root, [Path("src"), root]) == ()


@pytest.mark.parametrize("outside", [Path("../elsewhere"), Path("/")])
def test_path_outside_root_rejected(root: Path, outside: Path):
    with pytest.raises(PathOutsideRepositoryError) as exc_info:
        relative_scope(root, [outside])
    assert exc_info.value.root == root
