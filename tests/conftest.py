"""Pytest configuration and shared fixtures."""

import subprocess
from collections.abc import Sequence
from pathlib import Path

import pytest

from ghostvcs.ports.process import ProcessOutput

# ============================================================================
# Environment Isolation
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_global_config(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch):
    """Point the global config lookup at an empty directory.

    Keeps a developer's own ~/.config/ghostvcs/config.toml out of test runs.
    """
    config_home = tmp_path_factory.mktemp("xdg-config")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setenv("APPDATA", str(config_home))
    return config_home


# ============================================================================
# Git Repository Helpers
# ============================================================================
# These helpers consolidate git setup code to avoid duplication across tests.
# Use these functions in fixtures to create consistent test repositories.


def run_git(path: Path, *args: str) -> str:
    """Run a git command in ``path`` and return its stdout.

    Raises:
        subprocess.CalledProcessError: If the command fails.
    """
    result = subprocess.run(
        ["git", *args],
        cwd=path,
        check=True,
        capture_output=True,
        text=True,
        timeout=10,
    )
    return result.stdout


def init_git_repo(
    path: Path,
    user_name: str = "Test User",
    user_email: str = "test@example.com",
) -> None:
    """Initialize a git repository on branch main with user configuration.

    Args:
        path: Directory to initialize as a git repository.
        user_name: Git user.name configuration value.
        user_email: Git user.email configuration value.

    Raises:
        subprocess.CalledProcessError: If git commands fail.
    """
    run_git(path, "init")
    run_git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    run_git(path, "config", "user.name", user_name)
    run_git(path, "config", "user.email", user_email)
    run_git(path, "config", "commit.gpgsign", "false")


def git_add_and_commit(
    path: Path,
    message: str = "Initial commit",
    add_all: bool = True,
) -> str:
    """Stage files and create a git commit.

    Args:
        path: Git repository root directory.
        message: Commit message.
        add_all: If True, stages all files with 'git add .'.

    Returns:
        SHA of the new commit.
    """
    if add_all:
        run_git(path, "add", ".")
    run_git(path, "commit", "-m", message)
    return run_git(path, "rev-parse", "HEAD").strip()


def create_test_files(path: Path, files: dict[str, str]) -> None:
    """Create multiple files in a directory.

    Args:
        path: Base directory for file creation.
        files: Mapping of relative file paths to file contents.
               Parent directories are created automatically.

    Example:
        create_test_files(repo, {
            "f.txt": "hello\\n",
            "src/app.py": "print('hi')\\n",
        })
    """
    for file_path, content in files.items():
        full_path = path / file_path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_text(content)


def create_git_repo(
    path: Path,
    files: dict[str, str] | None = None,
    commit_message: str = "Initial commit",
) -> Path:
    """Create a complete git repository with optional files.

    Combines init_git_repo(), create_test_files(), and git_add_and_commit().

    Returns:
        Path to the repository root.
    """
    path.mkdir(parents=True, exist_ok=True)
    init_git_repo(path)

    if files:
        create_test_files(path, files)
        git_add_and_commit(path, message=commit_message)

    return path


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create a git repository with two committed files.

    Returns:
        Path to the git repository root.
    """
    return create_git_repo(
        tmp_path / "test_repo",
        files={
            "f.txt": "original\n",
            "src/app.py": "print('hello')\n",
        },
    )


@pytest.fixture
def git_repo_with_remote(tmp_path: Path, git_repo: Path) -> tuple[Path, Path]:
    """Git repository whose main branch is pushed to a bare `origin`.

    Returns:
        Tuple of (repository root, bare remote path).
    """
    remote = tmp_path / "remote.git"
    subprocess.run(
        ["git", "init", "--bare", str(remote)],
        check=True,
        capture_output=True,
        timeout=10,
    )
    run_git(git_repo, "remote", "add", "origin", str(remote))
    run_git(git_repo, "push", "-u", "origin", "main")
    return git_repo, remote


# ============================================================================
# Fake Process Runner
# ============================================================================


class ScriptedRunner:
    """ProcessRunner fake that answers commands from a script.

    Responses are keyed by the argument tuple. A response may be a
    ProcessOutput, a string (stdout with exit status 0) or an exception to
    raise. Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        responses: dict[tuple[str, ...], object] | None = None,
        available: bool = True,
    ) -> None:
        self.responses = dict(responses or {})
        self.available = available
        self.calls: list[tuple[str, ...]] = []

    def run(
        self,
        cwd: Path,
        command: str,
        args: Sequence[str],
        timeout: float | None = None,
        env=None,
        ok_codes: Sequence[int] = (0,),
    ) -> ProcessOutput:
        key = tuple(args)
        self.calls.append(key)
        if key not in self.responses:
            raise AssertionError(f"Unexpected command: {command} {' '.join(key)}")
        response = self.responses[key]
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, str):
            return ProcessOutput(stdout=response)
        return response

    def tool_available(self, command: str) -> bool:
        return self.available


@pytest.fixture
def scripted_runner() -> ScriptedRunner:
    return ScriptedRunner()


class RecordingProgress:
    """ProgressCallback fake that records every event as a tuple."""

    def __init__(self) -> None:
        self.events: list[tuple] = []

    def on_start(self, total: int, description: str) -> None:
        self.events.append(("start", total, description))

    def on_progress(self, current: int, item_description: str | None = None) -> None:
        self.events.append(("progress", current, item_description))

    def on_complete(self) -> None:
        self.events.append(("complete",))
