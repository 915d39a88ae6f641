"""Config domain models for ghostvcs.

Configuration is read from the global config file and an optional
repository-local ``.ghostvcs.toml``. This module defines the domain models
that represent validated configuration state.
"""

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from ghostvcs.domain.entities import DEFAULT_SNAPSHOT_MESSAGE


@dataclass(frozen=True)
class ProcessConfig:
    """Configuration for external command execution.

    Attributes:
        timeout: Hard bound in seconds for every external command (default: 5).
        git_binary: Executable used for the Git backend.
        darcs_binary: Executable used for the Darcs backend.

    Raises:
        ValueError: If timeout is not positive or a binary name is empty.
    """

    timeout: float = 5.0
    git_binary: str = "git"
    darcs_binary: str = "darcs"

    def __post_init__(self) -> None:
        """Validate process config after initialization."""
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if not self.git_binary:
            raise ValueError("git_binary must not be empty")
        if not self.darcs_binary:
            raise ValueError("darcs_binary must not be empty")


@dataclass(frozen=True)
class HistoryConfig:
    """Configuration for history listings.

    Attributes:
        limit: Default number of recent history entries to list.

    Raises:
        ValueError: If limit is not positive.
    """

    limit: int = 10

    def __post_init__(self) -> None:
        """Validate history config after initialization."""
        if self.limit <= 0:
            raise ValueError(f"limit must be positive, got {self.limit}")


@dataclass(frozen=True)
class SnapshotConfig:
    """Configuration for snapshot objects.

    Attributes:
        message: Default message stored on snapshots.
        author_name: Synthetic author/committer name for ghost commits.
        author_email: Synthetic author/committer email for ghost commits.
        storage_dir: Where Darcs snapshot copies live. None = system temp dir.
    """

    message: str = DEFAULT_SNAPSHOT_MESSAGE
    author_name: str = "ghostvcs snapshot"
    author_email: str = "snapshot@ghostvcs.local"
    storage_dir: Path | None = None

    def __post_init__(self) -> None:
        """Validate snapshot config after initialization."""
        if not self.message.strip():
            raise ValueError("message must not be empty")
        if not self.author_name.strip() or not self.author_email.strip():
            raise ValueError("author_name and author_email must not be empty")
        if self.storage_dir is not None and not isinstance(self.storage_dir, Path):
            object.__setattr__(self, "storage_dir", Path(self.storage_dir).expanduser())


@dataclass(frozen=True)
class CliConfig:
    """Options read only by the command-line entrypoint.

    Attributes:
        skip_repo_check: Let `detect` print "none" outside a repository instead of failing.
    """

    skip_repo_check: bool = False


@dataclass(frozen=True)
class GhostConfig:
    """Complete ghostvcs configuration.

    Attributes:
        process: External command configuration
        history: History listing configuration
        snapshot: Snapshot configuration
        cli: Entrypoint-only options
    """

    process: ProcessConfig = field(default_factory=ProcessConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)
    cli: CliConfig = field(default_factory=CliConfig)

    @staticmethod
    def default() -> "GhostConfig":
        """Create a config with all default values."""
        return GhostConfig(
            process=ProcessConfig(),
            history=HistoryConfig(),
            snapshot=SnapshotConfig(),
            cli=CliConfig(),
        )

    @staticmethod
    def from_partial(base: "GhostConfig", data: dict[str, Any]) -> "GhostConfig":
        """Overlay raw config data on an existing config.

        Only keys present in ``data`` change; every section is re-validated.

        Args:
            base: Config whose values are kept where ``data`` is silent.
            data: Parsed TOML data, keyed by section name.

        Returns:
            New GhostConfig with the overrides applied.

        Raises:
            ValueError: If a section is not a table, a key is unknown, or a
                value fails validation.
        """
        sections = {f.name for f in fields(GhostConfig)}
        updates: dict[str, Any] = {}
        for section, values in data.items():
            if section not in sections:
                raise ValueError(f"Unknown config section [{section}]")
            if not isinstance(values, dict):
                raise ValueError(f"Config section [{section}] must be a table")
            current = getattr(base, section)
            known = {f.name for f in fields(current)}
            unknown = set(values) - known
            if unknown:
                raise ValueError(
                    f"Unknown key(s) in [{section}]: {', '.join(sorted(unknown))}"
                )
            try:
                updates[section] = replace(current, **values)
            except (TypeError, AttributeError) as e:
                raise ValueError(f"Invalid value in [{section}]: {e}") from e
        return replace(base, **updates)
