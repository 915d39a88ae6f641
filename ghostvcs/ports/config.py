"""Configuration provider port.

Defines the interface for loading and accessing application configuration.
"""

from pathlib import Path
from typing import Protocol

from ghostvcs.domain.config import GhostConfig


class ConfigProvider(Protocol):
    """Protocol for loading and providing configuration."""

    def load(self, repo_root: Path | None) -> GhostConfig:
        """Load configuration for a repository.

        Args:
            repo_root: Repository root that may hold a .ghostvcs.toml, or None
                to load only global settings.

        Returns:
            GhostConfig instance with loaded or default values

        Note:
            Implementations should gracefully fall back to defaults
            if config files are missing or invalid.
        """
        ...
