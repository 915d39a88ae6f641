"""TOML-based configuration provider.

Config loading priority (highest to lowest):
1. Local: <repo root>/.ghostvcs.toml (repo-specific, executables excluded)
2. Global: ~/.config/ghostvcs/config.toml (user defaults)
3. Built-in defaults
"""

import logging
from pathlib import Path
from typing import Any

from ghostvcs.domain.config import GhostConfig
from ghostvcs.shared.config_io import (
    get_global_config_path,
    get_local_config_path,
    load_config_data,
)

logger = logging.getLogger(__name__)

# Keys naming executables to run. The local file travels with the working
# tree, so only the global file may set them.
GLOBAL_ONLY_KEYS = {"process": ("git_binary", "darcs_binary")}


class TomlConfigProvider:
    """Configuration provider that loads from TOML files.

    Local values override global values key by key; missing values fall
    back to built-in defaults. Missing or invalid files are skipped with
    a warning.
    """

    def __init__(self, global_path: Path | None = None) -> None:
        """Initialize provider.

        Args:
            global_path: Override for the global config location (tests).
        """
        self._global_path = global_path

    def _apply(self, config: GhostConfig, path: Path, label: str) -> GhostConfig:
        if not path.exists():
            return config
        try:
            data = load_config_data(path)
            if label == "local":
                data = _without_global_only_keys(data, path)
            config = GhostConfig.from_partial(config, data)
            logger.debug("Loaded %s config from %s", label, path)
        except (FileNotFoundError, ValueError) as e:
            logger.warning("Failed to parse %s config at %s: %s. Ignoring it.", label, path, e)
        return config

    def load(self, repo_root: Path | None) -> GhostConfig:
        """Load configuration with global fallback.

        Args:
            repo_root: Repository root holding .ghostvcs.toml, or None
                outside a repository.

        Returns:
            GhostConfig with merged global/local values or defaults
        """
        config = GhostConfig.default()
        config = self._apply(config, self._global_path or get_global_config_path(), "global")
        if repo_root is not None:
            config = self._apply(config, get_local_config_path(repo_root), "local")
        return config


def _without_global_only_keys(data: dict[str, Any], path: Path) -> dict[str, Any]:
    """Drop keys the repository-local file may not set, warning about each."""
    cleaned = dict(data)
    for section, keys in GLOBAL_ONLY_KEYS.items():
        values = cleaned.get(section)
        if not isinstance(values, dict):
            continue
        blocked = [key for key in keys if key in values]
        if not blocked:
            continue
        logger.warning(
            "Ignoring %s in local config at %s: set it in the global config instead.",
            ", ".join(f"{section}.{key}" for key in blocked),
            path,
        )
        cleaned[section] = {k: v for k, v in values.items() if k not in blocked}
    return cleaned
