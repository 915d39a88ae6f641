"""Configuration I/O utilities for reading and writing TOML config files.

This module handles serialization/deserialization of GhostConfig to/from TOML format.
"""

import os
import platform
import tomllib  # Built-in Python 3.11+
from pathlib import Path
from typing import Any

import tomli_w

from ghostvcs.domain.config import GhostConfig

LOCAL_CONFIG_NAME = ".ghostvcs.toml"


def get_global_config_path() -> Path:
    """Get the path to the global config file.

    The location is platform-dependent:
    - Linux/macOS: $XDG_CONFIG_HOME/ghostvcs/config.toml or ~/.config/ghostvcs/config.toml
    - Windows: %APPDATA%/ghostvcs/config.toml

    Returns:
        Path to the global config file (may not exist)
    """
    if platform.system() == "Windows":
        appdata = os.environ.get("APPDATA", "")
        if appdata:
            return Path(appdata) / "ghostvcs" / "config.toml"
        return Path.home() / ".config" / "ghostvcs" / "config.toml"

    xdg_config = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg_config:
        return Path(xdg_config) / "ghostvcs" / "config.toml"
    return Path.home() / ".config" / "ghostvcs" / "config.toml"


def get_local_config_path(repo_root: Path) -> Path:
    """Repository-local config file for a repository root."""
    return repo_root / LOCAL_CONFIG_NAME


def load_config_data(path: Path) -> dict[str, Any]:
    """Load raw TOML data from a config file.

    Args:
        path: Path to a TOML config file

    Returns:
        Dictionary with parsed TOML data

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is malformed
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in config file: {e}") from e


def config_to_data(config: GhostConfig) -> dict[str, Any]:
    """Convert a GhostConfig to TOML-serializable sections.

    Unset optional values are omitted since TOML has no null.
    """
    snapshot: dict[str, Any] = {
        "message": config.snapshot.message,
        "author_name": config.snapshot.author_name,
        "author_email": config.snapshot.author_email,
    }
    if config.snapshot.storage_dir is not None:
        snapshot["storage_dir"] = str(config.snapshot.storage_dir)

    return {
        "process": {
            "timeout": config.process.timeout,
            "git_binary": config.process.git_binary,
            "darcs_binary": config.process.darcs_binary,
        },
        "history": {
            "limit": config.history.limit,
        },
        "snapshot": snapshot,
        "cli": {
            "skip_repo_check": config.cli.skip_repo_check,
        },
    }


def load_config(path: Path) -> GhostConfig:
    """Load configuration from a single TOML file over the defaults.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is malformed or has invalid values
    """
    return GhostConfig.from_partial(GhostConfig.default(), load_config_data(path))


def save_config(config: GhostConfig, path: Path) -> None:
    """Save configuration to a TOML file.

    Args:
        config: GhostConfig to save
        path: Destination path
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as f:
        tomli_w.dump(config_to_data(config), f)


def create_default_config_file(path: Path) -> None:
    """Create a commented config file holding the default values.

    Args:
        path: Destination path
    """
    defaults = GhostConfig.default()
    template = f"""\
# ghostvcs configuration
# Repository-local values in .ghostvcs.toml override this file.

[process]
# Hard bound in seconds for every git/darcs invocation
timeout = {defaults.process.timeout}

# Executables used for each backend
git_binary = "{defaults.process.git_binary}"
darcs_binary = "{defaults.process.darcs_binary}"

[history]
# Number of recent commits or patches listed by default
limit = {defaults.history.limit}

[snapshot]
# Message and synthetic identity recorded on ghost commits
message = "{defaults.snapshot.message}"
author_name = "{defaults.snapshot.author_name}"
author_email = "{defaults.snapshot.author_email}"

# Where Darcs snapshot copies are kept (default: system temp directory)
# storage_dir = "~/.cache/ghostvcs/snapshots"

[cli]
# Let `detect` print "none" outside a repository instead of failing
skip_repo_check = false
"""

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        f.write(template)


def dumps_config(config: GhostConfig) -> str:
    """Render a GhostConfig as TOML text."""
    return tomli_w.dumps(config_to_data(config))


def parse_config_value(raw: str) -> Any:
    """Interpret a command-line value as a TOML literal.

    ``20`` becomes an int, ``true`` a bool, ``"x"`` a string. Text that is
    not a valid TOML literal is taken as a bare string.
    """
    try:
        return tomllib.loads(f"value = {raw}")["value"]
    except tomllib.TOMLDecodeError:
        return raw


def set_config_value(path: Path, dotted_key: str, raw_value: str) -> GhostConfig:
    """Set ``section.key`` in the config file at ``path``, creating it if needed.

    Args:
        path: Config file to update.
        dotted_key: Key in ``section.key`` form, e.g. ``history.limit``.
        raw_value: Value as typed on the command line.

    Returns:
        The validated config that was written.

    Raises:
        ValueError: If the key is malformed or unknown, or the value is invalid.
    """
    section, _, key = dotted_key.partition(".")
    if not section or not key or "." in key:
        raise ValueError(f"Expected a key in section.key form, got {dotted_key!r}")

    base = load_config(path) if path.exists() else GhostConfig.default()
    updated = GhostConfig.from_partial(base, {section: {key: parse_config_value(raw_value)}})
    save_config(updated, path)
    return updated
