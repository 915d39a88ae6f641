"""Darcs backend driven through the darcs CLI."""

from ghostvcs.adapters.darcs_cmd.darcs_adapter import DarcsBackend, warn_missing_darcs_cli

__all__ = ["DarcsBackend", "warn_missing_darcs_cli"]
