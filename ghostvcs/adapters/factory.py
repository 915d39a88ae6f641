"""Factory classes for backend and configuration instantiation.

This module centralizes the creation of backends and their dependencies,
keeping the CLI layer and the core free from direct adapter imports.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ghostvcs.core.detection import detect_revision_control
from ghostvcs.domain.config import GhostConfig
from ghostvcs.domain.entities import BackendKind, DetectedRevisionControl

if TYPE_CHECKING:
    from ghostvcs.ports.config import ConfigProvider
    from ghostvcs.ports.process import ProcessRunner
    from ghostvcs.ports.vcs import RevisionControlBackend

logger = logging.getLogger(__name__)


class BackendFactory:
    """Factory for creating revision control backends.

    Args:
        config: GhostConfig with process and snapshot settings.
        runner: Process runner shared by every backend. Defaults to a
            SubprocessRunner using the configured timeout.
    """

    def __init__(self, config: GhostConfig | None = None, runner: ProcessRunner | None = None) -> None:
        self._config = config or GhostConfig.default()
        if runner is None:
            from ghostvcs.adapters.process.subprocess_runner import SubprocessRunner

            runner = SubprocessRunner(default_timeout=self._config.process.timeout)
        self._runner = runner

    @property
    def runner(self) -> ProcessRunner:
        return self._runner

    def create_backend(self, detected: DetectedRevisionControl) -> RevisionControlBackend:
        """Create the backend variant for a detection result.

        Args:
            detected: Output of detect_revision_control.

        Returns:
            GitBackend or DarcsBackend rooted at the detected root.
        """
        if detected.kind is BackendKind.GIT:
            from ghostvcs.adapters.git_cmd.git_adapter import GitBackend

            return GitBackend(detected.root, self._runner, self._config)

        from ghostvcs.adapters.darcs_cmd.darcs_adapter import (
            DarcsBackend,
            warn_missing_darcs_cli,
        )

        warn_missing_darcs_cli(self._runner, self._config.process.darcs_binary)
        return DarcsBackend(detected.root, self._runner, self._config)

    def for_path(self, path: Path) -> RevisionControlBackend | None:
        """Detect the repository governing ``path`` and build its backend.

        Returns:
            Backend instance, or None outside any supported repository.
        """
        detected = detect_revision_control(path)
        if detected is None:
            logger.debug("No repository detected at %s", path)
            return None
        return self.create_backend(detected)


class ConfigFactory:
    """Factory for creating configuration-related instances."""

    def create_config_provider(self) -> ConfigProvider:
        """Create a TomlConfigProvider instance.

        Returns:
            TomlConfigProvider instance.
        """
        from ghostvcs.adapters.config.toml_config_provider import TomlConfigProvider

        return TomlConfigProvider()
