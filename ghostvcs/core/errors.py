"""CLI error handling with actionable hints.

Provides consistent error formatting and common error factory functions
for all ghostvcs CLI commands.
"""

from pathlib import Path
from typing import NoReturn

import click


class GhostCliError(click.ClickException):
    """CLI error with actionable hint for users.

    Attributes:
        message: The primary error message.
        hint: Optional actionable suggestion for the user.

    Example:
        raise GhostCliError(
            "Not inside a repository",
            hint="Run from a Git or Darcs checkout",
        )
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        """Initialize the error with message and optional hint.

        Args:
            message: The primary error message.
            hint: Optional actionable suggestion for the user.
        """
        super().__init__(message)
        self.hint = hint

    def format_message(self) -> str:
        """Format the error message with hint if present."""
        msg = self.message
        if self.hint:
            msg += f"\nHint: {self.hint}"
        return msg


def repo_not_found_error(path: Path, skippable: bool = False) -> NoReturn:
    """Raise error when no repository governs the working directory.

    Args:
        path: Directory where detection started.
        skippable: The command honours ``[cli] skip_repo_check``, so the hint
            mentions it. Only ``detect`` does.

    Raises:
        GhostCliError: Always raises with a detection hint.
    """
    hint = "Run inside a Git or Darcs checkout"
    if skippable:
        hint += ", or set skip_repo_check = true under [cli] to report 'none'"
    raise GhostCliError(f"No Git or Darcs repository found at or above {path}", hint=hint)
