"""Progress reporting protocol for snapshot operations.

Lets backends report copy and staging steps without the core depending on a
terminal UI library.
"""

from typing import Protocol


class ProgressCallback(Protocol):
    """Receives progress while a snapshot is created or restored."""

    def on_start(self, total: int, description: str) -> None:
        """Called when an operation starts.

        Args:
            total: Total number of steps or entries.
            description: Description of the operation.
        """
        ...

    def on_progress(self, current: int, item_description: str | None = None) -> None:
        """Called as progress is made.

        Args:
            current: Number of steps completed so far.
            item_description: Optional description of the current step or path.
        """
        ...

    def on_complete(self) -> None:
        """Called when the operation completes, successfully or not."""
        ...
