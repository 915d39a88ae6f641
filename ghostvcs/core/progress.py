"""Progress reporting for CLI snapshot commands.

Provides a Rich-based progress bar that renders on stderr, so stdout stays
reserved for snapshot ids and diffs.
"""

from collections.abc import Generator
from contextlib import contextmanager

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)


class RichProgressCallback:
    """Rich-based progress callback for snapshot staging and copy steps."""

    def __init__(self, progress: Progress) -> None:
        """Initialize with a Rich Progress instance.

        Args:
            progress: Rich Progress instance to use for display.
        """
        self.progress = progress
        self.task_id: int | None = None

    def on_start(self, total: int, description: str) -> None:
        """Create a progress bar for the operation."""
        self.task_id = self.progress.add_task(description, total=total, current_item="")

    def on_progress(self, current: int, item_description: str | None = None) -> None:
        if self.task_id is not None:
            self.progress.update(
                self.task_id, completed=current, current_item=item_description or ""
            )

    def on_complete(self) -> None:
        """Remove the bar once the operation ends."""
        if self.task_id is not None:
            self.progress.remove_task(self.task_id)
            self.task_id = None


@contextmanager
def progress_context(
    quiet_mode: bool = False,
) -> Generator[RichProgressCallback | None, None, None]:
    """Context manager for creating progress bars.

    Args:
        quiet_mode: If True, returns None (no progress reporting).

    Yields:
        RichProgressCallback if not quiet, None otherwise.

    Example:
        with progress_context(quiet_mode=quiet) as progress:
            manager.create_snapshot(options, progress)
    """
    if quiet_mode:
        yield None
        return

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TextColumn("[cyan]{task.fields[current_item]}"),
        console=Console(stderr=True),
        transient=True,
    ) as progress:
        yield RichProgressCallback(progress)
