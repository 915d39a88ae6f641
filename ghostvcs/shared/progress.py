"""Helpers for driving an optional ProgressCallback."""

from collections.abc import Callable, Iterator
from contextlib import contextmanager

from ghostvcs.ports.progress import ProgressCallback


@contextmanager
def report_steps(
    progress: ProgressCallback | None, total: int, description: str
) -> Iterator[Callable[[str], None]]:
    """Yield a step function that advances ``progress`` by one named step.

    ``on_complete`` is called on every exit path, so a failed operation does
    not leave a progress display behind. With ``progress=None`` the step
    function does nothing.

    Example:
        with report_steps(progress, 2, "Restoring snapshot") as step:
            read_tree()
            step("read snapshot tree")
            write_files()
            step("wrote files")
    """
    done = 0

    def step(name: str) -> None:
        nonlocal done
        done += 1
        if progress:
            progress.on_progress(done, name)

    if progress:
        progress.on_start(total, description)
    try:
        yield step
    finally:
        if progress:
            progress.on_complete()
