"""Run independent queries concurrently with per-query failure isolation."""

import concurrent.futures
import logging
from collections.abc import Callable, Mapping
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def gather_optional(
    queries: Mapping[str, Callable[[], T | None]],
    timeout: float,
) -> dict[str, T | None]:
    """Run each query on its own thread and join them with a bounded wait.

    A query that raises, or that is still running once ``timeout`` seconds
    have passed since submission, yields None without affecting the others.

    Args:
        queries: Name -> zero-argument callable.
        timeout: Upper bound in seconds for the whole join.

    Returns:
        Name -> result (None for failed or unfinished queries).
    """
    results: dict[str, T | None] = dict.fromkeys(queries)
    if not queries:
        return results

    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=len(queries), thread_name_prefix="ghostvcs-query"
    )
    try:
        futures = {executor.submit(query): name for name, query in queries.items()}
        done, not_done = concurrent.futures.wait(futures, timeout=timeout)
        for future in done:
            name = futures[future]
            try:
                results[name] = future.result()
            except Exception as e:
                logger.debug("Query %s failed: %s", name, e)
        for future in not_done:
            logger.warning("Query %s did not finish within %ss", futures[future], timeout)
            future.cancel()
    finally:
        # Runners enforce their own timeouts, so stragglers end on their own
        executor.shutdown(wait=False)
    return results
