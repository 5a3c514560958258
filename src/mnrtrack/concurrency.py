"""Concurrent per-record lookups."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def gather_successes(
    items: Iterable[T],
    task: Callable[[T], Optional[R]],
    max_workers: int = 8,
    describe: Callable[[T], str] = repr,
) -> List[R]:
    """
    Run task on every item concurrently and wait for all of them.

    Results keep the order of items. A task that raises is logged and its
    item dropped; a task that returns None is dropped silently.
    """
    items = list(items)
    if not items:
        return []

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items)))) as executor:
        futures = [executor.submit(task, item) for item in items]

    results: List[R] = []
    for item, future in zip(items, futures):
        try:
            result = future.result()
        except Exception as e:
            logger.warning(f"Dropping {describe(item)}: {e}", exc_info=True)
            continue
        if result is not None:
            results.append(result)
    return results
