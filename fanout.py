"""
Scatter-gather over independent lookups.

Every item gets exactly one result, in input order.  A worker that raises
is converted by ``on_error`` into that item's result; nothing propagates,
so one bad lookup never aborts its siblings.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Sequence, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def scatter_gather(
    items: Sequence[T],
    worker: Callable[[T], R],
    on_error: Callable[[T, Exception], R],
    max_workers: int = 6,
) -> List[R]:
    if not items:
        return []

    results: List[R] = [None] * len(items)  # type: ignore[list-item]
    with ThreadPoolExecutor(max_workers=min(len(items), max_workers)) as pool:
        futures = {pool.submit(worker, item): idx for idx, item in enumerate(items)}
        for future in as_completed(futures):
            idx = futures[future]
            try:
                results[idx] = future.result()
            except Exception as exc:
                log.warning("Lookup %d of %d failed: %s", idx + 1, len(items), exc)
                results[idx] = on_error(items[idx], exc)
    return results
