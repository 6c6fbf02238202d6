"""
Static work partitioning and the worker pool shared by the parallel phases.
"""

import math
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional, Sequence, TypeVar

from ..io.trees import Tree

T = TypeVar("T")
R = TypeVar("R")


def default_n_workers() -> int:
    """Number of workers to use when none is requested."""
    return os.cpu_count() or 1


def partition(items: Sequence[T], n_chunks: int) -> list[list[T]]:
    """
    Split ``items`` into contiguous chunks of ``ceil(len(items) / n_chunks)``.

    The last chunk may be smaller, and fewer than ``n_chunks`` chunks are
    returned when there are not enough items.

    >>> partition([1, 2, 3, 4, 5], 2)
    [[1, 2, 3], [4, 5]]
    """
    if n_chunks < 1:
        raise ValueError(f"n_chunks must be at least 1, got {n_chunks}")
    size = max(1, math.ceil(len(items) / n_chunks))
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def make_replicas(tree: Tree, n_workers: int) -> list[Tree]:
    """
    The canonical tree followed by ``n_workers - 1`` independent copies.

    Each worker owns exactly one replica; replicas never cross workers.
    """
    return [tree] + [tree.copy() for _ in range(n_workers - 1)]


def run_chunks(
    func: Callable[..., R],
    per_worker_args: list[tuple],
    executor: Optional[ThreadPoolExecutor] = None,
) -> list[R]:
    """
    Run ``func(*args)`` for every argument tuple and wait for all of them.

    Results come back in submission order. The first worker exception is
    re-raised after every worker has finished, so no caller ever sees a
    partially completed phase as success.

    Parameters
    ----------
    func : callable
        Worker function
    per_worker_args : list[tuple]
        One argument tuple per worker
    executor : ThreadPoolExecutor, optional
        Pool to submit to; a pool sized to the number of tasks is created
        (and shut down) when omitted
    """
    if executor is None:
        with ThreadPoolExecutor(max_workers=max(1, len(per_worker_args))) as pool:
            return run_chunks(func, per_worker_args, pool)

    futures = {
        executor.submit(func, *args): i for i, args in enumerate(per_worker_args)
    }
    results: list = [None] * len(futures)
    first_error: Optional[BaseException] = None
    for future in as_completed(futures):
        error = future.exception()
        if error is not None:
            if first_error is None:
                first_error = error
            continue
        results[futures[future]] = future.result()

    if first_error is not None:
        raise first_error
    return results
