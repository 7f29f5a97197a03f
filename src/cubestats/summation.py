"""Chunked parallel summation.

A sample set is cut into contiguous chunks whose boundaries depend only on the
sample count and the worker count, each chunk is summed on its own worker
thread and the partial sums are combined once every worker has finished.
numpy releases the GIL while reducing a chunk, so the threads run in parallel.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

import numpy as np

from cubestats.numeric import as_samples

logger = logging.getLogger(__name__)


def available_workers() -> int:
    """Return the hardware parallelism reported by the OS, at least 1."""
    return os.cpu_count() or 1


def resolve_workers(n: int, max_workers: int | None = None) -> int:
    """Return the number of workers to use for *n* samples.

    Parameters
    ----------
    n
        Number of samples.
    max_workers
        Upper bound on the pool size. Defaults to :func:`available_workers`.

    Returns
    -------
    int
        ``min(max_workers, n)``, and 1 when *n* is 0.

    Examples
    --------
    >>> resolve_workers(0, 8)
    1
    >>> resolve_workers(3, 8)
    3
    >>> resolve_workers(100, 8)
    8
    """
    if max_workers is not None and max_workers < 1:
        raise ValueError(f"max_workers must be at least 1, got {max_workers}")
    limit = max_workers if max_workers is not None else available_workers()
    if n <= 0:
        return 1
    return max(1, min(limit, n))


def chunk_bounds(n: int, workers: int) -> list[tuple[int, int]]:
    """Split ``[0, n)`` into contiguous half-open ranges of size ``ceil(n / workers)``.

    Trailing ranges that would be empty are dropped.

    Examples
    --------
    >>> chunk_bounds(10, 4)
    [(0, 3), (3, 6), (6, 9), (9, 10)]
    >>> chunk_bounds(4, 3)
    [(0, 2), (2, 4)]
    """
    if n <= 0:
        return []
    workers = max(1, workers)
    size = -(-n // workers)
    bounds = []
    for index in range(workers):
        start = index * size
        stop = min(n, start + size)
        if start >= stop:
            continue
        bounds.append((start, stop))
    return bounds


def sequential_sum(values: Any) -> float:
    """Sum *values* in a float64 accumulator on the calling thread."""
    return float(np.sum(values, dtype=np.float64))


def _partial_sum(values: np.ndarray, start: int, stop: int) -> float:
    return sequential_sum(values[start:stop])


def parallel_sum(values: Any, max_workers: int | None = None) -> float:
    """Sum a sample set using one worker per contiguous chunk.

    Parameters
    ----------
    values
        Any supported sample set.
    max_workers
        Upper bound on the number of worker threads. Defaults to the
        hardware parallelism.

    Returns
    -------
    float
        The float64 total; 0.0 for an empty input.
    """
    samples = as_samples(values)
    n = samples.size
    workers = resolve_workers(n, max_workers)
    if workers <= 1:
        return sequential_sum(samples)

    bounds = chunk_bounds(n, workers)
    logger.debug("Summing %d samples in %d chunks on %d workers", n, len(bounds), workers)
    partials = [0.0] * len(bounds)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_to_chunk = {
            executor.submit(_partial_sum, samples, start, stop): index for index, (start, stop) in enumerate(bounds)
        }
        for future in as_completed(future_to_chunk):
            partials[future_to_chunk[future]] = future.result()
    # partials combine in chunk order, never completion order
    return float(sum(partials))
