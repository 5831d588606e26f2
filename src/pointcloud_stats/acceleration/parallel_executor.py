"""
Parallel execution infrastructure for per-point loops.

Provides ChunkParallelExecutor, which splits an index range into contiguous,
statically assigned chunks and runs one worker per chunk on a thread pool.
Every chunk owns its slice of the output, so workers share only read-only
state (a built spatial index, a mean/covariance pair).
"""

from __future__ import annotations

import logging
import time
from multiprocessing import cpu_count
from multiprocessing.pool import ThreadPool
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

import numpy as np

if TYPE_CHECKING:
    from ..utils.config import AppConfig

logger = logging.getLogger(__name__)

Range = Tuple[int, int]


def _worker_wrapper(
    args: Tuple[int, int, int, Callable, Dict[str, Any]],
) -> Tuple[int, Optional[np.ndarray], Optional[Exception]]:
    """
    Run one chunk and capture its failure.

    Args:
        args: Tuple of (chunk_index, start, stop, worker_fn, worker_kwargs)

    Returns:
        Tuple of (chunk_index, result, exception)
    """
    idx, start, stop, worker_fn, worker_kwargs = args
    try:
        result = worker_fn(start, stop, **worker_kwargs)
        return (idx, result, None)
    except Exception as e:
        logger.error(f"Worker error on chunk {idx} [{start}, {stop}): {type(e).__name__}: {e}")
        return (idx, None, e)


class ChunkParallelExecutor:
    """
    Statically partitioned fan-out over ``range(n_items)``.

    Example:
        executor = ChunkParallelExecutor(n_workers=4)
        out = executor.map_ranges(
            n_items=len(points),
            worker_fn=query_chunk,
            worker_kwargs={'index': index, 'queries': points},
        )
    """

    def __init__(
        self,
        n_workers: Optional[int] = None,
        min_chunk_size: int = 50_000,
    ):
        """
        Initialize parallel executor.

        Args:
            n_workers: Number of worker threads. If None, uses cpu_count - 1.
                Minimum is 1.
            min_chunk_size: Smallest range handed to one worker; small inputs
                therefore run on fewer workers (or sequentially).
        """
        if n_workers is None:
            n_workers = max(1, cpu_count() - 1)
        else:
            n_workers = max(1, int(n_workers))

        self.n_workers = n_workers
        self.min_chunk_size = max(1, int(min_chunk_size))

        logger.debug(
            f"Initialized ChunkParallelExecutor with {self.n_workers} workers "
            f"(total CPUs: {cpu_count()}, min chunk: {self.min_chunk_size})"
        )

    @classmethod
    def from_config(cls, config: Optional["AppConfig"] = None) -> "ChunkParallelExecutor":
        """Build an executor from the ``parallel`` section of an AppConfig."""
        if config is None:
            return cls()
        parallel = config.parallel
        n_workers = parallel.n_workers if parallel.enabled else 1
        return cls(n_workers=n_workers, min_chunk_size=parallel.min_points_per_worker)

    def partition(self, n_items: int) -> List[Range]:
        """
        Split ``[0, n_items)`` into contiguous ranges, one per worker.

        Range sizes differ by at most one. No range is smaller than
        ``min_chunk_size`` unless ``n_items`` itself is.
        """
        if n_items <= 0:
            return []

        n_chunks = min(self.n_workers, max(1, n_items // self.min_chunk_size))
        base, extra = divmod(n_items, n_chunks)

        ranges = []
        start = 0
        for i in range(n_chunks):
            stop = start + base + (1 if i < extra else 0)
            ranges.append((start, stop))
            start = stop
        return ranges

    def map_ranges(
        self,
        n_items: int,
        worker_fn: Callable[..., np.ndarray],
        worker_kwargs: Optional[Dict[str, Any]] = None,
        dtype=np.float64,
    ) -> np.ndarray:
        """
        Run ``worker_fn(start, stop, **worker_kwargs)`` over every chunk.

        Each call must return ``stop - start`` values; they are written into
        the matching slice of the output array.

        Returns:
            Array of length ``n_items``

        Raises:
            RuntimeError: If any chunk fails
        """
        worker_kwargs = worker_kwargs or {}
        out = np.zeros(n_items, dtype=dtype)
        ranges = self.partition(n_items)
        if not ranges:
            return out

        start_time = time.time()

        if len(ranges) == 1:
            start, stop = ranges[0]
            try:
                out[start:stop] = worker_fn(start, stop, **worker_kwargs)
            except Exception as e:
                logger.error(f"Error processing range [{start}, {stop}): {e}", exc_info=True)
                raise RuntimeError(f"Chunk processing failed: {e}") from e
            logger.debug(
                f"Sequential processing complete: {n_items} items in "
                f"{time.time() - start_time:.3f}s"
            )
            return out

        worker_args = [
            (i, start, stop, worker_fn, worker_kwargs)
            for i, (start, stop) in enumerate(ranges)
        ]
        errors = []
        with ThreadPool(processes=len(ranges)) as pool:
            for idx, result, error in pool.imap_unordered(_worker_wrapper, worker_args):
                if error is not None:
                    errors.append((idx, error))
                    continue
                start, stop = ranges[idx]
                out[start:stop] = result

        if errors:
            errors.sort(key=lambda item: item[0])
            error_msg = f"{len(errors)} chunks failed out of {len(ranges)}"
            logger.error(error_msg)
            for idx, error in errors[:5]:
                logger.error(f"  Chunk {idx}: {type(error).__name__}: {error}")
            # Chained to the failure of the lowest-numbered chunk
            raise RuntimeError(error_msg) from errors[0][1]

        logger.debug(
            f"Parallel processing complete: {n_items} items in {len(ranges)} chunks, "
            f"{time.time() - start_time:.3f}s"
        )
        return out
