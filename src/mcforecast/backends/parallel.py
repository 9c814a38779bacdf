r"""
Parallel execution backends.

This module provides:

Classes
    :class:`ThreadBackend` — Thread-based parallelism using ThreadPoolExecutor
    :class:`ProcessBackend` — Process-based parallelism using ProcessPoolExecutor

Both submit one task per batch to a pool of at most ``n_workers`` workers and yield
finished batches as they complete. A failing or timed-out batch fails the whole
dispatch: outstanding batches are cancelled and :class:`~mcforecast.errors.WorkerFailure`
is raised.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Iterator, Optional, Sequence

import numpy as np

from ..errors import WorkerFailure
from .base import SamplerParams, worker_run_batch

logger = logging.getLogger(__name__)

__all__ = [
    "ThreadBackend",
    "ProcessBackend",
]


class _PoolBackend:
    """Shared dispatch logic; subclasses choose the executor."""

    def __init__(self, n_workers: int):
        if n_workers <= 0:
            raise ValueError("n_workers must be positive")
        self.n_workers = n_workers

    def _make_executor(self, max_workers: int) -> Executor:  # pragma: no cover
        raise NotImplementedError

    def run_batches(
        self,
        sizes: Sequence[int],
        params: SamplerParams,
        seed_seqs: Sequence[np.random.SeedSequence],
        timeout: Optional[float] = None,
    ) -> Iterator[tuple[int, np.ndarray]]:
        if not sizes:
            return
        max_workers = min(self.n_workers, len(sizes))
        ex = self._make_executor(max_workers)
        futs = {}
        clean_exit = False
        try:
            for seq, (size, ss) in enumerate(zip(sizes, seed_seqs)):
                futs[ex.submit(worker_run_batch, size, params, ss)] = seq
            try:
                for f in as_completed(futs, timeout=timeout):
                    seq = futs[f]
                    try:
                        arr = f.result()
                    except Exception as exc:
                        raise WorkerFailure(f"Batch {seq} failed: {exc}", batch=seq) from exc
                    if arr.shape != (sizes[seq],):
                        raise WorkerFailure(
                            f"Batch {seq} returned {arr.shape[0]} prices, expected {sizes[seq]}", batch=seq
                        )
                    yield seq, arr
            except FuturesTimeoutError as exc:
                raise WorkerFailure(f"Batches did not finish within {timeout} seconds") from exc
            clean_exit = True
        finally:
            if not clean_exit:
                for f in futs:
                    f.cancel()
            # Abandoned work keeps running in the background; do not wait for it.
            ex.shutdown(wait=clean_exit, cancel_futures=True)

    def run_batch(
        self,
        size: int,
        params: SamplerParams,
        seed_seq: np.random.SeedSequence,
    ) -> np.ndarray:
        r"""
        Run one batch, split into ``n_workers`` contiguous chunks.

        Position ``i`` of the result is path ``i`` of the batch regardless of which
        chunk finished first.
        """
        chunk = max(1, -(-size // self.n_workers))
        bounds = [(a, min(a + chunk, size)) for a in range(0, size, chunk)]
        out = np.empty(size, dtype=float)
        child_seqs = seed_seq.spawn(len(bounds))
        sizes = [b - a for a, b in bounds]
        for seq, arr in self.run_batches(sizes, params, child_seqs):
            a, b = bounds[seq]
            out[a:b] = arr
        return out


class ThreadBackend(_PoolBackend):
    r"""
    Thread-based parallel execution backend.

    Uses :class:`concurrent.futures.ThreadPoolExecutor`. Effective because the
    vectorized NumPy sampler releases the GIL for most of its work.

    Parameters
    ----------
    n_workers : int
        Number of worker threads to use.

    Examples
    --------
    >>> backend = ThreadBackend(n_workers=4)
    >>> params = SamplerParams(start_price=100.0, volatility=0.2, horizon_days=30)
    >>> prices = backend.run_batch(20_000, params, np.random.SeedSequence(7))
    """

    def _make_executor(self, max_workers: int) -> Executor:
        return ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="mcforecast-batch")


class ProcessBackend(_PoolBackend):
    r"""
    Process-based parallel execution backend.

    Uses :class:`concurrent.futures.ProcessPoolExecutor` with spawn context.
    Required on Windows for true parallelism.

    Parameters
    ----------
    n_workers : int
        Number of worker processes to use.

    Notes
    -----
    Work is submitted through the top-level :func:`~mcforecast.backends.base.worker_run_batch`
    so it is pickleable under the ``spawn`` start method.
    """

    def _make_executor(self, max_workers: int) -> Executor:
        logger.debug("Starting process pool with %d workers", max_workers)
        return ProcessPoolExecutor(max_workers=max_workers, mp_context=mp.get_context("spawn"))
