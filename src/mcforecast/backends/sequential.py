r"""
Sequential execution backend.

Runs batches one after the other on the calling thread. Suitable for small runs,
single-worker configurations and debugging.
"""

from __future__ import annotations

import time
from typing import Iterator, Optional, Sequence

import numpy as np

from ..errors import WorkerFailure
from .base import SamplerParams, worker_run_batch

__all__ = ["SequentialBackend"]


class SequentialBackend:
    r"""
    Sequential (single-threaded) execution backend.

    Batches complete in dispatch order. A running batch cannot be interrupted, so
    ``timeout`` is checked after each batch: once the elapsed time exceeds it the
    dispatch fails with :class:`~mcforecast.errors.WorkerFailure`.

    Examples
    --------
    >>> backend = SequentialBackend()
    >>> params = SamplerParams(start_price=100.0, volatility=0.2, horizon_days=30)
    >>> prices = backend.run_batch(1000, params, np.random.SeedSequence(1))
    >>> prices.shape
    (1000,)
    """

    n_workers = 1

    def run_batches(
        self,
        sizes: Sequence[int],
        params: SamplerParams,
        seed_seqs: Sequence[np.random.SeedSequence],
        timeout: Optional[float] = None,
    ) -> Iterator[tuple[int, np.ndarray]]:
        deadline = None if timeout is None else time.monotonic() + timeout
        for seq, (size, ss) in enumerate(zip(sizes, seed_seqs)):
            arr = self._run(seq, size, params, ss)
            if deadline is not None and time.monotonic() > deadline:
                raise WorkerFailure(f"Batches did not finish within {timeout} seconds", batch=seq)
            yield seq, arr

    def run_batch(
        self,
        size: int,
        params: SamplerParams,
        seed_seq: np.random.SeedSequence,
    ) -> np.ndarray:
        return self._run(0, size, params, seed_seq)

    @staticmethod
    def _run(seq: int, size: int, params: SamplerParams, seed_seq: np.random.SeedSequence) -> np.ndarray:
        try:
            return worker_run_batch(size, params, seed_seq)
        except Exception as exc:
            raise WorkerFailure(f"Batch {seq} failed: {exc}", batch=seq) from exc
