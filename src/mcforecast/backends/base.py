r"""
Base classes and utilities for execution backends.

This module provides:

Protocol
    :class:`ExecutionBackend` — Interface for batch execution strategies

Data
    :class:`SamplerParams` — Pickleable sampler inputs shared by every batch

Functions
    :func:`make_blocks` — Chunking helper for batch partitioning
    :func:`worker_run_batch` — Top-level worker for thread and process pools

Helpers
    :func:`is_windows_platform` — Platform detection for backend selection
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Iterator, Optional, Protocol, Sequence

import numpy as np

from ..sampler import sample_terminal_prices

__all__ = [
    "ExecutionBackend",
    "SamplerParams",
    "make_blocks",
    "worker_run_batch",
    "is_windows_platform",
]

# Upper bound on normal draws held in memory at once by one worker
_MAX_DRAWS_PER_SLICE = 2_000_000


def is_windows_platform() -> bool:
    """Return True when running on a Windows platform."""
    return sys.platform.startswith("win") or (sys.platform == "cli")


def make_blocks(n: int, block_size: int = 5_000) -> list[tuple[int, int]]:
    r"""
    Partition an integer range :math:`[0, n)` into half-open blocks :math:`(i, j)`.

    Parameters
    ----------
    n : int
        Total number of items.
    block_size : int, default: 5_000
        Target block length. The last block takes the remainder.

    Returns
    -------
    list of tuple[int, int]
        List of ``(i, j)`` index pairs covering ``[0, n)``.

    Examples
    --------
    >>> make_blocks(5, block_size=2)
    [(0, 2), (2, 4), (4, 5)]
    """
    if block_size <= 0:
        raise ValueError("block_size must be positive")
    blocks = []
    i = 0
    while i < n:
        j = min(i + block_size, n)
        blocks.append((i, j))
        i = j
    return blocks


@dataclass(frozen=True)
class SamplerParams:
    """Inputs of the random-walk sampler, identical for every path of a run."""

    start_price: float
    volatility: float
    horizon_days: int


def worker_run_batch(
    size: int,
    params: SamplerParams,
    seed_seq: np.random.SeedSequence,
) -> np.ndarray:
    r"""
    Simulate one batch of terminal prices in a **separate worker**.

    Parameters
    ----------
    size : int
        Number of paths in the batch.
    params : SamplerParams
        Sampler inputs.
    seed_seq : :class:`numpy.random.SeedSequence`
        Seed sequence for creating an **independent** RNG stream in the worker.

    Returns
    -------
    ndarray of shape ``(size,)``
        Terminal prices; position ``i`` is path ``i`` of the batch.

    Notes
    -----
    Uses :class:`numpy.random.Philox` to spawn a deterministic, independent stream per
    batch. Large batches are evaluated in slices so at most ``_MAX_DRAWS_PER_SLICE``
    normal draws are alive at once.
    """
    rng = np.random.Generator(np.random.Philox(seed_seq))
    out = np.empty(size, dtype=float)
    step = max(1, _MAX_DRAWS_PER_SLICE // params.horizon_days)
    for a in range(0, size, step):
        b = min(a + step, size)
        out[a:b] = sample_terminal_prices(
            b - a, params.start_price, params.volatility, params.horizon_days, rng
        )
    return out


class ExecutionBackend(Protocol):
    r"""
    Protocol defining the interface for execution backends.

    Backends run independent batches of the sampler and report each finished batch
    with its sequence number. They make no promise about completion order; callers
    that need a deterministic layout reorder by sequence number.
    """

    n_workers: int

    def run_batches(
        self,
        sizes: Sequence[int],
        params: SamplerParams,
        seed_seqs: Sequence[np.random.SeedSequence],
        timeout: Optional[float] = None,
    ) -> Iterator[tuple[int, np.ndarray]]:
        r"""
        Run every batch and yield ``(sequence_number, prices)`` as each completes.

        Parameters
        ----------
        sizes : sequence of int
            Size of each batch, indexed by sequence number.
        params : SamplerParams
            Sampler inputs shared by all batches.
        seed_seqs : sequence of SeedSequence
            One independent seed sequence per batch.
        timeout : float, optional
            Seconds allowed for all batches to finish.

        Raises
        ------
        WorkerFailure
            If any batch raises or the timeout expires. No further batches are yielded.
        """

    def run_batch(
        self,
        size: int,
        params: SamplerParams,
        seed_seq: np.random.SeedSequence,
    ) -> np.ndarray:
        """Run a single batch and return its ordered prices."""
