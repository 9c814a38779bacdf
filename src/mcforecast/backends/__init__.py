"""
Execution backends for batched terminal-price simulation.

This subpackage provides pluggable execution strategies:

CPU Backends
    :class:`SequentialBackend` — Single-threaded execution
    :class:`ThreadBackend` — Thread-based parallelism
    :class:`ProcessBackend` — Process-based parallelism

Utilities
    :func:`create_backend` — Resolve a backend name to an instance
    :func:`make_blocks` — Chunking helper for batch partitioning
    :func:`worker_run_batch` — Top-level worker for pools
    :func:`is_windows_platform` — Platform detection helper

Protocol
    :class:`ExecutionBackend` — Interface for custom backends
"""

from __future__ import annotations

import logging

from .base import ExecutionBackend, SamplerParams, is_windows_platform, make_blocks, worker_run_batch
from .parallel import ProcessBackend, ThreadBackend
from .sequential import SequentialBackend

logger = logging.getLogger(__name__)

VALID_BACKENDS = ("auto", "sequential", "thread", "process")


def create_backend(kind: str = "auto", n_workers: int = 1) -> ExecutionBackend:
    r"""
    Create and instantiate the appropriate execution backend.

    Parameters
    ----------
    kind : {"auto", "sequential", "thread", "process"}, default ``"auto"``
        Backend type. ``"auto"`` maps to sequential for a single worker, otherwise to
        ``"process"`` on Windows (threads tend to serialize under the GIL there) and
        ``"thread"`` elsewhere.
    n_workers : int, default 1
        Number of workers for parallel backends.

    Returns
    -------
    SequentialBackend, ThreadBackend, or ProcessBackend
        Configured backend instance.

    Raises
    ------
    ValueError
        If ``kind`` is unknown or ``n_workers`` is not positive.
    """
    if kind not in VALID_BACKENDS:
        raise ValueError(f"backend must be one of {VALID_BACKENDS}, got '{kind}'")
    if n_workers <= 0:
        raise ValueError("n_workers must be positive")

    if kind == "auto":
        if n_workers <= 1:
            kind = "sequential"
        elif is_windows_platform():
            logger.info("Backend 'auto' resolved to 'process' on Windows platform.")
            kind = "process"
        else:
            kind = "thread"

    if kind == "sequential":
        return SequentialBackend()
    if kind == "thread":
        return ThreadBackend(n_workers=n_workers)
    return ProcessBackend(n_workers=n_workers)


__all__ = [
    # Protocol
    "ExecutionBackend",
    # CPU Backends
    "SequentialBackend",
    "ThreadBackend",
    "ProcessBackend",
    # Utility Functions
    "create_backend",
    "make_blocks",
    "worker_run_batch",
    "is_windows_platform",
    "SamplerParams",
    "VALID_BACKENDS",
]
