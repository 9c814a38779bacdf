r"""
Error taxonomy for the forecasting engine.

Every failure a run can hit maps to one of four kinds so callers can tell them apart:

* :class:`ValidationError` — non-positive numeric input, rejected before any work.
* :class:`SourceUnavailableError` — the reference price could not be obtained.
* :class:`WorkerFailure` — a batch crashed or timed out in the worker pool.
* :class:`PersistenceError` — the run log or a raw-output file could not be written.
"""

from __future__ import annotations

__all__ = [
    "ForecastError",
    "ValidationError",
    "SourceUnavailableError",
    "WorkerFailure",
    "PersistenceError",
]


class ForecastError(Exception):
    """Base class for all engine errors."""


class ValidationError(ForecastError, ValueError):
    """A request or configuration value is out of range."""


class SourceUnavailableError(ForecastError):
    """No price feed produced a usable reference price."""


class WorkerFailure(ForecastError):
    r"""
    A batch could not be completed by the worker pool.

    Parameters
    ----------
    message : str
        Human-readable description.
    batch : int, optional
        Sequence number of the failing batch, when known.
    """

    def __init__(self, message: str, batch: int | None = None):
        super().__init__(message)
        self.batch = batch


class PersistenceError(ForecastError):
    """Writing the run ledger or a raw-output file failed."""
