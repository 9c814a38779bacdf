r"""
Data model shared by the engine, the run log and the overview cache.

Classes
    :class:`SimulationRequest` — validated inputs for one run
    :class:`RunStatus` — engine lifecycle state
    :class:`RunSummary` — one persisted ledger row
    :class:`RunUnavailable` — marker for an unknown run id
    :class:`PriceChange` / :class:`Overview` — the served summary
    :class:`RunDetails` / :class:`RunReport` — overview plus run metadata
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from .errors import ValidationError

__all__ = [
    "SimulationRequest",
    "RunStatus",
    "RunSummary",
    "RunUnavailable",
    "PriceChange",
    "Overview",
    "RunDetails",
    "RunReport",
    "LEDGER_COLUMNS",
]

LEDGER_COLUMNS = (
    "simulation_id",
    "timestamp",
    "current_price",
    "highest_price",
    "target_price",
    "average_price",
    "lowest_price",
    "simulated_data",
    "total_simulated",
    "processing_time",
    "data_source",
)


def _require_positive_int(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise ValidationError(f"{name} must be greater than 0")


def require_positive_number(name: str, value: Any) -> float:
    """Return ``value`` as float, raising :class:`ValidationError` unless finite and > 0."""
    try:
        out = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(out) or out <= 0.0:
        raise ValidationError(f"{name} must be greater than 0")
    return out


class RunStatus(str, Enum):
    r"""
    Lifecycle state of the engine.

    Attributes
    ----------
    OK : str
        Idle; the last run (if any) succeeded.
    PROCESSING : str
        A run is in flight.
    FAILED : str
        The last run aborted; the previous overview is still served.
    """

    OK = "OK"
    PROCESSING = "PROCESSING"
    FAILED = "FAILED"


@dataclass(frozen=True)
class SimulationRequest:
    r"""
    Inputs for one simulation run.

    Attributes
    ----------
    volatility : float
        Total-horizon log-return standard deviation as a decimal (``0.2`` = 20%).
    horizon_days : int
        Number of daily shocks applied to each path.
    n_simulations : int
        Number of terminal prices to generate.
    n_workers : int, default 1
        Upper bound on concurrent batch workers.
    start_price : float, optional
        Starting price of every path. When omitted the engine asks its price source,
        and a missing or non-positive quote fails the run with
        :class:`~mcforecast.errors.SourceUnavailableError` rather than
        :class:`~mcforecast.errors.ValidationError`.

    Raises
    ------
    ValidationError
        If any given field is not strictly positive.
    """

    volatility: float
    horizon_days: int
    n_simulations: int
    n_workers: int = 1
    start_price: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "volatility", require_positive_number("volatility", self.volatility))
        _require_positive_int("horizon_days", self.horizon_days)
        _require_positive_int("n_simulations", self.n_simulations)
        _require_positive_int("n_workers", self.n_workers)
        if self.start_price is not None:
            object.__setattr__(self, "start_price", require_positive_number("start_price", self.start_price))


@dataclass(frozen=True)
class RunSummary:
    r"""
    One row of the run ledger.

    Attributes
    ----------
    run_id : int
        1-based, gapless and strictly increasing.
    timestamp : int
        Creation time in epoch milliseconds.
    reference_price : float
        Price every path started from.
    highest, target, average, lowest : float
        Summary statistics of the run's terminal prices.
    n_simulations : int
        Terminal prices produced by this run.
    total_simulated : int
        Cumulative count across all runs up to and including this one.
    processing_ms : int
        Wall-clock time spent simulating, in milliseconds.
    data_source : str
        File name of this run's raw output.
    """

    run_id: int
    timestamp: int
    reference_price: float
    highest: float
    target: float
    average: float
    lowest: float
    n_simulations: int
    total_simulated: int
    processing_ms: int
    data_source: str

    def to_row(self) -> dict[str, Any]:
        """Map the summary onto the ledger column names."""
        return {
            "simulation_id": self.run_id,
            "timestamp": self.timestamp,
            "current_price": round(self.reference_price, 2),
            "highest_price": round(self.highest, 2),
            "target_price": round(self.target, 2),
            "average_price": round(self.average, 2),
            "lowest_price": round(self.lowest, 2),
            "simulated_data": self.n_simulations,
            "total_simulated": self.total_simulated,
            "processing_time": self.processing_ms,
            "data_source": self.data_source,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RunSummary":
        """Inverse of :meth:`to_row`."""
        return cls(
            run_id=int(row["simulation_id"]),
            timestamp=int(row["timestamp"]),
            reference_price=float(row["current_price"]),
            highest=float(row["highest_price"]),
            target=float(row["target_price"]),
            average=float(row["average_price"]),
            lowest=float(row["lowest_price"]),
            n_simulations=int(row["simulated_data"]),
            total_simulated=int(row["total_simulated"]),
            processing_ms=int(row["processing_time"]),
            data_source=str(row["data_source"]),
        )


@dataclass(frozen=True)
class RunUnavailable:
    """Placeholder returned for a run id outside the ledger."""

    run_id: int

    @property
    def error(self) -> str:
        return f"Simulation {self.run_id} not available"


@dataclass(frozen=True)
class PriceChange:
    """A price and its signed percentage change against the reference price."""

    price: float
    change_percentage: float


@dataclass(frozen=True)
class Overview:
    r"""
    The externally served summary of the latest run.

    Attributes
    ----------
    current : float
        Reference price of the run.
    highest, target, average, lowest : PriceChange
        Statistic value with its percentage change vs. ``current``.
    """

    current: float
    highest: PriceChange
    target: PriceChange
    average: PriceChange
    lowest: PriceChange

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RunDetails:
    r"""
    Metadata served alongside an :class:`Overview`.

    Attributes
    ----------
    total_simulated : int
        Cumulative simulated count across all runs.
    processing_ms : int
        Duration of the last run.
    processing_time : str
        ``processing_ms`` rendered for display.
    uptime : str
        Engine uptime as ``DD:HH:MM:SS``, computed when read.
    run_count : int
        Number of persisted runs.
    simulation_days : int
        Horizon used by the last run.
    data_source : str
        Raw-output file of the last run.
    data_size : str
        Size of the raw-output directory after the last run.
    distribution : dict
        Extra distribution metrics (percentiles, skew, kurtosis).
    """

    total_simulated: int
    processing_ms: int
    processing_time: str
    uptime: str
    run_count: int
    simulation_days: int
    data_source: str
    data_size: str
    distribution: dict[str, Any]


@dataclass(frozen=True)
class RunReport:
    """Overview plus details, as returned by the engine's outward API."""

    status: RunStatus
    overview: Overview
    details: RunDetails

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "overview": self.overview.to_dict(),
            "details": asdict(self.details),
        }
