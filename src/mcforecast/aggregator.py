r"""
Reduction of a run's terminal prices into the served summary.

:func:`aggregate` evaluates the stats engine over the full price array and
:func:`build_overview` expresses each statistic relative to the reference price.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from .models import Overview, PriceChange
from .stats_engine import DEFAULT_ENGINE, SUMMARY_METRICS, StatsContext, StatsEngine

__all__ = [
    "PriceStatistics",
    "aggregate",
    "build_overview",
    "change_percentage",
    "format_change",
]


def change_percentage(value: float, reference: float) -> float:
    r"""
    Signed percentage change of ``value`` against ``reference``, two decimals.

    Examples
    --------
    >>> change_percentage(110.0, 100.0)
    10.0
    >>> change_percentage(95.0, 100.0)
    -5.0
    """
    return round((value - reference) / reference * 100.0, 2)


def format_change(value: float, reference: float) -> str:
    r"""
    :func:`change_percentage` rendered as ``"+X.XX%"`` or ``"-X.XX%"``.

    Examples
    --------
    >>> format_change(110.0, 100.0)
    '+10.00%'
    """
    change = (value - reference) / reference * 100.0
    return f"{change:+.2f}%"


@dataclass(frozen=True)
class PriceStatistics:
    r"""
    Summary statistics of one run.

    Attributes
    ----------
    reference : float
        Reference price the paths started from.
    lowest, highest, average : float
        Order statistics and arithmetic mean of the terminal prices.
    std : float
        Population standard deviation.
    target : float
        ``average + std``.
    distribution : dict
        Extra metrics (percentiles, skew, kurtosis, CI of the mean).
    """

    reference: float
    lowest: float
    highest: float
    average: float
    std: float
    target: float
    distribution: dict[str, Any] = field(default_factory=dict)


def aggregate(
    prices: np.ndarray,
    reference: float,
    engine: Optional[StatsEngine] = None,
) -> PriceStatistics:
    r"""
    Compute the summary of a run.

    Parameters
    ----------
    prices : ndarray
        All terminal prices of the run.
    reference : float
        Reference price.
    engine : StatsEngine, optional
        Defaults to :data:`~mcforecast.stats_engine.DEFAULT_ENGINE`.

    Returns
    -------
    PriceStatistics

    Raises
    ------
    ValueError
        If ``prices`` is empty or a summary metric could not be computed.
    """
    arr = np.asarray(prices, dtype=float).ravel()
    if arr.size == 0:
        raise ValueError("cannot aggregate an empty price array")
    eng = engine or DEFAULT_ENGINE
    stats = eng.compute(arr, StatsContext(n=arr.size))
    missing = [name for name in SUMMARY_METRICS if name not in stats]
    if missing:
        raise ValueError(f"stats engine did not produce {missing}")
    distribution = {k: v for k, v in stats.items() if k not in SUMMARY_METRICS}
    return PriceStatistics(
        reference=float(reference),
        lowest=stats["lowest"],
        highest=stats["highest"],
        average=stats["mean"],
        std=stats["std"],
        target=stats["target"],
        distribution=distribution,
    )


def build_overview(stats: PriceStatistics) -> Overview:
    """Express each statistic as a rounded price plus its change against the reference."""
    ref = stats.reference

    def _entry(value: float) -> PriceChange:
        return PriceChange(price=round(value, 2), change_percentage=change_percentage(value, ref))

    return Overview(
        current=round(ref, 2),
        highest=_entry(stats.highest),
        target=_entry(stats.target),
        average=_entry(stats.average),
        lowest=_entry(stats.lowest),
    )
