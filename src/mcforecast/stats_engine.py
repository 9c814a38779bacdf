r"""
mcforecast.stats_engine
=======================
Statistical metrics and the engine that reduces terminal prices to a summary.

This module defines:

- :class:`StatsContext`: a typed, explicit configuration object shared by all metrics.
- :class:`FnMetric`: a frozen adapter that names a metric function.
- :class:`StatsEngine`: an orchestrator that evaluates one or more metrics.

The summary metrics are :func:`lowest`, :func:`highest`, :func:`mean`,
:func:`std` (population, ``ddof=0``) and :func:`target`
(:math:`\bar X + \sigma`). :func:`percentiles`, :func:`skew`, :func:`kurtosis`
and :func:`ci_mean` describe the rest of the distribution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Generic, Iterable, Optional, Protocol, Sequence, TypeVar

import numpy as np
from scipy.stats import kurtosis as sp_kurtosis
from scipy.stats import norm
from scipy.stats import skew as sp_skew

logger = logging.getLogger(__name__)


_PCTS = (5, 25, 50, 75, 95)  # default percentiles


class NanPolicy(str, Enum):
    r"""
    Strategies for handling the propagation of non-finite values.

    Attributes
    ----------
    propagate : str
        Propagate any NaNs or infinities encountered in the sample.
    omit : str
        Drop non-finite observations before computing a metric.
    """

    propagate = "propagate"
    omit = "omit"


@dataclass(slots=True)
class StatsContext:
    r"""
    Shared, explicit configuration for statistic computations.

    Attributes
    ----------
    n : int
        Declared sample size.
    confidence : float, default 0.95
        Confidence level in :math:`(0, 1)` for :func:`ci_mean`.
    percentiles : tuple of int, default ``(5, 25, 50, 75, 95)``
        Percentiles to compute in :func:`percentiles`.
    nan_policy : {"propagate", "omit"}, default "propagate"
        If ``"omit"``, drop non-finite values before all computations.
    ddof : int, default 0
        Degrees of freedom for :func:`std`. ``0`` gives the population standard
        deviation used by :func:`target`.

    Examples
    --------
    >>> ctx = StatsContext(n=5000, nan_policy=NanPolicy.omit)
    >>> ctx.with_overrides(ddof=1).ddof
    1
    """

    n: int
    confidence: float = 0.95
    percentiles: tuple[int, ...] = _PCTS
    nan_policy: NanPolicy = "propagate"
    ddof: int = 0

    def with_overrides(self, **changes) -> "StatsContext":
        """Return a shallow copy with selected fields replaced."""
        return replace(self, **changes)

    def __post_init__(self) -> None:
        if not (0.0 < self.confidence < 1.0):
            raise ValueError("confidence must be in (0,1)")
        if any(p < 0 or p > 100 for p in self.percentiles):
            raise ValueError("percentiles must be in [0,100]")
        if self.ddof < 0:
            raise ValueError("ddof must be >= 0")


class Metric(Protocol):
    r"""
    Protocol for metric callables used by :class:`StatsEngine`.

    A metric exposes a ``name`` attribute and is callable as
    ``metric(x: numpy.ndarray, ctx: StatsContext) -> Any``.
    """

    name: str

    def __call__(self, x: np.ndarray, ctx: StatsContext, /) -> Any: ...


T = TypeVar("T")


@dataclass(frozen=True)
class FnMetric(Generic[T]):
    r"""
    Lightweight adapter that binds a human-readable ``name`` to a metric function.

    Parameters
    ----------
    name : str
        Key under which the metric result is stored in :meth:`StatsEngine.compute`.
    fn : callable
        Function with signature ``fn(x: ndarray, ctx: StatsContext) -> T``.
    doc : str, optional
        Short description.

    Examples
    --------
    >>> m = FnMetric("mean", lambda a, ctx: float(np.mean(a)))
    >>> m(np.array([1, 2, 3]), StatsContext(n=3))
    2.0
    """

    name: str
    fn: Callable[[np.ndarray, StatsContext], T]
    doc: str = ""

    def __call__(self, x: np.ndarray, ctx: StatsContext) -> T:
        return self.fn(x, ctx)


class StatsEngine:
    r"""
    Orchestrator that evaluates a set of metrics over an input array.

    Parameters
    ----------
    metrics : iterable of Metric
        Callables with a ``name`` and signature ``metric(x, ctx)``.

    Notes
    -----
    All metrics receive the *same* :class:`StatsContext`. A metric that raises is
    logged and left out of the result; callers that depend on a metric check for
    its key.

    Examples
    --------
    >>> eng = StatsEngine([FnMetric("mean", mean), FnMetric("std", std)])
    >>> eng.compute(np.array([1., 2., 3.]))
    {'mean': 2.0, 'std': 0.816496580927726}
    """

    def __init__(self, metrics: Iterable[Metric]):
        self._metrics = list(metrics)

    def available(self) -> tuple[str, ...]:
        return tuple(m.name for m in self._metrics)

    def compute(
        self,
        x: np.ndarray,
        ctx: Optional[StatsContext] = None,
        select: Sequence[str] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        r"""
        Evaluate the registered metrics on ``x``.

        Parameters
        ----------
        x : ndarray
            Sample values.
        ctx : StatsContext, optional
            Context parameters. If None, one is built from ``**kwargs``.
        select : sequence of str, optional
            If given, compute only the metrics with these names.
        **kwargs :
            Used to build a StatsContext if ctx is None. ``n`` defaults to ``x.size``.

        Returns
        -------
        dict
            Mapping from metric name to computed value.
        """
        if ctx is None:
            base = dict(kwargs)
            base.setdefault("n", int(np.asarray(x).size))
            ctx = StatsContext(**base)

        wanted = None if select is None else set(select)
        out: dict[str, Any] = {}
        for m in self._metrics:
            if wanted is not None and m.name not in wanted:
                continue
            try:
                out[m.name] = m(x, ctx)
            except Exception:
                logger.exception(f"Error computing metric {m.name}")
                continue
        return out


def _clean(x: np.ndarray, ctx: StatsContext) -> np.ndarray:
    r"""
    Sanitize the input sample according to :attr:`StatsContext.nan_policy`.

    Raises
    ------
    ValueError
        If an unknown :attr:`~StatsContext.nan_policy` is supplied.
    """
    arr = np.asarray(x, dtype=float)
    if ctx.nan_policy == "omit":
        return arr[np.isfinite(arr)]
    if ctx.nan_policy != "propagate":
        raise ValueError(f"Unknown nan_policy: {ctx.nan_policy}")
    return arr


def lowest(x: np.ndarray, ctx: StatsContext) -> float:
    """Sample minimum."""
    arr = _clean(x, ctx)
    return float(np.min(arr)) if arr.size else float("nan")


def highest(x: np.ndarray, ctx: StatsContext) -> float:
    """Sample maximum."""
    arr = _clean(x, ctx)
    return float(np.max(arr)) if arr.size else float("nan")


def mean(x: np.ndarray, ctx: StatsContext) -> float:
    r"""
    Arithmetic mean :math:`\bar X = \frac{1}{n}\sum_i x_i`.

    Examples
    --------
    >>> mean(np.array([1, 2, 3]), StatsContext(n=3))
    2.0
    """
    arr = _clean(x, ctx)
    return float(np.mean(arr)) if arr.size else float("nan")


def std(x: np.ndarray, ctx: StatsContext) -> float:
    r"""
    Standard deviation with :attr:`StatsContext.ddof` degrees of freedom.

    Returns
    -------
    float
        :math:`\sqrt{\frac{1}{n - \text{ddof}}\sum_i (x_i-\bar X)^2}`, or ``0.0``
        when :math:`n \le \text{ddof}` (a single population sample has zero spread).
    """
    arr = _clean(x, ctx)
    if arr.size <= ctx.ddof:
        return 0.0
    return float(np.std(arr, ddof=ctx.ddof))


def target(x: np.ndarray, ctx: StatsContext) -> float:
    r"""
    Risk-adjusted upside marker :math:`\bar X + \sigma`.

    Uses the population standard deviation regardless of :attr:`StatsContext.ddof`,
    so a sample of size one yields ``target == mean``.
    """
    pop = ctx.with_overrides(ddof=0)
    return mean(x, pop) + std(x, pop)


def percentiles(x: np.ndarray, ctx: StatsContext) -> dict[int, float]:
    r"""
    Empirical percentiles evaluated on the cleaned sample.

    Returns
    -------
    dict[int, float]
        Mapping :math:`p \mapsto Q_p(x)`.

    Examples
    --------
    >>> percentiles(np.array([0., 1., 2., 3.]), StatsContext(n=4, percentiles=(50, 75)))
    {50: 1.5, 75: 2.25}
    """
    arr = _clean(x, ctx)
    if arr.size == 0:
        return {p: float("nan") for p in ctx.percentiles}
    pct_values = np.percentile(arr, ctx.percentiles)
    return dict(zip(ctx.percentiles, map(float, pct_values)))


def skew(x: np.ndarray, ctx: StatsContext) -> float:
    r"""
    Unbiased sample skewness; ``0.0`` when :math:`n \le 2`.

    Notes
    -----
    Uses :func:`scipy.stats.skew` with ``bias=False``. Terminal prices of a
    log-normal walk are right-skewed, so this is positive in practice.
    """
    arr = _clean(x, ctx)
    return float(sp_skew(arr, bias=False)) if arr.size > 2 else 0.0  # type: ignore[arg-type]


def kurtosis(x: np.ndarray, ctx: StatsContext) -> float:
    r"""
    Unbiased sample **excess** kurtosis (Fisher definition); ``0.0`` when :math:`n \le 3`.
    """
    arr = _clean(x, ctx)
    return float(sp_kurtosis(arr, fisher=True, bias=False)) if arr.size > 3 else 0.0  # type: ignore[arg-type]


def ci_mean(x: np.ndarray, ctx: StatsContext) -> dict[str, float]:
    r"""
    Normal-approximation confidence interval for the mean terminal price.

    .. math::

       \bar X \pm z_{1-\alpha/2} \frac{s}{\sqrt{n}}

    Returns
    -------
    dict
        ``{"low", "high", "se", "crit", "confidence"}``.
    """
    arr = _clean(x, ctx)
    n = arr.size
    m = float(np.mean(arr)) if n else float("nan")
    s = float(np.std(arr, ddof=1)) if n > 1 else 0.0
    se = s / np.sqrt(max(1, n))
    crit = float(norm.ppf(0.5 + ctx.confidence / 2.0))
    return {
        "low": m - crit * se,
        "high": m + crit * se,
        "se": float(se),
        "crit": crit,
        "confidence": ctx.confidence,
    }


SUMMARY_METRICS = ("lowest", "highest", "mean", "std", "target")


def build_default_engine(include_distribution: bool = True) -> StatsEngine:
    r"""
    Construct a :class:`StatsEngine` with the summary metrics.

    Parameters
    ----------
    include_distribution : bool, default True
        Also include :func:`percentiles`, :func:`skew`, :func:`kurtosis` and
        :func:`ci_mean`.

    Returns
    -------
    StatsEngine
    """
    metrics: list[Metric] = [
        FnMetric[float]("lowest", lowest, "Minimum terminal price"),
        FnMetric[float]("highest", highest, "Maximum terminal price"),
        FnMetric[float]("mean", mean, "Average terminal price"),
        FnMetric[float]("std", std, "Population standard deviation"),
        FnMetric[float]("target", target, "Mean plus one population standard deviation"),
    ]
    if include_distribution:
        metrics.extend(
            [
                FnMetric[dict[int, float]]("percentiles", percentiles, "Percentiles over the sample"),
                FnMetric[float]("skew", skew, "Fisher skewness (unbiased)"),
                FnMetric[float]("kurtosis", kurtosis, "Excess kurtosis (unbiased)"),
                FnMetric[dict[str, float]]("ci_mean", ci_mean, "z CI for the mean"),
            ]
        )
    return StatsEngine(metrics)


# Build a default engine at import time
DEFAULT_ENGINE = build_default_engine(include_distribution=True)

__all__ = [
    "NanPolicy",
    "StatsContext",
    "Metric",
    "FnMetric",
    "StatsEngine",
    "lowest",
    "highest",
    "mean",
    "std",
    "target",
    "percentiles",
    "skew",
    "kurtosis",
    "ci_mean",
    "SUMMARY_METRICS",
    "build_default_engine",
    "DEFAULT_ENGINE",
]
