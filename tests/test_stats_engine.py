import logging

import numpy as np
import pytest

from mcforecast.stats_engine import (
    DEFAULT_ENGINE,
    SUMMARY_METRICS,
    FnMetric,
    NanPolicy,
    StatsContext,
    StatsEngine,
    build_default_engine,
    ci_mean,
    highest,
    kurtosis,
    lowest,
    mean,
    percentiles,
    skew,
    std,
    target,
)


class TestStatsContext:
    """Test StatsContext validation and overrides"""

    def test_defaults(self):
        ctx = StatsContext(n=10)
        assert ctx.confidence == 0.95
        assert ctx.ddof == 0
        assert ctx.percentiles == (5, 25, 50, 75, 95)

    def test_with_overrides_returns_copy(self):
        ctx = StatsContext(n=10)
        other = ctx.with_overrides(confidence=0.99)
        assert other.confidence == 0.99
        assert ctx.confidence == 0.95

    @pytest.mark.parametrize(
        "kwargs",
        [{"confidence": 0.0}, {"confidence": 1.0}, {"percentiles": (5, 101)}, {"ddof": -1}],
    )
    def test_invalid_values_raise(self, kwargs):
        with pytest.raises(ValueError):
            StatsContext(n=10, **kwargs)


class TestSummaryMetrics:
    """Test the metrics that make up a run summary"""

    def test_order_statistics(self):
        x = np.array([3.0, 1.0, 2.0])
        ctx = StatsContext(n=3)
        assert lowest(x, ctx) == 1.0
        assert highest(x, ctx) == 3.0
        assert mean(x, ctx) == pytest.approx(2.0)

    def test_std_is_population_by_default(self):
        x = np.array([1.0, 2.0, 3.0, 4.0])
        assert std(x, StatsContext(n=4)) == pytest.approx(np.std(x))
        assert std(x, StatsContext(n=4, ddof=1)) == pytest.approx(np.std(x, ddof=1))

    def test_target_is_mean_plus_population_std(self):
        x = np.array([90.0, 100.0, 110.0, 120.0])
        ctx = StatsContext(n=4, ddof=1)
        assert target(x, ctx) == pytest.approx(np.mean(x) + np.std(x))

    def test_single_sample_has_zero_spread(self):
        x = np.array([42.0])
        ctx = StatsContext(n=1)
        assert std(x, ctx) == 0.0
        assert target(x, ctx) == pytest.approx(42.0)

    def test_nan_policy_omit(self):
        x = np.array([1.0, np.nan, 3.0, np.inf])
        ctx = StatsContext(n=4, nan_policy=NanPolicy.omit)
        assert mean(x, ctx) == pytest.approx(2.0)
        assert highest(x, ctx) == 3.0

    def test_nan_policy_propagate(self):
        x = np.array([1.0, np.nan, 3.0])
        assert np.isnan(mean(x, StatsContext(n=3)))

    def test_empty_after_cleaning_is_nan(self):
        ctx = StatsContext(n=1, nan_policy="omit")
        assert np.isnan(lowest(np.array([np.nan]), ctx))


class TestDistributionMetrics:
    """Test percentiles, shape and interval metrics"""

    def test_percentiles(self):
        out = percentiles(np.arange(101, dtype=float), StatsContext(n=101, percentiles=(10, 50, 90)))
        assert out == {10: pytest.approx(10.0), 50: pytest.approx(50.0), 90: pytest.approx(90.0)}

    def test_small_samples_have_zero_shape(self):
        ctx = StatsContext(n=2)
        assert skew(np.array([1.0, 2.0]), ctx) == 0.0
        assert kurtosis(np.array([1.0, 2.0]), ctx) == 0.0

    def test_lognormal_is_right_skewed(self):
        rng = np.random.default_rng(0)
        x = np.exp(rng.normal(0.0, 0.5, size=50_000))
        assert skew(x, StatsContext(n=x.size)) > 0.5

    def test_ci_mean_brackets_mean(self):
        rng = np.random.default_rng(1)
        x = rng.normal(100.0, 5.0, size=10_000)
        ci = ci_mean(x, StatsContext(n=x.size))
        assert ci["low"] < np.mean(x) < ci["high"]
        assert ci["crit"] == pytest.approx(1.959964, rel=1e-5)
        assert ci["se"] == pytest.approx(np.std(x, ddof=1) / np.sqrt(x.size))


class TestStatsEngine:
    """Test the metric orchestrator"""

    def test_default_engine_names(self):
        names = DEFAULT_ENGINE.available()
        for name in SUMMARY_METRICS:
            assert name in names
        assert "percentiles" in names

    def test_summary_only_engine(self):
        eng = build_default_engine(include_distribution=False)
        assert eng.available() == SUMMARY_METRICS

    def test_compute_builds_context_from_kwargs(self):
        eng = StatsEngine([FnMetric("n", lambda a, ctx: ctx.n)])
        assert eng.compute(np.zeros(7)) == {"n": 7}

    def test_select(self):
        out = DEFAULT_ENGINE.compute(np.array([1.0, 2.0, 3.0]), select=["mean"])
        assert list(out) == ["mean"]

    def test_failing_metric_is_skipped(self, caplog):
        def boom(a, ctx):
            raise RuntimeError("boom")

        eng = StatsEngine([FnMetric("mean", mean), FnMetric("boom", boom)])
        with caplog.at_level(logging.ERROR, logger="mcforecast.stats_engine"):
            out = eng.compute(np.array([1.0, 3.0]))
        assert out == {"mean": 2.0}
        assert "boom" in caplog.text
