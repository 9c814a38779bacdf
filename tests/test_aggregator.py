import numpy as np
import pytest

from mcforecast.aggregator import aggregate, build_overview, change_percentage, format_change
from mcforecast.stats_engine import FnMetric, StatsEngine, mean


class TestChangePercentage:
    """Test percentage changes against the reference price"""

    @pytest.mark.parametrize(
        ("value", "reference", "expected"),
        [(110.0, 100.0, 10.0), (50.0, 100.0, -50.0), (100.0, 100.0, 0.0), (1.0, 3.0, -66.67)],
    )
    def test_change_percentage(self, value, reference, expected):
        assert change_percentage(value, reference) == expected

    def test_format_change_is_signed(self):
        assert format_change(110.0, 100.0) == "+10.00%"
        assert format_change(90.0, 100.0) == "-10.00%"
        assert format_change(100.0, 100.0) == "+0.00%"


class TestAggregate:
    """Test reduction of a run to summary statistics"""

    def test_summary_values(self):
        prices = np.array([80.0, 100.0, 120.0, 140.0])
        stats = aggregate(prices, reference=100.0)
        assert stats.lowest == 80.0
        assert stats.highest == 140.0
        assert stats.average == pytest.approx(110.0)
        assert stats.std == pytest.approx(np.std(prices))
        assert stats.target == pytest.approx(110.0 + np.std(prices))
        assert "percentiles" in stats.distribution

    def test_ordering(self):
        rng = np.random.default_rng(3)
        prices = 100.0 * np.exp(rng.normal(0.0, 0.2, size=5_000))
        s = aggregate(prices, reference=100.0)
        assert s.lowest <= s.average <= s.target
        assert s.average <= s.highest

    def test_single_price(self):
        s = aggregate(np.array([123.0]), reference=100.0)
        assert s.lowest == s.highest == s.average == s.target == 123.0

    def test_empty_prices_raise(self):
        with pytest.raises(ValueError, match="empty"):
            aggregate(np.array([]), reference=100.0)

    def test_engine_missing_summary_metric_raises(self):
        eng = StatsEngine([FnMetric("mean", mean)])
        with pytest.raises(ValueError, match="did not produce"):
            aggregate(np.array([1.0, 2.0]), reference=1.0, engine=eng)


class TestBuildOverview:
    """Test the served overview shape"""

    def test_overview_entries(self):
        stats = aggregate(np.array([90.0, 110.0]), reference=100.0)
        ov = build_overview(stats)
        assert ov.current == 100.0
        assert ov.lowest.price == 90.0
        assert ov.lowest.change_percentage == -10.0
        assert ov.highest.change_percentage == 10.0
        assert ov.average.price == 100.0
        assert ov.target.price == 110.0

    def test_to_dict_keys(self):
        ov = build_overview(aggregate(np.array([90.0, 110.0]), reference=100.0))
        d = ov.to_dict()
        assert set(d) == {"current", "highest", "target", "average", "lowest"}
        assert set(d["highest"]) == {"price", "change_percentage"}
