import numpy as np
import pytest

from mcforecast.sampler import box_muller, sample_terminal_price, sample_terminal_prices


class ZeroThenHalfRng:
    """First uniform draw is all zeros; every later draw is 0.5."""
    def __init__(self):
        self.calls = 0

    def random(self, size):
        self.calls += 1
        if self.calls == 1:
            return np.zeros(size)
        return np.full(size, 0.5)


class TestBoxMuller:
    """Test the normal variate generator"""

    def test_zero_uniforms_are_rerolled(self):
        """Exact zeros never reach the logarithm"""
        rng = ZeroThenHalfRng()
        z = box_muller(rng, 4)
        assert np.all(np.isfinite(z))
        assert z == pytest.approx(np.full(4, np.sqrt(-2.0 * np.log(0.5)) * np.cos(np.pi)))
        assert rng.calls == 3  # u, re-roll of u, v

    def test_standard_normal_moments(self):
        """Draws have mean 0 and standard deviation 1"""
        z = box_muller(np.random.default_rng(1), 200_000)
        assert abs(z.mean()) < 0.01
        assert z.std() == pytest.approx(1.0, abs=0.01)


class TestTerminalPrice:
    """Test the random-walk sampler"""

    def test_scalar_price_is_positive(self):
        """Multiplicative shocks keep prices positive"""
        rng = np.random.default_rng(3)
        prices = [sample_terminal_price(100.0, 0.5, 10, rng) for _ in range(100)]
        assert all(p > 0 for p in prices)

    def test_scalar_is_deterministic_given_rng(self):
        """Same seed, same path"""
        a = sample_terminal_price(100.0, 0.2, 30, np.random.default_rng(5))
        b = sample_terminal_price(100.0, 0.2, 30, np.random.default_rng(5))
        assert a == b

    def test_scalar_matches_vectorized_for_one_path(self):
        """The vectorized sampler consumes draws in the same order as the scalar one"""
        a = sample_terminal_price(100.0, 0.2, 30, np.random.default_rng(11))
        b = sample_terminal_prices(1, 100.0, 0.2, 30, np.random.default_rng(11))
        assert b.shape == (1,)
        assert b[0] == pytest.approx(a, rel=1e-12)

    def test_vectorized_shape(self):
        """One price per requested path"""
        prices = sample_terminal_prices(1234, 50_000.0, 0.2, 7, np.random.default_rng(0))
        assert prices.shape == (1234,)
        assert np.all(prices > 0)

    @pytest.mark.parametrize("horizon", [1, 5, 50])
    def test_log_return_dispersion_independent_of_horizon(self, horizon):
        """Terminal log-return std converges to the volatility for any horizon"""
        volatility = 0.2
        prices = sample_terminal_prices(100_000, 1.0, volatility, horizon, np.random.default_rng(horizon))
        log_returns = np.log(prices)
        assert log_returns.std() == pytest.approx(volatility, abs=0.005)
        assert abs(log_returns.mean()) < 0.005

    def test_scalar_dispersion_long_horizon(self):
        """The scalar path also spreads by the volatility over a one-year horizon"""
        rng = np.random.default_rng(99)
        log_returns = np.log([sample_terminal_price(1.0, 0.2, 365, rng) for _ in range(2_000)])
        assert np.std(log_returns) == pytest.approx(0.2, abs=0.02)
