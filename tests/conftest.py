import multiprocessing as mp
import threading

import numpy as np
import pytest

from mcforecast import EngineConfig, ForecastEngine, RunLogStore, SequentialBackend, StaticPriceSource
from mcforecast.errors import SourceUnavailableError


class FailingPriceSource:
    """Price source whose feeds are all down."""
    def __init__(self):
        self.calls = 0

    def get_current_price(self):
        self.calls += 1
        raise SourceUnavailableError("Failed to fetch price from all sources")


class GatedPriceSource:
    """Blocks inside get_current_price until the gate is opened."""
    def __init__(self, price: float):
        self.price = price
        self.entered = threading.Event()
        self.gate = threading.Event()
        self.calls = 0

    def get_current_price(self):
        self.calls += 1
        self.entered.set()
        assert self.gate.wait(10.0), "gate was never opened"
        return self.price


@pytest.fixture(autouse=True)
def _stable_seed():
    np.random.seed(42)


@pytest.fixture(scope="session", autouse=True)
def _set_spawn_start_method():
    try:
        mp.set_start_method("spawn")
    except RuntimeError:
        pass  # already set


@pytest.fixture
def make_config(tmp_path):
    """Factory for small, seeded configurations rooted in a temporary directory."""
    def _make(**overrides):
        params = {
            "volatility_percentage": 20,
            "simulation_days": 30,
            "total_simulations": 2_000,
            "workers": 1,
            "batch_size": 500,
            "backend": "sequential",
            "data_dir": str(tmp_path / "private"),
            "seed": 42,
        }
        params.update(overrides)
        return EngineConfig(**params)
    return _make


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def store(tmp_path):
    return RunLogStore(tmp_path / "store")


@pytest.fixture
def static_source():
    return StaticPriceSource(50_000.0)


@pytest.fixture
def engine(config, static_source):
    """Seeded engine running batches sequentially."""
    return ForecastEngine(config, static_source, backend=SequentialBackend())


@pytest.fixture
def failing_source():
    return FailingPriceSource()


@pytest.fixture
def gated_source():
    source = GatedPriceSource(50_000.0)
    yield source
    source.gate.set()
