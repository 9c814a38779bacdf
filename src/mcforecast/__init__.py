"""mcforecast package public API."""

from .aggregator import PriceStatistics, aggregate, build_overview, change_percentage, format_change
from .backends import ProcessBackend, SequentialBackend, ThreadBackend, create_backend
from .cache import OverviewCache
from .config import EngineConfig, load_config
from .engine import ForecastEngine
from .errors import (
    ForecastError,
    PersistenceError,
    SourceUnavailableError,
    ValidationError,
    WorkerFailure,
)
from .models import (
    Overview,
    PriceChange,
    RunDetails,
    RunReport,
    RunStatus,
    RunSummary,
    RunUnavailable,
    SimulationRequest,
)
from .price_source import FeedPriceSource, JsonPriceFeed, StaticPriceSource
from .sampler import sample_terminal_price, sample_terminal_prices
from .scheduler import AutoRunner
from .stats_engine import DEFAULT_ENGINE, FnMetric, StatsContext, StatsEngine
from .store import RunLogStore

__all__ = [
    "ForecastEngine",
    "EngineConfig",
    "load_config",
    "SimulationRequest",
    "RunStatus",
    "RunSummary",
    "RunUnavailable",
    "Overview",
    "PriceChange",
    "RunDetails",
    "RunReport",
    "RunLogStore",
    "OverviewCache",
    "AutoRunner",
    "StaticPriceSource",
    "JsonPriceFeed",
    "FeedPriceSource",
    "SequentialBackend",
    "ThreadBackend",
    "ProcessBackend",
    "create_backend",
    "sample_terminal_price",
    "sample_terminal_prices",
    "StatsEngine",
    "StatsContext",
    "FnMetric",
    "DEFAULT_ENGINE",
    "PriceStatistics",
    "aggregate",
    "build_overview",
    "change_percentage",
    "format_change",
    "ForecastError",
    "ValidationError",
    "SourceUnavailableError",
    "WorkerFailure",
    "PersistenceError",
]

__version__ = "0.1.0"
