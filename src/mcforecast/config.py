r"""
Engine configuration.

:class:`EngineConfig` gathers everything a run needs apart from the reference
price. :func:`load_config` reads it from a JSON file, accepting both the snake_case
field names and the camelCase keys of a ``simulationConfig`` block::

    {
      "simulationConfig": {
        "totalSimulations": 100000,
        "volatilityPercentage": 20,
        "simulationDays": 365,
        "turbitPower": 4,
        "simulationInterval": 10
      }
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .backends import VALID_BACKENDS
from .errors import ValidationError
from .models import SimulationRequest, require_positive_number

__all__ = ["EngineConfig", "load_config", "DEFAULT_BATCH_SIZE"]

DEFAULT_BATCH_SIZE = 5_000

_CAMEL_KEYS = {
    "totalSimulations": "total_simulations",
    "volatilityPercentage": "volatility_percentage",
    "simulationDays": "simulation_days",
    "turbitPower": "workers",
    "simulationInterval": "interval_minutes",
    "batchSize": "batch_size",
    "dataDir": "data_dir",
    "runTimeout": "run_timeout",
}


@dataclass(frozen=True)
class EngineConfig:
    r"""
    Settings consumed by :class:`~mcforecast.engine.ForecastEngine`.

    Attributes
    ----------
    volatility_percentage : float
        Total-horizon volatility in percent (``20`` means 0.20).
    simulation_days : int
        Horizon in days.
    total_simulations : int
        Paths per run.
    workers : int, default 1
        Concurrent batch workers.
    interval_minutes : float, default 10
        Period of automatic runs.
    batch_size : int, default 5000
        Paths per batch; the last batch takes the remainder.
    backend : {"auto", "sequential", "thread", "process"}, default "auto"
    data_dir : str, default "private"
        Root directory of the run log.
    run_timeout : float, optional
        Seconds allowed for all batches of one run.
    seed : int, optional
        Seed for reproducible run sequences.

    Raises
    ------
    ValidationError
        If a numeric field is not strictly positive or ``backend`` is unknown.
    """

    volatility_percentage: float
    simulation_days: int
    total_simulations: int
    workers: int = 1
    interval_minutes: float = 10.0
    batch_size: int = DEFAULT_BATCH_SIZE
    backend: str = "auto"
    data_dir: str = "private"
    run_timeout: Optional[float] = None
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        require_positive_number("volatility_percentage", self.volatility_percentage)
        require_positive_number("interval_minutes", self.interval_minutes)
        for name in ("simulation_days", "total_simulations", "workers", "batch_size"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValidationError(f"{name} must be a positive integer, got {value!r}")
        if self.run_timeout is not None:
            require_positive_number("run_timeout", self.run_timeout)
        if self.backend not in VALID_BACKENDS:
            raise ValidationError(f"backend must be one of {VALID_BACKENDS}, got '{self.backend}'")

    @property
    def interval_seconds(self) -> float:
        return float(self.interval_minutes) * 60.0

    def to_request(self) -> SimulationRequest:
        """Build the per-run request, converting volatility from percent to decimal."""
        return SimulationRequest(
            volatility=float(self.volatility_percentage) / 100.0,
            horizon_days=self.simulation_days,
            n_simulations=self.total_simulations,
            n_workers=self.workers,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EngineConfig":
        """Build a config from snake_case or camelCase keys; unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = _CAMEL_KEYS.get(key, key)
            if name not in known:
                raise ValidationError(f"Unknown configuration key: {key}")
            kwargs[name] = value
        try:
            return cls(**kwargs)
        except TypeError as exc:
            raise ValidationError(str(exc)) from exc


def load_config(path: Union[str, Path]) -> EngineConfig:
    r"""
    Read an :class:`EngineConfig` from a JSON file.

    The settings may sit at the top level or inside a ``simulationConfig`` object;
    other top-level blocks (e.g. a web server section) are ignored in the latter case.
    """
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValidationError("configuration file must contain a JSON object")
    block = data.get("simulationConfig", data)
    return EngineConfig.from_mapping(block)
