import json

import pytest

from mcforecast.config import DEFAULT_BATCH_SIZE, EngineConfig, load_config
from mcforecast.errors import ValidationError
from mcforecast.models import SimulationRequest


class TestEngineConfig:
    """Test configuration validation and conversion"""

    def test_defaults(self):
        cfg = EngineConfig(volatility_percentage=20, simulation_days=365, total_simulations=100_000)
        assert cfg.workers == 1
        assert cfg.batch_size == DEFAULT_BATCH_SIZE
        assert cfg.backend == "auto"
        assert cfg.interval_seconds == 600.0

    def test_to_request_converts_percent(self):
        cfg = EngineConfig(volatility_percentage=20, simulation_days=365, total_simulations=1_000, workers=4)
        assert cfg.to_request() == SimulationRequest(
            volatility=0.2, horizon_days=365, n_simulations=1_000, n_workers=4
        )

    @pytest.mark.parametrize(
        "overrides",
        [
            {"volatility_percentage": 0},
            {"simulation_days": 0},
            {"total_simulations": -1},
            {"workers": 0},
            {"batch_size": 0},
            {"interval_minutes": 0},
            {"run_timeout": -1.0},
            {"simulation_days": 1.5},
            {"backend": "gpu"},
        ],
    )
    def test_invalid_values(self, overrides):
        params = {"volatility_percentage": 20, "simulation_days": 30, "total_simulations": 10}
        params.update(overrides)
        with pytest.raises(ValidationError):
            EngineConfig(**params)

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            EngineConfig(volatility_percentage=-1, simulation_days=1, total_simulations=1)


class TestFromMapping:
    """Test building a config from key/value pairs"""

    def test_camel_case_keys(self):
        cfg = EngineConfig.from_mapping(
            {
                "totalSimulations": 100_000,
                "volatilityPercentage": 20,
                "simulationDays": 365,
                "turbitPower": 4,
                "simulationInterval": 10,
            }
        )
        assert cfg.total_simulations == 100_000
        assert cfg.workers == 4
        assert cfg.interval_minutes == 10

    def test_snake_case_keys(self):
        cfg = EngineConfig.from_mapping(
            {"volatility_percentage": 5, "simulation_days": 7, "total_simulations": 9, "seed": 1}
        )
        assert cfg.seed == 1

    def test_unknown_key(self):
        with pytest.raises(ValidationError, match="Unknown configuration key"):
            EngineConfig.from_mapping({"volatilityPercentage": 20, "colour": "red"})

    def test_missing_key(self):
        with pytest.raises(ValidationError):
            EngineConfig.from_mapping({"volatilityPercentage": 20})


class TestLoadConfig:
    """Test reading configuration files"""

    def test_simulation_config_block(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps(
                {
                    "serverConfig": {"port": 8080},
                    "simulationConfig": {
                        "totalSimulations": 1000,
                        "volatilityPercentage": 20,
                        "simulationDays": 30,
                        "dataDir": str(tmp_path / "private"),
                    },
                }
            )
        )
        cfg = load_config(path)
        assert cfg.total_simulations == 1000
        assert cfg.data_dir == str(tmp_path / "private")

    def test_top_level_settings(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"volatility_percentage": 10, "simulation_days": 3, "total_simulations": 4}))
        assert load_config(path).simulation_days == 3

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValidationError):
            load_config(path)

    def test_bad_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{")
        with pytest.raises(ValueError):
            load_config(path)
