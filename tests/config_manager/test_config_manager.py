import pytest
import copy
import json
from pathlib import Path
from unittest.mock import patch, MagicMock

from secchi_ml.config_manager import ConfigurationManager
from secchi_ml.utils.exceptions import ConfigurationError

PROJECT_SCHEMA = Path(__file__).resolve().parents[2] / "config" / "schema.json"

VALID_CONFIG = {
    "data": {
        "file_path": "data/secchi.csv",
        "target_column": "secchi_depth",
        "feature_columns": ["Rrs_443", "Rrs_490", "Rrs_555"],
        "part_column": "part"
    },
    "splitting": {"test_size": 0.2, "seed": 42},
    "models": {"baselines": [{"model": "LinearRegression"}]},
    "hyperparameters": {
        "enabled": True,
        "model": "XGBRegressor",
        "metric": "mape",
        "grid": {
            "max_depth": [3, 6, 9],
            "learning_rate": {"type": "range", "low": 0.01, "high": 0.3, "num": 3, "log": True}
        }
    },
    "execution": {"n_jobs": -1, "max_workers": 4, "inner_threads": 1},
    "resources": {"max_hpo_configs": 100}
}

@pytest.fixture
def write_config(tmp_path):
    """Writes a config next to the project's real schema and returns a manager for it."""
    def _write(config):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps(config))
        return ConfigurationManager(str(config_path), str(PROJECT_SCHEMA))
    return _write

@pytest.fixture
def config():
    return copy.deepcopy(VALID_CONFIG)

@pytest.fixture(autouse=True)
def fixed_memory():
    """Pretend the machine has 16 GB of RAM."""
    with patch('psutil.virtual_memory') as mock_vm:
        mock_vm.return_value = MagicMock(total=16 * 1024 ** 3)
        yield mock_vm


class TestLoading:

    def test_valid_config(self, write_config, config):
        loaded = write_config(config).load_and_validate()
        assert loaded['data']['target_column'] == 'secchi_depth'
        assert loaded['_internal_seeds'] == {'split': 42, 'model': 2042}
        assert loaded['resources']['max_memory_mb'] == int(16 * 1024 * 0.8)

    def test_shipped_config_is_valid(self):
        root = PROJECT_SCHEMA.parent
        loaded = ConfigurationManager(str(root / "config.json"), str(PROJECT_SCHEMA)).load_and_validate()
        assert loaded['hyperparameters']['enabled'] is True

    def test_missing_file(self, tmp_path):
        manager = ConfigurationManager(str(tmp_path / "nope.json"), str(PROJECT_SCHEMA))
        with pytest.raises(ConfigurationError, match="File not found"):
            manager.load_and_validate()

    def test_invalid_json(self, tmp_path):
        bad = tmp_path / "config.json"
        bad.write_text("{not json")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            ConfigurationManager(str(bad), str(PROJECT_SCHEMA)).load_and_validate()

    def test_schema_violation(self, write_config, config):
        config['execution']['n_jobs'] = "all"
        with pytest.raises(ConfigurationError, match="Schema validation failed"):
            write_config(config).load_and_validate()

    def test_run_id_and_hash_are_stable(self, write_config, config):
        manager = write_config(config)
        manager.load_and_validate()
        assert manager.generate_run_id() == manager.generate_run_id()
        assert manager.config_hash() == manager.config_hash()
        assert len(manager.config_hash()) == 64


class TestLogicalValidation:

    @pytest.mark.parametrize("mutate, message", [
        (lambda c: c['data'].update(feature_columns=[]), "Schema validation failed"),
        (lambda c: c['data'].update(feature_columns=['secchi_depth']), "cannot also be a feature"),
        (lambda c: c['data'].update(feature_columns=['a', 'a']), "duplicates"),
        (lambda c: c['splitting'].update(test_size=1.0), "test_size"),
        (lambda c: c['splitting'].update(seed=-1), "seed"),
        (lambda c: c['splitting'].update(holdout_parts=[]), "holdout_parts"),
        (lambda c: c['data'].pop('part_column'), "part_column"),
        (lambda c: c['hyperparameters'].update(model='DeepForest'), "unknown model"),
        (lambda c: c['models']['baselines'].append({'model': 'Nope'}), "unknown model"),
        (lambda c: c['hyperparameters'].update(grid={}), "grid cannot be empty"),
        (lambda c: c['hyperparameters'].update(max_trials=0), "max_trials"),
        (lambda c: c['execution'].update(n_jobs=0), "n_jobs"),
        (lambda c: c['execution'].update(max_workers=0), "max_workers"),
        (lambda c: c['execution'].update(inner_threads=0), "inner_threads"),
    ])
    def test_rejections(self, write_config, config, mutate, message):
        mutate(config)
        with pytest.raises(ConfigurationError, match=message):
            write_config(config).load_and_validate()

    def test_part_column_optional_without_spatial_search(self, write_config, config):
        config['data'].pop('part_column')
        config['hyperparameters']['split'] = 'random'
        write_config(config).load_and_validate()

    def test_disabled_hpo_skips_grid_checks(self, write_config, config):
        config['hyperparameters'] = {'enabled': False}
        config['data'].pop('part_column')
        write_config(config).load_and_validate()


class TestResourceValidation:

    def test_grid_explosion(self, write_config, config):
        config['resources']['max_hpo_configs'] = 5
        with pytest.raises(ConfigurationError, match="Grid Explosion"):
            write_config(config).load_and_validate()

    def test_range_with_bad_bounds(self, write_config, config):
        config['hyperparameters']['grid']['learning_rate'] = {
            'type': 'range', 'low': 0.3, 'high': 0.01, 'num': 3
        }
        with pytest.raises(ConfigurationError, match="Invalid parameter grid"):
            write_config(config).load_and_validate()

    def test_memory_over_physical_warns(self, write_config, config):
        config['resources']['max_memory_mb'] = 10 ** 7
        manager = write_config(config)
        with patch.object(manager.logger, 'warning') as warn:
            loaded = manager.load_and_validate()
        warn.assert_called_once()
        assert loaded['resources']['max_memory_mb'] == 10 ** 7
