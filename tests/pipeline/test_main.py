import pytest
import json
import logging
import numpy as np
import pandas as pd
from pathlib import Path

import main

PROJECT_SCHEMA = Path(__file__).resolve().parents[2] / "config" / "schema.json"

@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for h in root.handlers:
        h.close()
    root.handlers = handlers
    root.setLevel(level)

@pytest.fixture
def data_file(tmp_path):
    rng = np.random.RandomState(11)
    n = 120
    df = pd.DataFrame({
        'Rrs_443': rng.uniform(0.002, 0.012, n),
        'Rrs_490': rng.uniform(0.002, 0.012, n),
        'Rrs_555': rng.uniform(0.001, 0.008, n),
        'part': np.repeat([1, 2, 3, 4, 5, 6], n // 6),
    })
    df['secchi_depth'] = 0.5 + 400 * df['Rrs_490'] - 150 * df['Rrs_555'] + rng.normal(0, 0.1, n)
    path = tmp_path / "secchi.csv"
    df.to_csv(path, index=False)
    return path

@pytest.fixture
def write_config(tmp_path, data_file):
    def _write(grid=None, model='DecisionTreeRegressor'):
        config = {
            'data': {
                'file_path': str(data_file),
                'target_column': 'secchi_depth',
                'feature_columns': ['Rrs_443', 'Rrs_490', 'Rrs_555'],
                'part_column': 'part'
            },
            'splitting': {'test_size': 0.25, 'seed': 3, 'holdout_parts': [5, 6]},
            'models': {'baselines': [
                {'model': 'LinearRegression', 'params': {}},
                {'model': 'XGBRegressor', 'params': {'n_estimators': 20, 'max_depth': 3}}
            ]},
            'hyperparameters': {
                'enabled': True,
                'model': model,
                'split': 'spatial',
                'metric': 'rmse',
                'grid': grid or {'max_depth': [2, 4], 'min_samples_leaf': [1, 5]}
            },
            'execution': {'n_jobs': 2, 'backend': 'threading'},
            'logging': {'log_to_file': False, 'colorful_console': False}
        }
        path = tmp_path / "config.json"
        path.write_text(json.dumps(config))
        return path
    return _write


def test_full_pipeline(write_config, tmp_path, capsys):
    results_csv = tmp_path / "grid.csv"
    code = main.main(['--config', str(write_config()), '--schema', str(PROJECT_SCHEMA),
                      '--results-csv', str(results_csv)])

    assert code == main.EXIT_OK
    assert "[SUCCESS]" in capsys.readouterr().out

    table = pd.read_csv(results_csv)
    assert len(table) == 4
    assert table['is_best'].sum() == 1
    assert (table['status'] == 'ok').all()

def test_xgboost_grid(write_config):
    grid = {'max_depth': [2, 3], 'learning_rate': {'type': 'range', 'low': 0.05, 'high': 0.2, 'num': 2},
            'n_estimators': [10]}
    code = main.main(['--config', str(write_config(grid=grid, model='XGBRegressor')),
                      '--schema', str(PROJECT_SCHEMA)])
    assert code == main.EXIT_OK

def test_no_viable_combination_exit_code(write_config, capsys):
    code = main.main(['--config', str(write_config(grid={'max_depth': [-1, 0]})),
                      '--schema', str(PROJECT_SCHEMA)])
    assert code == main.EXIT_NO_VIABLE_COMBINATION
    assert "No viable combination" in capsys.readouterr().out

def test_cancelled_before_any_trial_exit_code(write_config, monkeypatch, capsys):
    class CancelledToken(main.CancellationToken):
        def __init__(self):
            super().__init__()
            self.cancel()

    monkeypatch.setattr(main, 'CancellationToken', CancelledToken)
    code = main.main(['--config', str(write_config()), '--schema', str(PROJECT_SCHEMA)])

    assert code == main.EXIT_INTERRUPTED
    out = capsys.readouterr().out
    assert "[INTERRUPTED]" in out
    assert "No viable combination" not in out

def test_dry_run(write_config):
    code = main.main(['--config', str(write_config()), '--schema', str(PROJECT_SCHEMA), '--dry-run'])
    assert code == main.EXIT_OK

def test_bad_config_exit_code(tmp_path):
    code = main.main(['--config', str(tmp_path / "missing.json"), '--schema', str(PROJECT_SCHEMA)])
    assert code == main.EXIT_ERROR

def test_run_search_returns_refit_metrics(write_config):
    from secchi_ml.config_manager import ConfigurationManager
    from secchi_ml.data_manager import DataManager

    config = ConfigurationManager(str(write_config()), str(PROJECT_SCHEMA)).load_and_validate()
    logger = logging.getLogger('test_pipeline')
    df = DataManager(config, logger).execute()

    tuned = main.run_search(config, logger, df)
    assert tuned['split'] == 'spatial'
    assert set(tuned['params']) == {'max_depth', 'min_samples_leaf'}
    # The refit on the same split reproduces the search score.
    assert tuned['rmse'] == pytest.approx(tuned['search_score'])
