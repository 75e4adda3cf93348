import pytest
from unittest.mock import Mock
from secchi_ml.base.base_engine import BaseEngine
from secchi_ml.utils import constants

# Concrete implementation for testing purposes
class ConcreteTestEngine(BaseEngine):
    def _get_stage_name(self) -> str:
        return "Test Stage"

    def execute(self, *args, **kwargs):
        pass # Not relevant for BaseEngine tests

@pytest.fixture
def mock_logger():
    """Provides a mock logger instance."""
    return Mock()

def test_base_engine_attaches_config_logger_and_stage(mock_logger):
    config = {'splitting': {'seed': 7}}
    engine = ConcreteTestEngine(config, mock_logger)

    assert engine.config is config
    assert engine.logger is mock_logger
    assert engine.stage_name == "Test Stage"

def test_seed_uses_propagated_internal_seeds(mock_logger):
    config = {'splitting': {'seed': 7}, '_internal_seeds': {'split': 7, 'model': 2007}}
    engine = ConcreteTestEngine(config, mock_logger)

    assert engine._seed('split') == 7
    assert engine._seed('model') == 2007

def test_seed_falls_back_to_master_seed(mock_logger):
    engine = ConcreteTestEngine({'splitting': {'seed': 11}}, mock_logger)
    assert engine._seed('model') == 11

def test_seed_defaults_without_splitting_section(mock_logger):
    engine = ConcreteTestEngine({}, mock_logger)
    assert engine._seed('split') == constants.DEFAULT_SEED

def test_base_engine_is_abstract(mock_logger):
    with pytest.raises(TypeError):
        BaseEngine({}, mock_logger)
