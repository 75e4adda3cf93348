import abc
import logging
from typing import Dict, Any
from secchi_ml.utils import constants

class BaseEngine(abc.ABC):
    """
    Abstract base class for all processing engines.

    Provides common functionality for:
    - Configuration and logger attachment.
    - Access to the seeds propagated by the ConfigurationManager.
    """

    def __init__(self, config: Dict[str, Any], logger: logging.Logger):
        self.config = config
        self.logger = logger
        self.stage_name = self._get_stage_name()

    @abc.abstractmethod
    def _get_stage_name(self) -> str:
        """
        Human-readable name of the pipeline stage, used in log messages.
        e.g., 'Data Splitting', 'Grid Search'
        """
        raise NotImplementedError("Subclasses must implement _get_stage_name.")

    def _seed(self, component: str) -> int:
        """
        Seed for a pipeline component ('split', 'model').
        Falls back to the master splitting seed when seeds were not propagated.
        """
        master = self.config.get('splitting', {}).get('seed', constants.DEFAULT_SEED)
        return self.config.get('_internal_seeds', {}).get(component, master)

    @abc.abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """
        Main execution method for the engine.
        This must be implemented by all subclasses.
        """
        pass
