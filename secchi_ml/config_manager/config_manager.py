import json
import os
import hashlib
import logging
import jsonschema
import psutil  # Required for memory awareness
from datetime import datetime
from typing import Dict, Any, Optional

from secchi_ml.hpo_search_engine.grid import ParameterSpace
from secchi_ml.model_factory import ModelFactory
from secchi_ml.utils.exceptions import ConfigurationError, EmptyGridError
from secchi_ml.utils import constants

class ConfigurationManager:
    """
    Manages system configuration loading, validation, and access.
    Acts as the single source of truth and safety guard for the pipeline.

    Validation runs in three passes: JSON schema (structure), logical rules
    (bounds, cross-field consistency) and resources (grid size, memory).
    """

    DEFAULT_MAX_HPO_CONFIGS = constants.DEFAULT_MAX_HPO_CONFIGS

    def __init__(self, config_path: str = constants.DEFAULT_CONFIG_PATH,
                 schema_path: str = constants.DEFAULT_SCHEMA_PATH):
        """
        Initialize the ConfigurationManager.

        Args:
            config_path (str): Path to the user configuration JSON.
            schema_path (str): Path to the JSON schema definition.
        """
        self.config_path = config_path
        self.schema_path = schema_path
        self.config: Dict[str, Any] = {}
        self.schema: Dict[str, Any] = {}
        self.run_id: Optional[str] = None
        self.logger = logging.getLogger("config_manager")

    def load_and_validate(self) -> Dict[str, Any]:
        """
        Main entry point. Loads config, validates schema/logic/resources,
        and propagates seeds.

        Returns:
            Dict[str, Any]: The fully validated configuration.

        Raises:
            ConfigurationError: If any validation step fails.
        """
        self.config = self._load_json(self.config_path)
        self.schema = self._load_json(self.schema_path)

        self._validate_schema()
        self._validate_logic()
        self._validate_resources()
        self._propagate_seeds()

        return self.config

    def generate_run_id(self) -> str:
        """Generate or retrieve a timestamp-based run identifier (YYYYMMDD_HHMMSS)."""
        if not self.run_id:
            self.run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        return self.run_id

    def config_hash(self) -> str:
        """SHA256 of the validated config, logged so runs can be matched to settings."""
        config_str = json.dumps(self.config, sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()

    def _load_json(self, path: str) -> Dict[str, Any]:
        """Safely load a JSON file."""
        if not os.path.exists(path):
            raise ConfigurationError(f"File not found: {path}")
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {str(e)}")

    def _validate_schema(self) -> None:
        """Validate config structure against JSON schema."""
        try:
            jsonschema.validate(instance=self.config, schema=self.schema)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(f"Schema validation failed: {e.message}")

    def _validate_logic(self) -> None:
        """Comprehensive logical validation."""
        # --- Data Section ---
        data = self.config.get('data', {})
        for key in ['file_path', 'target_column']:
            if not data.get(key):
                raise ConfigurationError(f"Data '{key}' must be specified and non-empty.")
        features = data.get('feature_columns', [])
        if not features:
            raise ConfigurationError("Data 'feature_columns' must list at least one feature.")
        if data['target_column'] in features:
            raise ConfigurationError(f"Target column '{data['target_column']}' cannot also be a feature.")
        if len(set(features)) != len(features):
            raise ConfigurationError("Data 'feature_columns' contains duplicates.")

        # --- Splitting Section ---
        split = self.config.get('splitting', {})
        test_size = split.get('test_size', 0.2)
        if not (0.0 < test_size < 1.0):
            raise ConfigurationError(f"test_size must be between 0 and 1 (exclusive), got {test_size}")
        if split.get('seed', constants.DEFAULT_SEED) < 0:
            raise ConfigurationError("Splitting seed must be non-negative.")
        if split.get('holdout_parts') is not None and len(split['holdout_parts']) == 0:
            raise ConfigurationError("splitting.holdout_parts must be omitted or non-empty.")
        hpo = self.config.get('hyperparameters', {})
        uses_spatial = split.get('holdout_parts') is not None or (
            hpo.get('enabled', False)
            and hpo.get('split', constants.SPLIT_SPATIAL) == constants.SPLIT_SPATIAL
        )
        if uses_spatial and not data.get('part_column'):
            raise ConfigurationError("Data 'part_column' is required for the spatial split.")

        # --- Models Section ---
        for entry in self.config.get('models', {}).get('baselines', []):
            self._check_model_name(entry.get('model'), "models.baselines")

        # --- HPO Section ---
        if hpo.get('enabled', False):
            self._check_model_name(hpo.get('model'), "hyperparameters.model")
            grid = hpo.get('grid')
            if not grid:
                raise ConfigurationError("Hyperparameter grid cannot be empty when HPO is enabled.")
            metric = hpo.get('metric', constants.METRIC_RMSE)
            if metric not in constants.SEARCH_METRICS:
                raise ConfigurationError(f"hyperparameters.metric must be one of {constants.SEARCH_METRICS}, got '{metric}'.")
            if hpo.get('split', constants.SPLIT_SPATIAL) not in constants.SPLIT_STRATEGIES:
                raise ConfigurationError(f"hyperparameters.split must be one of {constants.SPLIT_STRATEGIES}.")
            max_trials = hpo.get('max_trials', None)
            if max_trials is not None and max_trials <= 0:
                raise ConfigurationError(f"max_trials must be > 0 when provided, got {max_trials}.")

        # --- Execution Section ---
        execution = self.config.get('execution', {})
        if 'n_jobs' in execution:
            n_jobs = execution['n_jobs']
            if n_jobs == 0 or n_jobs < -1:
                raise ConfigurationError(f"execution.n_jobs must be -1 (all cores) or a positive integer, got {n_jobs}")
        if execution.get('max_workers') is not None and execution['max_workers'] < 1:
            raise ConfigurationError(f"execution.max_workers must be >= 1, got {execution['max_workers']}")
        if execution.get('inner_threads', 1) < 1:
            raise ConfigurationError(f"execution.inner_threads must be >= 1, got {execution['inner_threads']}")

    def _check_model_name(self, name: Optional[str], where: str) -> None:
        if name not in ModelFactory.get_available_models():
            raise ConfigurationError(
                f"{where}: unknown model '{name}'. Available: {ModelFactory.get_available_models()}"
            )

    def _validate_resources(self) -> None:
        """
        Validate against system resources.
        Calculates total grid size and ensures it fits within safe limits.
        """
        resources = self.config.get('resources', {})

        # 1. HPO Grid Explosion Check
        hpo = self.config.get('hyperparameters', {})
        if hpo.get('enabled', False):
            try:
                total_configs = ParameterSpace.from_grid(hpo['grid']).size
            except (EmptyGridError, ValueError, TypeError) as e:
                raise ConfigurationError(f"Invalid parameter grid: {str(e)}")

            max_configs = resources.get('max_hpo_configs', self.DEFAULT_MAX_HPO_CONFIGS)

            if total_configs > max_configs:
                raise ConfigurationError(
                    f"HPO Grid Explosion Detected! Total configurations ({total_configs}) exceeds "
                    f"safety limit ({max_configs}). Reduce grid search space or increase 'resources.max_hpo_configs'."
                )

            self.logger.info(f"HPO Grid Size validated: {total_configs} combinations (Limit: {max_configs})")

        # 2. Memory Limits Check
        system_ram_mb = int(psutil.virtual_memory().total / (1024 * 1024))
        # Default safety buffer: 80% of system RAM
        safe_ram_limit = int(system_ram_mb * 0.8)

        config_max_ram = resources.get('max_memory_mb', safe_ram_limit)

        if config_max_ram > system_ram_mb:
            self.logger.warning(
                f"Configured max_memory_mb ({config_max_ram}MB) exceeds physical system RAM ({system_ram_mb}MB). "
                "Reduce execution.n_jobs if training runs out of memory."
            )

        self.config.setdefault('resources', {})['max_memory_mb'] = config_max_ram

    def _propagate_seeds(self) -> None:
        """
        Propagate master seed to internal components for full pipeline reproducibility.
        Offsets keep the split and model random streams independent.
        """
        master_seed = self.config['splitting'].get('seed', constants.DEFAULT_SEED)

        self.config['_internal_seeds'] = {
            'split': master_seed,
            'model': master_seed + 2000,
        }
        self.logger.debug(f"Seeds propagated from master ({master_seed}): {self.config['_internal_seeds']}")
