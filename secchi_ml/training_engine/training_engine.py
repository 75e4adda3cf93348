import pandas as pd
import logging
import time
from typing import Any, Dict, List, Mapping, Optional

from secchi_ml.model_factory import ModelFactory
from secchi_ml.utils.exceptions import ModelTrainingError
from secchi_ml.base.base_engine import BaseEngine
from secchi_ml.utils.error_handling import handle_engine_errors


class ModelTrainer:
    """
    ``train_fn`` for the grid search: builds the named model with the base
    params overlaid by the trial's combination and fits it.

    A plain class rather than a closure so joblib workers can pickle it.
    """

    def __init__(self, model_name: str, feature_columns: List[str], target_column: str,
                 base_params: Optional[Dict[str, Any]] = None):
        self.model_name = model_name
        self.feature_columns = list(feature_columns)
        self.target_column = target_column
        self.base_params = dict(base_params or {})

    def __call__(self, combination: Mapping[str, Any], train_set: pd.DataFrame) -> Any:
        params = {**self.base_params, **dict(combination)}
        model = ModelFactory.create(self.model_name, params)
        model.fit(train_set[self.feature_columns], train_set[self.target_column])
        return model


class TrainingEngine(BaseEngine):
    """
    Fits a single model configuration on the full training set.
    Used for the baseline models and for refitting the best grid combination.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        self.feature_columns = list(self.config['data']['feature_columns'])
        self.target_column = self.config['data']['target_column']

    def _get_stage_name(self) -> str:
        return "Training"

    def base_params(self) -> Dict[str, Any]:
        """Seed and per-model thread count shared by every fit."""
        return {
            'random_state': self._seed('model'),
            'n_jobs': self.config.get('execution', {}).get('inner_threads', 1),
        }

    def make_train_fn(self, model_name: str) -> ModelTrainer:
        return ModelTrainer(model_name, self.feature_columns, self.target_column, self.base_params())

    @handle_engine_errors("Training")
    def execute(self, train_df: pd.DataFrame, model_config: Dict[str, Any]) -> Any:
        """
        Train the model on the full training dataset.

        Args:
            train_df: Training data containing features and target.
            model_config: Dictionary containing 'model' (name) and 'params'.

        Returns:
            Trained model object.
        """
        model_name = model_config.get('model')
        params = model_config.get('params', {})

        if not model_name:
            raise ModelTrainingError("Model configuration missing 'model' name.")
        if train_df.empty:
            raise ModelTrainingError("Training set is empty.")

        self.logger.info(f"Training {model_name} on {len(train_df)} samples with {len(self.feature_columns)} features.")

        trainer = self.make_train_fn(model_name)
        try:
            start_time = time.time()
            model = trainer(params, train_df)
            duration = time.time() - start_time
        except (ValueError, TypeError) as e:
            raise ModelTrainingError(f"Training {model_name} failed: {e}") from e

        self.logger.info(f"Training completed in {duration:.2f} seconds.")
        return model
