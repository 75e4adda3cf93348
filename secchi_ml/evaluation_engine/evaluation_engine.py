import pandas as pd
import numpy as np
import logging
from typing import Any, Dict, List
from sklearn.metrics import (
    mean_absolute_error,
    mean_absolute_percentage_error,
    mean_squared_error,
    r2_score
)
from secchi_ml.base.base_engine import BaseEngine
from secchi_ml.utils.error_handling import handle_engine_errors
from secchi_ml.utils.exceptions import PredictionError
from secchi_ml.utils import constants


def _mape(y_true, y_pred) -> float:
    # Reported in percent.
    return float(mean_absolute_percentage_error(y_true, y_pred) * 100.0)

def _rmse(y_true, y_pred) -> float:
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))

def _mae(y_true, y_pred) -> float:
    return float(mean_absolute_error(y_true, y_pred))

METRIC_FUNCS = {
    constants.METRIC_MAPE: _mape,
    constants.METRIC_RMSE: _rmse,
    constants.METRIC_MAE: _mae,
}


def _check_lengths(y_true, y_pred) -> None:
    if len(y_true) != len(y_pred):
        raise PredictionError(
            f"Prediction length ({len(y_pred)}) does not match ground truth length ({len(y_true)})."
        )
    if len(y_true) == 0:
        raise PredictionError("Cannot score an empty evaluation set.")


def compute_metrics(y_true, y_pred) -> Dict[str, float]:
    """All report metrics for one set of predictions."""
    y_true = np.asarray(y_true, dtype=float).ravel()
    y_pred = np.asarray(y_pred, dtype=float).ravel()
    _check_lengths(y_true, y_pred)

    metrics = {name: func(y_true, y_pred) for name, func in METRIC_FUNCS.items()}
    metrics['r2'] = float(r2_score(y_true, y_pred)) if len(y_true) > 1 else float('nan')
    return metrics


class MetricScorer:
    """
    ``eval_fn`` for the grid search: predicts the evaluation set and returns
    one error metric (lower is better).
    """

    def __init__(self, metric: str, feature_columns: List[str], target_column: str):
        if metric not in METRIC_FUNCS:
            raise ValueError(f"Unknown metric '{metric}'. Available: {list(METRIC_FUNCS)}")
        self.metric = metric
        self.feature_columns = list(feature_columns)
        self.target_column = target_column

    def __call__(self, model: Any, eval_set: pd.DataFrame) -> float:
        y_true = eval_set[self.target_column].to_numpy(dtype=float)
        y_pred = np.asarray(model.predict(eval_set[self.feature_columns]), dtype=float).ravel()
        _check_lengths(y_true, y_pred)
        return METRIC_FUNCS[self.metric](y_true, y_pred)


class EvaluationEngine(BaseEngine):
    """
    Scores a fitted model on a held-out table and logs the metrics.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        self.feature_columns = list(self.config['data']['feature_columns'])
        self.target_column = self.config['data']['target_column']

    def _get_stage_name(self) -> str:
        return "Evaluation"

    def make_eval_fn(self, metric: str) -> MetricScorer:
        return MetricScorer(metric, self.feature_columns, self.target_column)

    @handle_engine_errors("Evaluation")
    def execute(self, model: Any, eval_df: pd.DataFrame, label: str) -> Dict[str, float]:
        """
        Compute metrics for ``model`` on ``eval_df``.

        Parameters:
            model: Fitted estimator with a ``predict`` method.
            eval_df: Evaluation table with features and target.
            label: Name used in the log line, e.g. 'random/LinearRegression'.

        Returns:
            dict: metric name -> value.
        """
        preds = model.predict(eval_df[self.feature_columns])
        metrics = compute_metrics(eval_df[self.target_column], preds)
        self.logger.info(
            f"[{label}] MAPE={metrics['mape']:.2f}%  RMSE={metrics['rmse']:.4f}  "
            f"MAE={metrics['mae']:.4f}  R2={metrics['r2']:.3f}  (n={len(eval_df)})"
        )
        return metrics
