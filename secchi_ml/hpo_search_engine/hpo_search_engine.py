import pandas as pd
import logging
from typing import List, Optional

from secchi_ml.base.base_engine import BaseEngine
from secchi_ml.evaluation_engine import EvaluationEngine
from secchi_ml.hpo_search_engine.grid import Constraint
from secchi_ml.hpo_search_engine.search import CancellationToken, SearchOutcome, search
from secchi_ml.split_engine import DatasetSplit
from secchi_ml.training_engine import TrainingEngine
from secchi_ml.utils.error_handling import handle_engine_errors
from secchi_ml.utils import constants


def results_frame(outcome: SearchOutcome) -> pd.DataFrame:
    """
    One row per trial in grid order: parameters, score, status, failure
    detail and an ``is_best`` flag.
    """
    rows = []
    best_index = outcome.best.index if outcome.best is not None else None
    for r in outcome.results:
        rows.append({
            'trial': r.index,
            **r.combination.to_dict(),
            'score': r.score,
            'status': r.status,
            'failure_kind': r.failure.kind if r.failure else None,
            'failure_message': r.failure.message if r.failure else None,
            'duration_seconds': r.duration_seconds,
            'is_best': r.index == best_index,
        })
    return pd.DataFrame(rows)


class HPOSearchEngine(BaseEngine):
    """
    Hyperparameter Optimization Engine.

    Wires the configured model, grid and metric into the generic grid-search
    driver: training goes through TrainingEngine's train function, scoring
    through EvaluationEngine's eval function, pool sizing comes from the
    'execution' section.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        self.hpo_config = config.get('hyperparameters', {})
        self.exec_config = config.get('execution', {})
        self.max_configs = self.config.get('resources', {}).get('max_hpo_configs', constants.DEFAULT_MAX_HPO_CONFIGS)
        self.trainer = TrainingEngine(config, logger)
        self.evaluator = EvaluationEngine(config, logger)

    def _get_stage_name(self) -> str:
        return "Grid Search"

    @property
    def metric(self) -> str:
        return self.hpo_config.get('metric', constants.METRIC_RMSE)

    @handle_engine_errors("Grid Search")
    def execute(self, split: DatasetSplit,
                cancel_token: Optional[CancellationToken] = None,
                constraints: Optional[List[Constraint]] = None) -> Optional[SearchOutcome]:
        """
        Run the grid search on ``split``.

        Returns:
            SearchOutcome, or None when HPO is disabled. An outcome whose
            ``best`` is None means no viable combination was found.
        """
        if not self.hpo_config.get('enabled', False):
            self.logger.info("HPO disabled. Skipping grid search.")
            return None

        model_name = self.hpo_config['model']
        self.logger.info(
            f"Starting {self.stage_name} for {model_name} on the {split.strategy} split "
            f"(metric: {self.metric})..."
        )

        max_trials = self.hpo_config.get('max_trials')
        max_trials = self.max_configs if max_trials is None else min(max_trials, self.max_configs)

        outcome = search(
            self.hpo_config['grid'],
            self.trainer.make_train_fn(model_name),
            self.evaluator.make_eval_fn(self.metric),
            split.train,
            split.evaluation,
            n_jobs=self.exec_config.get('n_jobs', 1),
            max_workers=self.exec_config.get('max_workers'),
            inner_threads=self.exec_config.get('inner_threads', 1),
            backend=self.exec_config.get('backend'),
            cancel_token=cancel_token,
            max_trials=max_trials,
            constraints=constraints,
            log=self.logger,
        )

        self._log_summary(model_name, outcome)
        return outcome

    def _log_summary(self, model_name: str, outcome: SearchOutcome) -> None:
        n_failed = len(outcome.failures)
        self.logger.info(
            f"{model_name}: {len(outcome.results)}/{outcome.grid_size} combinations tried, {n_failed} failed."
        )
        if not outcome.results:
            self.logger.warning(f"{model_name}: search stopped before any trial completed.")
        elif outcome.best is None:
            self.logger.error(f"{model_name}: no viable combination.")
        else:
            self.logger.info(
                f"{model_name}: best {self.metric}={outcome.best.score:.4f} "
                f"with {outcome.best.combination.to_dict()}"
            )
