"""
SplitEngine for the Secchi depth pipeline.

Splits the validated dataset into a training set and an evaluation set. The
random split shuffles rows; it lets nearby, highly correlated samples land on
both sides and therefore flatters the model. The spatial split keeps every
row of a geographic partition on one side, which is the honest estimate of
performance at unseen locations.
"""
import pandas as pd
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence
from sklearn.model_selection import train_test_split, GroupShuffleSplit
from secchi_ml.base.base_engine import BaseEngine
from secchi_ml.utils.error_handling import handle_engine_errors
from secchi_ml.utils.exceptions import DataValidationError
from secchi_ml.utils import constants


@dataclass(frozen=True)
class DatasetSplit:
    """Training and evaluation tables. The evaluation set is only ever scored."""
    train: pd.DataFrame
    evaluation: pd.DataFrame
    strategy: str
    holdout_parts: tuple = ()

    def describe(self) -> str:
        text = f"{self.strategy} split: train={len(self.train)}, eval={len(self.evaluation)}"
        if self.holdout_parts:
            text += f", held-out parts={list(self.holdout_parts)}"
        return text


class SplitEngine(BaseEngine):
    """
    Builds a DatasetSplit with either the 'random' or the 'spatial' strategy.

    Partition labels in the part column are treated as arbitrary hashable
    labels; nothing assumes they are contiguous integers.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        self.split_cfg = self.config.get('splitting', {})
        self.part_column = self.config.get('data', {}).get('part_column')

    def _get_stage_name(self) -> str:
        return "Data Splitting"

    @handle_engine_errors("Data Splitting")
    def execute(self, df: pd.DataFrame, strategy: str = constants.SPLIT_RANDOM,
                holdout_parts: Optional[Sequence[Any]] = None) -> DatasetSplit:
        """
        Execute the splitting workflow.

        Args:
            df: Validated dataset.
            strategy: 'random' or 'spatial'.
            holdout_parts: Partitions to hold out (spatial only). Defaults to
                splitting.holdout_parts, then to a seeded random choice.
        """
        self.logger.info(f"Starting {self.stage_name} ({strategy})...")

        if strategy == constants.SPLIT_RANDOM:
            split = self._random_split(df)
        elif strategy == constants.SPLIT_SPATIAL:
            split = self._spatial_split(df, holdout_parts)
        else:
            raise DataValidationError(f"Unknown split strategy '{strategy}'. Use one of {constants.SPLIT_STRATEGIES}.")

        if split.train.empty or split.evaluation.empty:
            raise DataValidationError(f"Split produced an empty side ({split.describe()}).")

        self.logger.info(split.describe())
        return split

    def _random_split(self, df: pd.DataFrame) -> DatasetSplit:
        train, evaluation = train_test_split(
            df,
            test_size=self.split_cfg.get('test_size', 0.2),
            random_state=self._seed('split'),
            shuffle=True
        )
        return DatasetSplit(train, evaluation, constants.SPLIT_RANDOM)

    def _spatial_split(self, df: pd.DataFrame, holdout_parts: Optional[Sequence[Any]]) -> DatasetSplit:
        if not self.part_column:
            raise DataValidationError("Spatial split requires data.part_column.")
        if self.part_column not in df.columns:
            raise DataValidationError(f"Part column '{self.part_column}' not found in data.")

        parts = df[self.part_column]
        available = list(pd.unique(parts))
        if len(available) < 2:
            raise DataValidationError(
                f"Spatial split needs at least 2 partitions in '{self.part_column}', found {len(available)}."
            )

        if holdout_parts is None:
            holdout_parts = self.split_cfg.get('holdout_parts')

        if holdout_parts is not None:
            chosen = self._check_holdout(list(holdout_parts), available)
        else:
            chosen = self._pick_holdout(df)

        mask = parts.isin(chosen)
        return DatasetSplit(df.loc[~mask], df.loc[mask], constants.SPLIT_SPATIAL, tuple(chosen))

    def _check_holdout(self, requested: List[Any], available: List[Any]) -> List[Any]:
        unknown = [p for p in requested if p not in available]
        if unknown:
            raise DataValidationError(f"Held-out parts {unknown} not present in data. Available: {available}")
        if len(set(requested)) == len(available):
            raise DataValidationError("Cannot hold out every partition; nothing would be left to train on.")
        return requested

    def _pick_holdout(self, df: pd.DataFrame) -> List[Any]:
        """Seeded choice of held-out partitions covering roughly test_size of the partitions."""
        splitter = GroupShuffleSplit(
            n_splits=1,
            test_size=self.split_cfg.get('test_size', 0.2),
            random_state=self._seed('split')
        )
        groups = df[self.part_column]
        _, eval_idx = next(splitter.split(df, groups=groups))
        chosen = list(pd.unique(groups.iloc[eval_idx]))
        self.logger.info(f"Randomly held out partitions {chosen} of '{self.part_column}'.")
        return chosen
