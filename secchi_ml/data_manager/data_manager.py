import pandas as pd
import numpy as np
import logging
from pathlib import Path
from typing import List, Optional

from secchi_ml.utils.exceptions import DataValidationError
from secchi_ml.utils.error_handling import handle_engine_errors

class DataManager:
    """
    Loads the reflectance/Secchi table and checks it is usable for modelling.

    Target and feature columns are coerced to numeric. Rows missing any
    required value are dropped when ``data.drop_missing`` is set, otherwise
    they are reported as a validation error.
    """

    READERS = {
        '.csv': pd.read_csv,
        '.parquet': pd.read_parquet,
        '.xlsx': pd.read_excel,
        '.xls': pd.read_excel,
    }

    def __init__(self, config: dict, logger: logging.Logger):
        self.config = config
        self.logger = logger
        self.data_cfg = config['data']
        self.data: Optional[pd.DataFrame] = None

    @property
    def target_column(self) -> str:
        return self.data_cfg['target_column']

    @property
    def feature_columns(self) -> List[str]:
        return list(self.data_cfg['feature_columns'])

    @property
    def part_column(self) -> Optional[str]:
        return self.data_cfg.get('part_column')

    def required_columns(self) -> List[str]:
        cols = [self.target_column] + self.feature_columns
        if self.part_column:
            cols.append(self.part_column)
        return cols

    @handle_engine_errors("Data Management")
    def execute(self, df: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        """
        Load (unless a frame is given) and validate the dataset.

        Returns:
            pd.DataFrame: A new, validated frame; the input is never modified.
        """
        self.logger.info("Starting Data Manager execution...")
        raw = self.load_data() if df is None else df
        self.data = self.validate(raw)
        self.logger.info(
            f"Dataset ready: {len(self.data)} rows, {len(self.feature_columns)} features, "
            f"target '{self.target_column}'."
        )
        return self.data

    def load_data(self) -> pd.DataFrame:
        """Load data from the file path specified in config."""
        path = Path(self.data_cfg['file_path'])
        if not path.exists():
            raise DataValidationError(f"Data file not found: {path}")

        reader = self.READERS.get(path.suffix.lower())
        if reader is None:
            raise DataValidationError(f"Unsupported file extension: {path.suffix}")

        self.logger.info(f"Loading data from {path}")
        df = reader(path)
        if df.empty:
            raise DataValidationError("Loaded dataframe is empty.")
        return df

    def validate(self, df: pd.DataFrame) -> pd.DataFrame:
        """Column presence, numeric coercion and missing-value handling."""
        missing = [c for c in self.required_columns() if c not in df.columns]
        if missing:
            raise DataValidationError(f"Missing required columns: {missing}")

        out = df.copy()
        numeric_cols = [self.target_column] + self.feature_columns
        for col in numeric_cols:
            out[col] = pd.to_numeric(out[col], errors='coerce')
        out[numeric_cols] = out[numeric_cols].replace([np.inf, -np.inf], np.nan)

        bad_rows = out[self.required_columns()].isna().any(axis=1)
        n_bad = int(bad_rows.sum())
        if n_bad:
            counts = out[self.required_columns()].isna().sum()
            detail = {k: int(v) for k, v in counts.items() if v}
            if not self.data_cfg.get('drop_missing', True):
                raise DataValidationError(f"{n_bad} rows have missing or non-numeric required values: {detail}")
            self.logger.warning(f"Dropping {n_bad} rows with missing or non-numeric required values: {detail}")
            out = out.loc[~bad_rows]

        if out.empty:
            raise DataValidationError("No rows left after removing missing values.")

        return out
