#!/usr/bin/env python
"""
Secchi ML Pipeline - Main Entry Point
Predicts Secchi depth from remote-sensing reflectance: baseline models on a
naive random split and on a spatial split, then grid-search tuning of the
boosting model on the spatial split.
"""
import sys
import os
import signal
import logging
import argparse
import traceback
import random
from typing import Any, Dict, List, Optional

import pandas as pd
import numpy as np

from secchi_ml.config_manager import ConfigurationManager
from secchi_ml.logging_config import LoggingConfigurator
from secchi_ml.data_manager import DataManager
from secchi_ml.split_engine import SplitEngine
from secchi_ml.training_engine import TrainingEngine
from secchi_ml.evaluation_engine import EvaluationEngine
from secchi_ml.hpo_search_engine import HPOSearchEngine, CancellationToken, results_frame
from secchi_ml.utils.exceptions import SecchiMLException, AllTrialsFailedError, SearchCancelledError
from secchi_ml.utils import constants

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NO_VIABLE_COMBINATION = 2
EXIT_INTERRUPTED = 130


def parse_arguments(argv: Optional[List[str]] = None):
    """
    Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed command-line arguments.
    """
    parser = argparse.ArgumentParser(
        description="Secchi ML Pipeline - baselines, spatial evaluation & grid search",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        "--config",
        type=str,
        default=constants.DEFAULT_CONFIG_PATH,
        help="Path to the configuration JSON file"
    )

    parser.add_argument(
        "--schema",
        type=str,
        default=constants.DEFAULT_SCHEMA_PATH,
        help="Path to the configuration JSON schema"
    )

    parser.add_argument(
        "--results-csv",
        type=str,
        default=None,
        help="Optional path to write the grid-search results table as CSV"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and data without training anything"
    )

    return parser.parse_args(argv)


def setup_global_determinism(config: dict, logger: logging.Logger):
    """
    Seed the global random generators. Model seeds are passed explicitly
    through the training engine; this covers anything that falls back to
    global state.
    """
    seed = config.get('splitting', {}).get('seed', constants.DEFAULT_SEED)
    logger.info(f"Setting Global Deterministic Seed: {seed}")

    random.seed(seed)
    np.random.seed(seed)
    os.environ['PYTHONHASHSEED'] = str(seed)


def run_baselines(config: dict, logger: logging.Logger, df: pd.DataFrame,
                  strategy: str) -> List[Dict[str, Any]]:
    """Fit every configured baseline on one split strategy and score it."""
    split = SplitEngine(config, logger).execute(df, strategy=strategy)
    trainer = TrainingEngine(config, logger)
    evaluator = EvaluationEngine(config, logger)

    rows = []
    for entry in config.get('models', {}).get('baselines', []):
        model = trainer.execute(split.train, entry)
        metrics = evaluator.execute(model, split.evaluation, f"{strategy}/{entry['model']}")
        rows.append({'split': strategy, 'model': entry['model'], **metrics})
    return rows


def run_search(config: dict, logger: logging.Logger, df: pd.DataFrame,
               results_csv: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Grid search on the configured split, then refit the best combination and
    report its metrics.

    Ctrl+C during the search cancels it cooperatively; the best of the
    completed trials is still reported.

    Raises:
        AllTrialsFailedError: No combination could be trained and scored.
        SearchCancelledError: Cancelled before any trial completed.
    """
    hpo_cfg = config.get('hyperparameters', {})
    if not hpo_cfg.get('enabled', False):
        logger.info("HPO disabled (config: hyperparameters.enabled = false)")
        return None

    strategy = hpo_cfg.get('split', constants.SPLIT_SPATIAL)
    split = SplitEngine(config, logger).execute(df, strategy=strategy)

    token = CancellationToken()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: token.cancel())
    try:
        outcome = HPOSearchEngine(config, logger).execute(split, cancel_token=token)
    finally:
        signal.signal(signal.SIGINT, previous)

    if results_csv:
        results_frame(outcome).to_csv(results_csv, index=False)
        logger.info(f"Grid-search results written to {results_csv}")

    best = outcome.require_best()
    if outcome.cancelled:
        logger.warning("Search stopped early; reporting the best of the completed trials.")

    model_name = hpo_cfg['model']
    model = TrainingEngine(config, logger).execute(
        split.train, {'model': model_name, 'params': best.combination.to_dict()}
    )
    metrics = EvaluationEngine(config, logger).execute(model, split.evaluation, f"{strategy}/{model_name}/tuned")

    return {
        'split': strategy,
        'model': f"{model_name} (tuned)",
        'params': best.combination.to_dict(),
        'search_score': best.score,
        **metrics
    }


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main pipeline orchestration function.

    Returns:
        int: 0 on success, 1 on errors, 2 when no grid combination was viable,
        130 when interrupted.
    """
    logger = None

    try:
        args = parse_arguments(argv)

        print("\n" + "=" * 80)
        print("    SECCHI DEPTH PREDICTION PIPELINE")
        print("=" * 80 + "\n")

        # ---------------------------------------------------------------
        # PHASE 0: INITIALIZATION & VALIDATION
        # ---------------------------------------------------------------
        config_manager = ConfigurationManager(config_path=args.config, schema_path=args.schema)
        config = config_manager.load_and_validate()

        logging_configurator = LoggingConfigurator(config, verbose=args.verbose)
        logging_configurator.setup()
        logger = logging_configurator.get_logger('pipeline')

        logger.info(f"Configuration loaded from: {args.config}")
        logger.info(f"Run ID: {config_manager.generate_run_id()} (config sha256 {config_manager.config_hash()[:12]})")

        setup_global_determinism(config, logger)

        # ---------------------------------------------------------------
        # PHASE 1: DATA INGESTION
        # ---------------------------------------------------------------
        logger.info("=" * 60)
        logger.info("PHASE 1: DATA INGESTION")
        logger.info("=" * 60)

        df = DataManager(config, logger).execute()

        if args.dry_run:
            logger.info("Dry run mode: validation complete. Exiting without training.")
            print("\n[SUCCESS] Configuration and data validated successfully.")
            return EXIT_OK

        # ---------------------------------------------------------------
        # PHASE 2: BASELINES (random split vs spatial split)
        # ---------------------------------------------------------------
        logger.info("=" * 60)
        logger.info("PHASE 2: BASELINE MODELS")
        logger.info("=" * 60)

        rows = run_baselines(config, logger, df, constants.SPLIT_RANDOM)
        if config['data'].get('part_column'):
            rows += run_baselines(config, logger, df, constants.SPLIT_SPATIAL)

        # ---------------------------------------------------------------
        # PHASE 3: HYPERPARAMETER SEARCH
        # ---------------------------------------------------------------
        logger.info("=" * 60)
        logger.info("PHASE 3: HYPERPARAMETER SEARCH")
        logger.info("=" * 60)

        tuned = run_search(config, logger, df, results_csv=args.results_csv)
        if tuned is not None:
            rows.append({k: v for k, v in tuned.items() if k not in ('params', 'search_score')})
            logger.info(f"Best parameters: {tuned['params']}")

        # ---------------------------------------------------------------
        # COMPLETION
        # ---------------------------------------------------------------
        summary = pd.DataFrame(rows)
        logger.info("Summary:\n" + summary.to_string(index=False, float_format=lambda v: f"{v:.4f}"))
        print("\n[SUCCESS] Pipeline completed.")
        return EXIT_OK

    except AllTrialsFailedError as e:
        msg = f"No viable combination: {str(e)}"
        print(f"\n[ERROR] {msg}")
        if logger:
            logger.error(msg)
        return EXIT_NO_VIABLE_COMBINATION

    except SearchCancelledError as e:
        print(f"\n[INTERRUPTED] {str(e)}")
        if logger:
            logger.warning(str(e))
        return EXIT_INTERRUPTED

    except SecchiMLException as e:
        msg = f"Pipeline Error: {str(e)}"
        print(f"\n[ERROR] {msg}")
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return EXIT_ERROR

    except KeyboardInterrupt:
        print("\n[INTERRUPTED] Pipeline interrupted by user.")
        if logger:
            logger.warning("Pipeline interrupted by user (Ctrl+C)")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
