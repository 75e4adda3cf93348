# utils/constants.py

# --- Split Strategies ---
SPLIT_RANDOM = "random"
SPLIT_SPATIAL = "spatial"
SPLIT_STRATEGIES = (SPLIT_RANDOM, SPLIT_SPATIAL)

# --- Metrics (lower is better for all of them) ---
METRIC_MAPE = "mape"
METRIC_RMSE = "rmse"
METRIC_MAE = "mae"
SEARCH_METRICS = (METRIC_MAPE, METRIC_RMSE, METRIC_MAE)

# --- Trial Status ---
STATUS_OK = "ok"
STATUS_FAILED = "failed"

# --- Failure Kinds ---
FAILURE_TRAINING = "training"
FAILURE_EVALUATION = "evaluation"
FAILURE_CONSTRAINT = "constraint"

# --- Search Outcome Status ---
OUTCOME_BEST_FOUND = "best_found"
OUTCOME_ALL_FAILED = "all_failed"
OUTCOME_NO_TRIALS = "no_trials"

# --- Parameter Domain Types ---
DOMAIN_CHOICE = "choice"
DOMAIN_RANGE = "range"

# --- Defaults ---
DEFAULT_CONFIG_PATH = "config/config.json"
DEFAULT_SCHEMA_PATH = "config/schema.json"
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_FILE = "pipeline.log"
DEFAULT_MAX_HPO_CONFIGS = 1000
DEFAULT_SEED = 42
