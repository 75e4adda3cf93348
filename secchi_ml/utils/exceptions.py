"""
Custom exception hierarchy for the Secchi depth prediction pipeline.
"""

class SecchiMLException(Exception):
    """Base exception for all system errors."""
    pass

class ConfigurationError(SecchiMLException):
    """Configuration validation failed."""
    pass

class DataValidationError(SecchiMLException):
    """Data validation failed."""
    pass

class ModelTrainingError(SecchiMLException):
    """Model training failed."""
    pass

class PredictionError(SecchiMLException):
    """Prediction generation or scoring failed."""
    pass

class EmptyGridError(SecchiMLException):
    """The hyperparameter grid produces zero combinations."""
    pass

class AllTrialsFailedError(SecchiMLException):
    """Every combination in a search failed; there is no best result."""

    def __init__(self, message: str, n_trials: int = 0):
        super().__init__(message)
        self.n_trials = n_trials

class SearchCancelledError(SecchiMLException):
    """The search was stopped before any trial completed."""
    pass
