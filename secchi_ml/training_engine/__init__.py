"""
Training Engine Module
======================

Responsibility:
- Prepares feature matrices (X) and target vectors (y) from DataFrames.
- Instantiates models via ModelFactory.
- Provides the picklable train function used by the grid search.
"""

from .training_engine import TrainingEngine, ModelTrainer

__all__ = ['TrainingEngine', 'ModelTrainer']
