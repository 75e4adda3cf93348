"""
Model Factory Module
====================

Responsibility:
- Name -> regressor registry (scikit-learn and XGBoost).
- Constructor-argument filtering so one grid can target several models.
"""

from .model_factory import ModelFactory

__all__ = ['ModelFactory']
