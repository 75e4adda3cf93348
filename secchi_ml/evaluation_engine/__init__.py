"""
Evaluation Engine Module
========================

Responsibility:
- Regression error metrics (MAPE, RMSE, MAE, R2).
- The picklable eval function used by the grid search.
"""

from .evaluation_engine import EvaluationEngine, MetricScorer, compute_metrics

__all__ = ['EvaluationEngine', 'MetricScorer', 'compute_metrics']
