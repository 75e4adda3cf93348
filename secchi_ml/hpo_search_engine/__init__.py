"""
HPO Search Engine
=================

Responsibility:
- Typed parameter domains and the grid (Cartesian product) built from them.
- Exhaustive grid search with per-trial failure isolation.
- Parallel trial execution with deterministic result ordering.
- Cooperative cancellation and trial budgets.
"""

from .grid import Combination, ChoiceDomain, RangeDomain, ParameterSpace, parse_domain
from .search import (
    search,
    select_best,
    resolve_n_jobs,
    CancellationToken,
    SearchOutcome,
    TrialFailure,
    TrialResult,
)
from .hpo_search_engine import HPOSearchEngine, results_frame

__all__ = [
    'Combination',
    'ChoiceDomain',
    'RangeDomain',
    'ParameterSpace',
    'parse_domain',
    'search',
    'select_best',
    'resolve_n_jobs',
    'CancellationToken',
    'SearchOutcome',
    'TrialFailure',
    'TrialResult',
    'HPOSearchEngine',
    'results_frame',
]
