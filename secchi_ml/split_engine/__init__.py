"""
Split Engine Module
===================

Responsibility:
- Naive shuffled train/evaluation split.
- Spatial split that holds out whole geographic partitions.
"""

from .split_engine import SplitEngine, DatasetSplit

__all__ = ['SplitEngine', 'DatasetSplit']
