"""
Data Manager Module
===================

Responsibility:
- Loading tabular input files (CSV, Parquet, Excel).
- Validation of required columns and numeric types.
- Handling of rows with missing required values.
"""

from .data_manager import DataManager

__all__ = ['DataManager']
