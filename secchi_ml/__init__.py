"""
Secchi ML
=========

Water-clarity (Secchi depth) regression from remote-sensing reflectance,
with a generic grid-search driver for hyperparameter tuning.
"""

__version__ = "0.1.0"
