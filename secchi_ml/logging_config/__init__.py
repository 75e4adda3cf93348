"""
Logging Config Module
=====================

Responsibility:
- Root logger setup with a colored console handler.
- Rotating UTF-8 file log under logs/.
"""

from .logging_config import LoggingConfigurator, ColoredFormatter

__all__ = ['LoggingConfigurator', 'ColoredFormatter']
