"""
Shared utilities: numerical constants and logging setup.
"""

from .logging import configure_logging
from . import constants

__all__ = [
    'configure_logging',
    'constants',
]
