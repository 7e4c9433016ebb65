"""
FireSim Core Module

Contains core systems including configuration, constants, exceptions, logging
and the domain models.
"""

from .config import Settings, get_settings
from .constants import *
from .exceptions import *
from .logging_config import setup_logging, get_logger

__all__ = [
    'Settings',
    'get_settings',
    'setup_logging',
    'get_logger',
]
