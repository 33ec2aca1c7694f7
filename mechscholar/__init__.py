"""
MechScholar Progression Engine
Version: 2.0

Persistent rewards, achievements, power-ups, events and adaptive difficulty
for an educational mech game.
"""

import logging

# Package metadata
__version__ = "2.0.0"
__author__ = "MechScholar"

# Library code never configures handlers; applications call setup_logger
logging.getLogger(__name__).addHandler(logging.NullHandler())

from .config import ConfigManager, get_config_manager  # noqa: E402
from .engine import AnswerOutcome, ProgressionEngine, create_engine  # noqa: E402

__all__ = [
    'ConfigManager', 'get_config_manager',
    'AnswerOutcome', 'ProgressionEngine', 'create_engine',
    '__version__',
]
