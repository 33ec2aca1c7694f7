"""
MechScholar Utilities Package
Common utilities and helper functions for the progression engine
"""

from .clock import Clock, ManualClock, SystemClock, ensure_clock
from .exceptions import (
    CatalogError,
    MechScholarException,
    SaveFormatError,
    StorageError,
    StorageQuotaExceeded,
)
from .logger import setup_logger
from .validators import round_half_up, validate_character_name, validate_subject, validate_week_number

__all__ = [
    'Clock', 'ManualClock', 'SystemClock', 'ensure_clock',
    'MechScholarException', 'StorageError', 'StorageQuotaExceeded',
    'SaveFormatError', 'CatalogError',
    'setup_logger',
    'validate_character_name', 'validate_subject', 'validate_week_number', 'round_half_up',
]
