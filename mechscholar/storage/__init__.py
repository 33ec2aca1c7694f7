"""
MechScholar Storage Package
Save envelopes, migration and key/value backends
"""

from .backends import CookieJarBackend, FileBackend, KeyValueBackend, MemoryBackend
from .migration import CURRENT_FORMAT_VERSION, default_progress, migrate_document
from .save_manager import SaveManager, create_save_manager

__all__ = [
    'KeyValueBackend', 'FileBackend', 'CookieJarBackend', 'MemoryBackend',
    'CURRENT_FORMAT_VERSION', 'default_progress', 'migrate_document',
    'SaveManager', 'create_save_manager',
]
