#!/usr/bin/env python3
"""
Custom exceptions for the MechScholar progression engine.
"""

class MechScholarException(Exception):
    """Base exception class for all engine-specific errors."""
    pass

# --- Storage Errors ---
class StorageError(MechScholarException):
    """Raised for errors reading from or writing to a storage backend."""
    pass

class StorageQuotaExceeded(StorageError):
    """Raised when a backend refuses a value because it is too large."""
    pass

class SaveFormatError(StorageError):
    """Raised when a save envelope is corrupt or cannot be decoded."""
    pass

# --- Catalog Errors ---
class CatalogError(MechScholarException):
    """Raised when a catalog definition has no registered handler."""
    pass
