"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
In-memory storage serves tests and single-process use; Google Sheets is the
shared backend. Both follow the same interface so they can be swapped.
"""

from group_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GroupStorageInterface,
    NotFoundError,
    StorageError,
    UserDirectoryInterface,
)
from group_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryGroupStorage,
    InMemoryUserDirectory,
)
from group_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsGroupStorage,
    GoogleSheetsUserDirectory,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "GroupStorageInterface",
    "UserDirectoryInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryGroupStorage",
    "InMemoryUserDirectory",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsGroupStorage",
    "GoogleSheetsUserDirectory",
]
