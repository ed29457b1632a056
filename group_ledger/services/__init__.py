"""Services package."""

from group_ledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsGroupStorage,
    GoogleSheetsUserDirectory,
    GroupStorageInterface,
    InMemoryAuditStorage,
    InMemoryGroupStorage,
    InMemoryUserDirectory,
    NotFoundError,
    StorageError,
    UserDirectoryInterface,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsGroupStorage",
    "GoogleSheetsUserDirectory",
    "GroupStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryGroupStorage",
    "InMemoryUserDirectory",
    "NotFoundError",
    "StorageError",
    "UserDirectoryInterface",
]
