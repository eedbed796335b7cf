"""Services package."""

from timelock.services.scheduler import PeriodicReleaseScanner
from timelock.services.storage import (
    AuditStorageInterface,
    FileAuditStorage,
    FlatFileStore,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    LedgerSnapshot,
    LedgerStorageInterface,
    PersistenceCorrupt,
    StorageError,
)

__all__ = [
    # Background services
    "PeriodicReleaseScanner",
    # Storage services
    "AuditStorageInterface",
    "FileAuditStorage",
    "FlatFileStore",
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    "LedgerSnapshot",
    "LedgerStorageInterface",
    "PersistenceCorrupt",
    "StorageError",
]
