"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements pipe-delimited flat files as the backend, but designed
to be swappable.
"""

from timelock.services.storage.interface import (
    AuditStorageInterface,
    LedgerSnapshot,
    LedgerStorageInterface,
    PersistenceCorrupt,
    StorageError,
)
from timelock.services.storage.flat_file import FlatFileStore
from timelock.services.storage.receipts import FileAuditStorage
from timelock.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerSnapshot",
    "LedgerStorageInterface",
    # Exceptions
    "PersistenceCorrupt",
    "StorageError",
    # Flat file implementation
    "FileAuditStorage",
    "FlatFileStore",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
]
