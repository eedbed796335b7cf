"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the flat files for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally small. The ledger state is loaded once
at startup and flushed once at shutdown; audit events are appended
as they happen.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from timelock.models.account import Account
from timelock.models.audit import AuditEvent
from timelock.models.lockbox import ReleaseEvent


@dataclass
class LedgerSnapshot:
    """
    The full entity graph as loaded from storage.

    `next_lock_box_id` is max(loaded lock box ids) + 1, or 1 for an
    empty store.
    """
    accounts: dict[str, Account] = field(default_factory=dict)
    release_log: list[ReleaseEvent] = field(default_factory=list)
    next_lock_box_id: int = 1
    skipped_records: int = 0


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger persistence.

    Any storage implementation (flat files, SQLite, etc.)
    must implement these methods.
    """

    @abstractmethod
    def load(self) -> LedgerSnapshot:
        """
        Load accounts, their lock boxes and the release log.

        Malformed records are skipped, never fatal.

        Raises:
            StorageError: If the storage medium cannot be read at all
        """
        pass

    @abstractmethod
    def save(
        self,
        accounts: list[Account],
        release_log: list[ReleaseEvent],
    ) -> None:
        """
        Persist the full entity graph.

        Either the new state is published or the previously saved
        state is left intact.

        Raises:
            StorageError: If the storage medium is unavailable
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log and write its receipt.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_user(self, username: str) -> list[AuditEvent]:
        """
        Get all events recorded for a user.

        Args:
            username: The acting account identifier

        Returns:
            List of events in chronological order
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class PersistenceCorrupt(StorageError):
    """A stored record could not be parsed."""

    def __init__(self, source: str, line_number: int, reason: str):
        self.source = source
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"{source}:{line_number}: {reason}")
