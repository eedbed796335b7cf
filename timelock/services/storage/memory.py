"""
In-Memory Storage

Drop-in replacements for the file-backed stores. Used by the test
suite and by dry runs where nothing should be written to disk.
"""

from typing import Optional

from timelock.models.account import Account
from timelock.models.audit import AuditEvent
from timelock.models.lockbox import ReleaseEvent
from timelock.services.storage.interface import (
    AuditStorageInterface,
    LedgerSnapshot,
    LedgerStorageInterface,
    StorageError,
)


class InMemoryAuditStorage(AuditStorageInterface):
    """Keeps audit events in a list, in append order."""

    def __init__(self, fail_with: Optional[Exception] = None):
        self.events: list[AuditEvent] = []
        self._fail_with = fail_with

    def append_event(self, event: AuditEvent) -> bool:
        if self._fail_with is not None:
            raise self._fail_with
        self.events.append(event)
        return True

    def get_events_by_user(self, username: str) -> list[AuditEvent]:
        return [e for e in self.events if e.username == username]


class InMemoryLedgerStore(LedgerStorageInterface):
    """
    Holds deep copies of the last saved state.

    Copies mean a later mutation of live objects does not leak into
    what was "persisted", which is what a real store guarantees.
    """

    def __init__(self, snapshot: Optional[LedgerSnapshot] = None):
        self._accounts: list[Account] = []
        self._release_log: list[ReleaseEvent] = []
        self.save_count = 0
        self.unavailable = False
        if snapshot is not None:
            self.save(list(snapshot.accounts.values()), snapshot.release_log)
            self.save_count = 0

    def load(self) -> LedgerSnapshot:
        if self.unavailable:
            raise StorageError("In-memory store marked unavailable")
        accounts = [a.model_copy(deep=True) for a in self._accounts]
        max_id = max(
            [box.id for a in accounts for box in a.lock_boxes]
            + [e.lock_box_id for e in self._release_log]
            + [0]
        )
        return LedgerSnapshot(
            accounts={a.username: a for a in accounts},
            release_log=list(self._release_log),
            next_lock_box_id=max_id + 1,
        )

    def save(
        self,
        accounts: list[Account],
        release_log: list[ReleaseEvent],
    ) -> None:
        if self.unavailable:
            raise StorageError("In-memory store marked unavailable")
        self._accounts = [a.model_copy(deep=True) for a in accounts]
        self._release_log = list(release_log)
        self.save_count += 1
