"""
Application Context

All process-wide mutable state lives on one AppContext object that is
passed to the services that need it: the account registry, the global
release log, the lock box id sequence and the session flags.

Concurrency: one re-entrant lock per account. Every ledger mutation on
an account holds that account's lock, so the background release scanner
and the interactive session never interleave on the same lock boxes.
"""

import threading
from typing import Optional

from timelock.errors import AccountNotFound, DuplicateAccount
from timelock.models.account import Account
from timelock.models.lockbox import LockBoxSequence, ReleaseEvent
from timelock.services.storage.interface import LedgerSnapshot


class AppContext:
    """Process-scoped state shared by the session flows and the ledger."""

    def __init__(
        self,
        accounts: Optional[dict[str, Account]] = None,
        release_log: Optional[list[ReleaseEvent]] = None,
        sequence: Optional[LockBoxSequence] = None,
    ):
        self.accounts: dict[str, Account] = accounts or {}
        self._release_log: list[ReleaseEvent] = release_log or []
        self.sequence = sequence or LockBoxSequence()

        # Session flags
        self.current_user: Optional[str] = None
        self.admin_logged_in: bool = False

        self._registry_lock = threading.Lock()
        self._release_log_lock = threading.Lock()
        self._account_locks: dict[str, threading.RLock] = {}

    @classmethod
    def from_snapshot(cls, snapshot: LedgerSnapshot) -> 'AppContext':
        """Build a context from loaded state, reseeding the id sequence."""
        return cls(
            accounts=dict(snapshot.accounts),
            release_log=list(snapshot.release_log),
            sequence=LockBoxSequence(snapshot.next_lock_box_id),
        )

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    def account_lock(self, username: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._account_locks.get(username)
            if lock is None:
                lock = threading.RLock()
                self._account_locks[username] = lock
            return lock

    def get_account(self, username: str) -> Account:
        with self._registry_lock:
            account = self.accounts.get(username)
        if account is None:
            raise AccountNotFound(f"No account registered as '{username}'")
        return account

    def add_account(self, account: Account) -> None:
        with self._registry_lock:
            if account.username in self.accounts:
                raise DuplicateAccount(f"Username '{account.username}' is already taken")
            self.accounts[account.username] = account

    def list_accounts(self) -> list[Account]:
        """Accounts in registration order."""
        with self._registry_lock:
            accounts = list(self.accounts.values())
        return sorted(accounts, key=lambda a: (a.registered_at, a.username))

    # -------------------------------------------------------------------------
    # Release log
    # -------------------------------------------------------------------------

    def append_release_event(self, event: ReleaseEvent) -> None:
        with self._release_log_lock:
            self._release_log.append(event)

    @property
    def release_log(self) -> list[ReleaseEvent]:
        """A copy of the release log in append order."""
        with self._release_log_lock:
            return list(self._release_log)

    def clear_release_log(self) -> int:
        """Administrative clear. Returns the number of records removed."""
        with self._release_log_lock:
            removed = len(self._release_log)
            self._release_log.clear()
            return removed
