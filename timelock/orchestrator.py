"""
Main Orchestrator for Time-Locked Savings

This module ties together all the components and defines the
three top-level flows:
1. Registration (username + password + optional opening deposit)
2. User session (login -> release scan -> ledger operations -> logout)
3. Admin session (login -> user management and release log -> logout)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every login runs the release scan before anything else
- No ledger operation runs without a logged-in session
- Every state change is audited exactly once (by the ledger or here)

All state lives on the AppContext built by create_app_components();
nothing here reads module-level globals, so tests can inject a
simulated clock and in-memory stores.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

import structlog

from timelock.audit import AuditLogger
from timelock.clock import Clock, SystemClock
from timelock.config import Settings, get_settings
from timelock.context import AppContext
from timelock.errors import (
    AccountInactive,
    DuplicateAccount,
    InvalidCredential,
    InvalidUnlockTime,
    NotLoggedIn,
)
from timelock.ledger import LedgerService, to_amount
from timelock.models.account import Account, AdminIdentity
from timelock.models.lockbox import LockBox, ReleaseEvent
from timelock.models.query import LockBoxQuery, QueryResult
from timelock.queries import QueryExecutor
from timelock.services.scheduler import PeriodicReleaseScanner
from timelock.services.storage import (
    AuditStorageInterface,
    FileAuditStorage,
    FlatFileStore,
    LedgerStorageInterface,
)

logger = structlog.get_logger(__name__)


class RegistrationFlow:
    """
    Creates new user accounts.

    Usernames are unique and may not shadow the administrator.
    """

    def __init__(
        self,
        context: AppContext,
        ledger: LedgerService,
        admin: AdminIdentity,
    ):
        self._context = context
        self._ledger = ledger
        self._admin = admin

    def register(
        self,
        username: str,
        password: str,
        initial_deposit: Decimal = Decimal("0"),
    ) -> Account:
        """
        Register a new account with an optional opening balance.

        Raises:
            DuplicateAccount: username taken (or reserved for the admin)
            InvalidAmount: opening deposit negative or malformed
            pydantic.ValidationError: username/password unusable
        """
        opening = Decimal("0.00")
        if initial_deposit:
            opening = to_amount(initial_deposit)

        if username.strip() == self._admin.username:
            raise DuplicateAccount(f"Username '{username}' is reserved")

        account = Account(
            username=username,
            password=password,
            registered_at=self._ledger.clock.now(),
            balance=opening,
        )
        self._context.add_account(account)

        self._ledger.audit_logger.log_user_registered(
            username=account.username,
            initial_balance=account.balance,
            timestamp=account.registered_at,
        )
        logger.info("user_registered", username=account.username)
        return account


class UserSessionFlow:
    """
    One user's interactive session.

    Flow:
    1. Login -> credential and status checks
    2. Release scan -> matured boxes are credited back
    3. Ledger operations on the logged-in account
    4. Logout
    """

    def __init__(
        self,
        context: AppContext,
        ledger: LedgerService,
        queries: QueryExecutor,
        max_lock_duration: timedelta = timedelta(days=3650),
    ):
        self._context = context
        self._ledger = ledger
        self._queries = queries
        self._max_lock_duration = max_lock_duration

    @property
    def account(self) -> Account:
        """The logged-in account."""
        if self._context.current_user is None:
            raise NotLoggedIn("No user is logged in")
        return self._context.get_account(self._context.current_user)

    @property
    def is_logged_in(self) -> bool:
        return self._context.current_user is not None

    def login(self, username: str, password: str) -> tuple[Account, list[ReleaseEvent]]:
        """
        Authenticate and run the login-time release scan.

        Returns:
            (account, releases performed by the scan)

        Raises:
            AccountNotFound, InvalidCredential, AccountInactive.
            On any of these the session is left untouched.
        """
        account = self._context.get_account(username.strip())
        if not account.check_password(password):
            raise InvalidCredential("Incorrect password")
        if not account.is_active:
            raise AccountInactive(
                f"Account '{account.username}' has been deactivated. "
                "Contact the administrator."
            )

        if self._context.current_user is not None:
            self.logout()

        self._context.current_user = account.username
        self._ledger.audit_logger.log_user_login(account.username, self._ledger.clock.now())

        released = self._ledger.scan_account(account)
        return account, released

    def logout(self) -> None:
        account = self.account
        self._context.current_user = None
        self._ledger.audit_logger.log_user_logout(account.username, self._ledger.clock.now())

    def deposit(self, amount) -> Decimal:
        return self._ledger.deposit(self.account, amount)

    def create_lock_box(self, amount, duration: timedelta) -> LockBox:
        """
        Lock funds for `duration` from now.

        Raises:
            InvalidUnlockTime: duration not positive or above the limit
            InvalidAmount / InsufficientFunds: see LedgerService
        """
        if duration <= timedelta(0):
            raise InvalidUnlockTime("Lock duration must be positive")
        if duration > self._max_lock_duration:
            raise InvalidUnlockTime(
                f"Lock duration cannot exceed {self._max_lock_duration.days} days"
            )
        unlock_at = self._ledger.clock.now() + duration
        return self._ledger.create_lock_box(self.account, amount, unlock_at)

    def create_lock_box_until(self, amount, unlock_at: datetime) -> LockBox:
        return self._ledger.create_lock_box(self.account, amount, unlock_at)

    def check_releases(self) -> list[ReleaseEvent]:
        """Run the release scan on demand."""
        return self._ledger.scan_account(self.account)

    def release_lock_box(self, lock_box_id: int) -> ReleaseEvent:
        return self._ledger.release_lock_box(self.account, lock_box_id)

    def view_lock_boxes(
        self,
        show_active: bool = True,
        show_released: bool = True,
    ) -> QueryResult:
        return self._queries.view_lock_boxes(LockBoxQuery(
            username=self.account.username,
            show_active=show_active,
            show_released=show_released,
        ))

    def summary(self) -> QueryResult:
        return self._queries.account_summary(self.account.username)


class AdminSessionFlow:
    """
    The administrator's session.

    The administrator manages account status and the release log;
    it never moves money.
    """

    def __init__(
        self,
        context: AppContext,
        ledger: LedgerService,
        queries: QueryExecutor,
        admin: AdminIdentity,
    ):
        self._context = context
        self._ledger = ledger
        self._queries = queries
        self._admin = admin

    @property
    def is_logged_in(self) -> bool:
        return self._context.admin_logged_in

    def _require_login(self) -> None:
        if not self._context.admin_logged_in:
            raise NotLoggedIn("Administrator is not logged in")

    def login(self, username: str, password: str) -> AdminIdentity:
        if username.strip() != self._admin.username or not self._admin.check_password(password):
            raise InvalidCredential("Invalid administrator credentials")
        self._context.admin_logged_in = True
        self._ledger.audit_logger.log_admin_login(self._admin.username, self._ledger.clock.now())
        return self._admin

    def logout(self) -> None:
        self._require_login()
        self._context.admin_logged_in = False
        self._ledger.audit_logger.log_admin_logout(self._admin.username, self._ledger.clock.now())

    def list_users(self) -> QueryResult:
        self._require_login()
        return self._queries.list_users()

    def toggle_user_status(self, username: str) -> bool:
        """Activate or deactivate a user. Returns the new active flag."""
        self._require_login()
        account = self._context.get_account(username.strip())
        is_active = self._ledger.toggle_active(account, actor=self._admin.username)
        if not is_active and self._context.current_user == account.username:
            self._context.current_user = None
            self._ledger.audit_logger.log_user_logout(account.username, self._ledger.clock.now())
        return is_active

    def view_release_log(self, username: Optional[str] = None) -> QueryResult:
        self._require_login()
        return self._queries.view_release_log(username)

    def clear_release_log(self) -> int:
        """Remove every release record. Lock boxes are not affected."""
        self._require_login()
        removed = self._context.clear_release_log()
        logger.warning(
            "release_log_cleared",
            removed=removed,
            actor=self._admin.username,
        )
        return removed

    def release_all_matured(self) -> list[ReleaseEvent]:
        """Run the release scan for every account."""
        self._require_login()
        return self._ledger.scan_all()


@dataclass
class AppComponents:
    """Everything the console needs, wired together."""
    context: AppContext
    ledger: LedgerService
    queries: QueryExecutor
    registration: RegistrationFlow
    user_session: UserSessionFlow
    admin_session: AdminSessionFlow
    store: LedgerStorageInterface
    scanner: Optional[PeriodicReleaseScanner] = None

    def save(self) -> None:
        """Flush the entity graph. Blocks until the store has published it."""
        self.store.save(self.context.list_accounts(), self.context.release_log)

    def shutdown(self) -> None:
        """Stop background work, close open sessions, then flush."""
        if self.scanner is not None:
            self.scanner.stop()
        if self.user_session.is_logged_in:
            self.user_session.logout()
        if self.admin_session.is_logged_in:
            self.admin_session.logout()
        self.save()


def create_app_components(
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
    store: Optional[LedgerStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use; defaults to get_settings().
        clock: Time source; defaults to the system clock.
        store: Ledger persistence; defaults to flat files.
        audit_storage: Audit sink backend; defaults to receipt files
                       unless receipts are disabled in settings.

    Returns:
        AppComponents with state already loaded from the store.
        The background scanner is created but not started.
    """
    settings = settings or get_settings()
    storage_settings = settings.storage
    app_settings = settings.app
    admin_settings = settings.admin
    clock = clock or SystemClock()

    store = store or FlatFileStore(storage_settings)
    if audit_storage is None and storage_settings.write_receipts:
        audit_storage = FileAuditStorage(storage_settings)

    snapshot = store.load()
    context = AppContext.from_snapshot(snapshot)

    audit_logger = AuditLogger(audit_storage)
    ledger = LedgerService(context, clock=clock, audit_logger=audit_logger)
    queries = QueryExecutor(context, clock=clock)

    admin = AdminIdentity(
        username=admin_settings.username,
        password=admin_settings.password,
        registered_at=clock.now(),
    )

    scanner = None
    if app_settings.background_scan_enabled:
        scanner = PeriodicReleaseScanner(
            ledger,
            interval_seconds=app_settings.release_scan_interval_seconds,
        )

    return AppComponents(
        context=context,
        ledger=ledger,
        queries=queries,
        registration=RegistrationFlow(context, ledger, admin),
        user_session=UserSessionFlow(
            context,
            ledger,
            queries,
            max_lock_duration=timedelta(days=app_settings.max_lock_duration_days),
        ),
        admin_session=AdminSessionFlow(context, ledger, queries, admin),
        store=store,
        scanner=scanner,
    )
