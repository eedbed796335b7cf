"""
Ledger Service - the core of the time-locked savings system.

This service enforces the fundamental rules:
1. A balance never goes negative
2. Locking funds debits the balance in the same step the box is created
3. A lock box is released at most once, and its amount is credited
   back exactly once, at that release
4. Every state change is reported to the audit sink exactly once

No other component moves money. The session flows and the background
scanner both go through this service.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

import structlog

from timelock.audit import AuditLogger
from timelock.clock import Clock, SystemClock, is_mature, whole_seconds_up
from timelock.context import AppContext
from timelock.errors import (
    AlreadyReleased,
    InsufficientFunds,
    InvalidAmount,
    LockBoxNotMatured,
)
from timelock.models.account import Account
from timelock.models.lockbox import LockBox, ReleaseEvent

logger = structlog.get_logger(__name__)

AmountLike = Union[Decimal, int, str, float]

CENT = Decimal("0.01")


def to_amount(value: AmountLike) -> Decimal:
    """
    Normalize user input to a positive Decimal with at most 2 places.

    Raises InvalidAmount for anything else.
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Not a valid amount: {value!r}")
    if not amount.is_finite():
        raise InvalidAmount(f"Not a valid amount: {value!r}")
    if amount <= 0:
        raise InvalidAmount(f"Amount must be greater than zero, got {amount}")
    try:
        cents = amount.quantize(CENT)
    except InvalidOperation:
        raise InvalidAmount(f"Not a valid amount: {value!r}")
    if cents != amount:
        raise InvalidAmount(f"Amount has more than 2 decimal places: {amount}")
    return cents


class LedgerService:
    """
    All balance and lock box operations pass through this service.

    The service takes the application context, a clock and an audit
    logger as constructor arguments, so tests can inject a simulated
    clock and in-memory audit storage.
    """

    def __init__(
        self,
        context: AppContext,
        clock: Optional[Clock] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.context = context
        self.clock = clock or SystemClock()
        self.audit_logger = audit_logger or AuditLogger()

    # -------------------------------------------------------------------------
    # Balance operations
    # -------------------------------------------------------------------------

    def create_lock_box(
        self,
        account: Account,
        amount: AmountLike,
        unlock_at: datetime,
    ) -> LockBox:
        """
        Lock `amount` from the account's balance until `unlock_at`.

        Raises:
            InvalidAmount: amount is not positive or has more than 2 places
            InsufficientFunds: amount exceeds the current balance

        If any check fails, neither the balance nor the lock box
        collection is touched.
        A sub-second `unlock_at` is rounded up to the next whole second.
        """
        amount = to_amount(amount)
        if unlock_at.tzinfo is None:
            unlock_at = unlock_at.replace(tzinfo=timezone.utc)
        unlock_at = whole_seconds_up(unlock_at)

        with self.context.account_lock(account.username):
            # Checked before an id is allocated
            if amount > account.balance:
                raise InsufficientFunds(available=account.balance, requested=amount)

            now = self.clock.now()
            box = LockBox(
                id=self.context.sequence.next_id(),
                amount=amount,
                unlock_at=unlock_at,
                created_at=now,
                owner=account.username,
            )
            account.debit(amount)
            account.lock_boxes.append(box)

        logger.info(
            "lock_box_created",
            username=account.username,
            lock_box_id=box.id,
            amount=str(amount),
            unlock_at=unlock_at.isoformat(),
        )
        self.audit_logger.log_lock_box_created(
            username=account.username,
            lock_box_id=box.id,
            amount=amount,
            unlock_at=unlock_at,
            timestamp=now,
        )
        return box

    def deposit(self, account: Account, amount: AmountLike) -> Decimal:
        """Credit fresh funds to the balance. Returns the new balance."""
        amount = to_amount(amount)
        with self.context.account_lock(account.username):
            account.credit(amount)
            new_balance = account.balance

        self.audit_logger.log_balance_updated(
            username=account.username,
            amount=amount,
            new_balance=new_balance,
            timestamp=self.clock.now(),
        )
        return new_balance

    def toggle_active(self, account: Account, actor: str) -> bool:
        """
        Flip the account's active flag. Returns the new state.

        Balance and lock boxes are untouched; the transition is always
        reported to the audit sink.
        """
        with self.context.account_lock(account.username):
            was_active = account.is_active
            account.is_active = not was_active

        logger.info(
            "account_status_changed",
            username=account.username,
            is_active=account.is_active,
            actor=actor,
        )
        self.audit_logger.log_user_status_changed(
            username=account.username,
            was_active=was_active,
            actor=actor,
            timestamp=self.clock.now(),
        )
        return account.is_active

    # -------------------------------------------------------------------------
    # Release
    # -------------------------------------------------------------------------

    def _release(self, account: Account, box: LockBox, now: datetime) -> ReleaseEvent:
        """
        Release one box and credit its owner.

        Caller holds the account lock. LockBox.release() raises
        AlreadyReleased before any money moves.
        """
        box.release(now)
        account.credit(box.amount)
        event = ReleaseEvent.from_lock_box(box, now)
        self.context.append_release_event(event)

        self.audit_logger.log_lock_box_released(
            username=account.username,
            lock_box_id=box.id,
            amount=box.amount,
            released_at=event.released_at,
        )
        return event

    def release_lock_box(self, account: Account, lock_box_id: int) -> ReleaseEvent:
        """
        Release a single matured box on request.

        Raises:
            LockBoxNotFound: the id does not belong to this account
            AlreadyReleased: the box was released before
            LockBoxNotMatured: the unlock time has not been reached
        """
        with self.context.account_lock(account.username):
            box = account.get_lock_box(lock_box_id)
            if not box.is_active:
                raise AlreadyReleased(box.id)
            now = self.clock.now()
            if not is_mature(box.unlock_at, now):
                raise LockBoxNotMatured(
                    f"Lock box {box.id} unlocks in {box.time_remaining(now)}"
                )
            return self._release(account, box, now)

    def scan_account(self, account: Account) -> list[ReleaseEvent]:
        """
        Release every matured box on the account, in creation order.

        Returns the release events produced by this scan.
        """
        released = []
        with self.context.account_lock(account.username):
            now = self.clock.now()
            for box in account.lock_boxes:
                if box.maturity_check(now):
                    released.append(self._release(account, box, now))

        if released:
            logger.info(
                "release_scan_completed",
                username=account.username,
                released=len(released),
                total=str(sum((e.amount for e in released), Decimal("0"))),
            )
        return released

    def scan_all(self) -> list[ReleaseEvent]:
        """Run the release scan for every account, one account at a time."""
        released = []
        for account in self.context.list_accounts():
            released.extend(self.scan_account(account))
        return released
