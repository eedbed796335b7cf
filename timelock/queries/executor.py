"""
Query Execution Engine

DESIGN DECISION: Query execution is read-only and deterministic.
Every answer is computed from the application context at the time
given by the injected clock, so "time remaining" displays can be
tested without waiting.

GUARANTEES:
- Only returns real data from the context
- Never triggers a release; maturity is reported, not acted on
- Clear "no data found" if nothing matches
"""

from datetime import timedelta
from decimal import Decimal
from typing import Optional

from timelock.clock import Clock, SystemClock
from timelock.context import AppContext
from timelock.errors import TimeLockError
from timelock.models.account import Account
from timelock.models.lockbox import LockBox, ReleaseEvent
from timelock.models.query import LockBoxQuery, QueryResult


def format_duration(delta: timedelta) -> str:
    """Render a duration as e.g. '2d 3h 4m 5s'; zero renders as 'ready'."""
    total = int(delta.total_seconds())
    if total <= 0:
        return "ready"
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds or not parts:
        parts.append(f"{seconds}s")
    return " ".join(parts)


class QueryExecutor:
    """
    Answers the console's read-only questions.

    GUARANTEES:
    - Lock boxes are listed in creation order
    - The release log is listed in append order
    """

    def __init__(self, context: AppContext, clock: Optional[Clock] = None):
        self._context = context
        self._clock = clock or SystemClock()

    def view_lock_boxes(self, query: LockBoxQuery) -> QueryResult:
        """List a user's lock boxes filtered by state."""
        try:
            account = self._context.get_account(query.username)
        except TimeLockError as e:
            return QueryResult(
                success=False,
                error_message=str(e),
                data_found=False,
                result_count=0,
                query_description=f"Query failed: {e}",
            )

        now = self._clock.now()
        with self._context.account_lock(account.username):
            boxes = [
                box for box in account.lock_boxes
                if (box.is_active and query.show_active)
                or (not box.is_active and query.show_released)
            ]
            results = [self._lock_box_to_dict(box, now) for box in boxes]

        return QueryResult(
            success=True,
            data_found=len(results) > 0,
            result_count=len(results),
            results=results,
            summary={
                "locked_total": sum(
                    (b.amount for b in boxes if b.is_active), Decimal("0.00")
                ),
                "released_total": sum(
                    (b.amount for b in boxes if not b.is_active), Decimal("0.00")
                ),
            },
            query_description=f"Showing {query.label} lock boxes for {account.username}",
        )

    def account_summary(self, username: str) -> QueryResult:
        """Balance plus lock box counts for one user."""
        try:
            account = self._context.get_account(username)
        except TimeLockError as e:
            return QueryResult(
                success=False,
                error_message=str(e),
                data_found=False,
                result_count=0,
                query_description=f"Query failed: {e}",
            )

        with self._context.account_lock(account.username):
            row = self._account_to_dict(account)
        return QueryResult(
            success=True,
            data_found=True,
            result_count=1,
            results=[row],
            query_description=f"Account summary for {account.username}",
        )

    def list_users(self) -> QueryResult:
        """Every registered user, in registration order."""
        results = []
        for account in self._context.list_accounts():
            with self._context.account_lock(account.username):
                results.append(self._account_to_dict(account))

        return QueryResult(
            success=True,
            data_found=len(results) > 0,
            result_count=len(results),
            results=results,
            summary={
                "active_users": sum(1 for r in results if r["is_active"]),
                "total_balance": sum((r["balance"] for r in results), Decimal("0.00")),
                "total_locked": sum((r["locked_total"] for r in results), Decimal("0.00")),
            },
            query_description="Listing registered users",
        )

    def view_release_log(self, username: Optional[str] = None) -> QueryResult:
        """The global release log, optionally narrowed to one user."""
        events = [
            e for e in self._context.release_log
            if username is None or e.username == username
        ]
        results = [self._release_event_to_dict(e) for e in events]

        desc = "Release log"
        if username:
            desc += f" for {username}"

        return QueryResult(
            success=True,
            data_found=len(results) > 0,
            result_count=len(results),
            results=results,
            summary={
                "total_released": sum((e.amount for e in events), Decimal("0.00")),
            },
            query_description=desc,
        )

    def _lock_box_to_dict(self, box: LockBox, now) -> dict:
        """Convert a lock box to a dictionary for results."""
        remaining = box.time_remaining(now)
        return {
            "id": box.id,
            "amount": box.amount,
            "state": box.state.value,
            "unlock_at": box.unlock_at,
            "created_at": box.created_at,
            "released_at": box.released_at,
            "matured": box.maturity_check(now),
            "time_remaining": remaining,
            "time_remaining_text": format_duration(remaining),
        }

    def _account_to_dict(self, account: Account) -> dict:
        """Convert an account to a dictionary for results."""
        return {
            "username": account.username,
            "balance": account.balance,
            "is_active": account.is_active,
            "registered_at": account.registered_at,
            "active_lock_boxes": len(account.active_lock_boxes),
            "released_lock_boxes": len(account.released_lock_boxes),
            "locked_total": account.locked_total,
        }

    def _release_event_to_dict(self, event: ReleaseEvent) -> dict:
        """Convert a release event to a dictionary for results."""
        return {
            "lock_box_id": event.lock_box_id,
            "username": event.username,
            "amount": event.amount,
            "released_at": event.released_at,
            "created_at": event.created_at,
        }
