"""
Domain errors.

Every error raised by a ledger or session operation leaves all state
exactly as it was before the call.
"""


class TimeLockError(Exception):
    """Base exception for lock box and account operations."""
    pass


class InvalidAmount(TimeLockError):
    """Amount is non-positive, malformed, or exceeds the available balance."""
    pass


class InsufficientFunds(InvalidAmount):
    """Amount exceeds the account's current balance."""

    def __init__(self, available, requested):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient balance: available={available}, requested={requested}"
        )


class InvalidUnlockTime(TimeLockError):
    """Requested lock duration is outside the accepted range."""
    pass


class AlreadyReleased(TimeLockError):
    """Release attempted on a lock box that is no longer active."""

    def __init__(self, lock_box_id: int):
        self.lock_box_id = lock_box_id
        super().__init__(f"Lock box {lock_box_id} has already been released")


class LockBoxNotMatured(TimeLockError):
    """Explicit release attempted before the unlock time."""
    pass


class LockBoxNotFound(TimeLockError):
    """No lock box with that id belongs to the account."""
    pass


class AccountNotFound(TimeLockError):
    """No account is registered under that username."""
    pass


class AccountInactive(TimeLockError):
    """Account has been deactivated by an administrator."""
    pass


class InvalidCredential(TimeLockError):
    """Password does not match."""
    pass


class DuplicateAccount(TimeLockError):
    """Username is already registered."""
    pass


class NotLoggedIn(TimeLockError):
    """Session operation attempted without a logged-in user or admin."""
    pass
