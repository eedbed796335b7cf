"""
Lock Box Models

A lock box holds funds taken out of an account's spendable balance
until a fixed unlock time. Its lifecycle has exactly two states:

    ACTIVE  --release(now)-->  RELEASED

There is no way back. A box is never created released and never
deleted; released boxes stay on the account as history.

DESIGN DECISION: The models only guard their own state. Moving money
between the box and the account balance is the LedgerService's job,
so the box never touches a balance directly.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from timelock.errors import AlreadyReleased
from timelock.clock import is_mature


class LockBoxState(str, Enum):
    """Lifecycle state of a lock box."""
    ACTIVE = "active"
    RELEASED = "released"


class LockBox(BaseModel):
    """
    Funds locked until `unlock_at`.

    Invariants:
    - amount > 0
    - active boxes have no release timestamp
    - released boxes have a release timestamp no earlier than creation
    """

    id: int = Field(
        ...,
        ge=1,
        description="Process-unique id, never reused"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Locked amount"
    )
    unlock_at: datetime = Field(
        ...,
        description="When the box matures"
    )
    created_at: datetime = Field(
        ...,
        description="When the funds were locked"
    )
    owner: str = Field(
        ...,
        min_length=1,
        description="Username of the owning account"
    )
    is_active: bool = Field(
        default=True,
        description="False once released"
    )
    released_at: Optional[datetime] = Field(
        default=None,
        description="Set exactly once, at release"
    )

    @model_validator(mode='after')
    def validate_release_state(self) -> 'LockBox':
        """Keep the active flag and release timestamp consistent."""
        if self.is_active and self.released_at is not None:
            raise ValueError("Active lock box cannot have a release timestamp")
        if not self.is_active:
            if self.released_at is None:
                raise ValueError("Released lock box must have a release timestamp")
            if self.released_at < self.created_at:
                raise ValueError("Release timestamp cannot be before creation")
        return self

    @property
    def state(self) -> LockBoxState:
        return LockBoxState.ACTIVE if self.is_active else LockBoxState.RELEASED

    def maturity_check(self, now: datetime) -> bool:
        """True iff the box is still active and its unlock time has passed."""
        return self.is_active and is_mature(self.unlock_at, now)

    def time_remaining(self, now: datetime) -> timedelta:
        """Time until unlock; zero once matured or released."""
        if not self.is_active or is_mature(self.unlock_at, now):
            return timedelta(0)
        return self.unlock_at - now

    def release(self, now: datetime) -> None:
        """
        Transition ACTIVE -> RELEASED.

        Raises AlreadyReleased on a second call. The caller is
        responsible for crediting the owner exactly once.
        """
        if not self.is_active:
            raise AlreadyReleased(self.id)
        # Never stamp a release earlier than creation, even if the
        # clock was adjusted in between.
        self.released_at = max(now, self.created_at)
        self.is_active = False


class ReleaseEvent(BaseModel):
    """
    Immutable audit record of one release.

    Independent of the lock box's own mutable state: clearing the
    release log does not touch the boxes, and the record does not
    change if the box is later inspected or reloaded.
    """
    model_config = ConfigDict(frozen=True)

    lock_box_id: int = Field(..., ge=1)
    released_at: datetime
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    username: str = Field(..., min_length=1)
    created_at: datetime = Field(
        ...,
        description="When this record was written"
    )

    @classmethod
    def from_lock_box(cls, box: LockBox, now: datetime) -> 'ReleaseEvent':
        """Build the record for a box that has just been released."""
        if box.is_active or box.released_at is None:
            raise ValueError(f"Lock box {box.id} has not been released")
        return cls(
            lock_box_id=box.id,
            released_at=box.released_at,
            amount=box.amount,
            username=box.owner,
            created_at=now,
        )


class LockBoxSequence:
    """
    Allocates lock box ids.

    Owned by whoever loads persisted state: after a load it is reseeded
    to max(loaded ids) + 1 so new boxes never collide with old ones.
    """

    def __init__(self, next_id: int = 1):
        if next_id < 1:
            raise ValueError("Lock box ids start at 1")
        self._next_id = next_id

    @property
    def peek(self) -> int:
        return self._next_id

    def next_id(self) -> int:
        allocated = self._next_id
        self._next_id += 1
        return allocated

    def reseed(self, max_loaded_id: int) -> None:
        """Continue after the highest id already in use."""
        self._next_id = max(self._next_id, max_loaded_id + 1)
