"""
Account and Identity Models

Users and the administrator share only their identity fields
(username, credential, registration date). Ledger behavior lives on
Account; the administrator carries none.

DESIGN DECISION: Balances are Decimals validated on every assignment.
A negative balance cannot be stored even if a caller forgets to
check first - pydantic rejects the assignment and the old value stays.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from timelock.errors import InsufficientFunds, InvalidAmount, LockBoxNotFound
from timelock.models.lockbox import LockBox

# Characters that would break a pipe-delimited record line
FORBIDDEN_CHARS = ("|", "\n", "\r")


class Identity(BaseModel):
    """Common identity record for users and the administrator."""
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(
        ...,
        min_length=1,
        max_length=64,
        pattern=r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$",
        description="Unique username, also used as a receipt directory name"
    )
    password: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="Plaintext credential"
    )
    registered_at: datetime = Field(
        ...,
        description="When the identity was registered"
    )

    @field_validator('username', 'password')
    @classmethod
    def validate_record_safe(cls, v: str) -> str:
        """Reject values that cannot be written to a record line."""
        if any(ch in v for ch in FORBIDDEN_CHARS):
            raise ValueError("must not contain '|' or line breaks")
        if any(ch.isspace() for ch in v):
            raise ValueError("must not contain whitespace")
        return v

    def check_password(self, candidate: str) -> bool:
        return self.password == candidate


class AdminIdentity(Identity):
    """The administrator. Built from configuration, never persisted."""
    pass


class Account(Identity):
    """
    A user account: spendable balance plus owned lock boxes.

    `lock_boxes` keeps insertion order, which is creation order.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    balance: Decimal = Field(
        default=Decimal("0.00"),
        ge=0,
        decimal_places=2,
        description="Spendable balance"
    )
    is_active: bool = Field(
        default=True,
        description="False when deactivated by an administrator"
    )
    lock_boxes: list[LockBox] = Field(
        default_factory=list,
        description="Owned lock boxes in creation order"
    )

    @property
    def active_lock_boxes(self) -> list[LockBox]:
        return [box for box in self.lock_boxes if box.is_active]

    @property
    def released_lock_boxes(self) -> list[LockBox]:
        return [box for box in self.lock_boxes if not box.is_active]

    @property
    def locked_total(self) -> Decimal:
        """Sum of amounts still held in active boxes."""
        return sum((box.amount for box in self.active_lock_boxes), Decimal("0.00"))

    def get_lock_box(self, lock_box_id: int) -> LockBox:
        for box in self.lock_boxes:
            if box.id == lock_box_id:
                return box
        raise LockBoxNotFound(
            f"Lock box {lock_box_id} does not belong to '{self.username}'"
        )

    def find_lock_box(self, lock_box_id: int) -> Optional[LockBox]:
        try:
            return self.get_lock_box(lock_box_id)
        except LockBoxNotFound:
            return None

    def debit(self, amount: Decimal) -> None:
        """Remove funds from the spendable balance."""
        if amount <= 0:
            raise InvalidAmount(f"Debit amount must be positive, got {amount}")
        if amount > self.balance:
            raise InsufficientFunds(available=self.balance, requested=amount)
        self.balance = self.balance - amount

    def credit(self, amount: Decimal) -> None:
        """Add funds to the spendable balance."""
        if amount <= 0:
            raise InvalidAmount(f"Credit amount must be positive, got {amount}")
        self.balance = self.balance + amount
