"""
Audit Models for Time-Locked Savings

Every state change in the system is reported to the audit sink.
This provides:
1. A per-user transaction history
2. A receipt for every transaction
3. Debugging information when things go wrong

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
The event vocabulary is fixed; new kinds of state change need a new member
here rather than a free-text type.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from timelock.clock import utc_now

RECORD_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
RECEIPT_TIME_FORMAT = "%Y-%m-%d_%H-%M-%S"


class AuditEventType(str, Enum):
    """The nine kinds of state change reported to the audit sink."""
    USER_REGISTRATION = "USER_REGISTRATION"
    USER_LOGIN = "USER_LOGIN"
    USER_LOGOUT = "USER_LOGOUT"
    ADMIN_LOGIN = "ADMIN_LOGIN"
    ADMIN_LOGOUT = "ADMIN_LOGOUT"
    CREATE_LOCKBOX = "CREATE_LOCKBOX"
    RELEASE_LOCKBOX = "RELEASE_LOCKBOX"
    BALANCE_UPDATE = "BALANCE_UPDATE"
    USER_STATUS_CHANGE = "USER_STATUS_CHANGE"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every state change creates exactly one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who acted
    username: str = Field(
        ...,
        min_length=1,
        description="Acting account identifier"
    )

    # What happened
    details: str = Field(
        default="",
        max_length=500,
        description="Human-readable description of what happened"
    )
    amount: Optional[Decimal] = Field(
        default=None,
        description="Monetary amount involved, if any"
    )
    lock_box_id: Optional[int] = Field(
        default=None,
        description="Lock box this event relates to, if any"
    )

    # Additional data (event-specific)
    extra: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "username": self.username,
            "details": self.details,
            "amount": str(self.amount) if self.amount is not None else None,
            "lock_box_id": self.lock_box_id,
            "extra": self.extra,
        }

    def to_log_line(self) -> str:
        """
        Convert to one line of a user's transaction log.

        Columns: timestamp|event_type|username|amount|details
        """
        amount = self.amount if self.amount is not None else Decimal("0")
        details = self.details.replace("\n", " ").replace("\r", " ")
        return "|".join([
            self.timestamp.strftime(RECORD_TIME_FORMAT),
            self.event_type.value,
            self.username,
            str(amount),
            details,
        ])

    def receipt_name(self) -> str:
        """File name of this event's receipt; unique per event."""
        return (
            f"{self.event_type.value}_"
            f"{self.timestamp.strftime(RECEIPT_TIME_FORMAT)}_"
            f"{self.event_id.hex[:8]}.txt"
        )

    def to_receipt(self) -> str:
        """Render the human-readable receipt."""
        lines = [
            "=== TIME-LOCKED SAVINGS SYSTEM RECEIPT ===",
            f"Date & Time: {self.timestamp.strftime(RECORD_TIME_FORMAT)} UTC",
            f"Transaction Type: {self.event_type.value}",
            f"Username: {self.username}",
        ]
        if self.lock_box_id is not None:
            lines.append(f"Lock Box ID: {self.lock_box_id}")
        if self.amount:
            lines.append(f"Amount: ${self.amount:,.2f}")
        if self.details:
            lines.append(f"Details: {self.details}")
        lines.append("=" * 41)
        lines.append("Thank you for using our Time-Locked Savings System!")
        return "\n".join(lines) + "\n"


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.user_login("alice", now)
        event = AuditEventBuilder.lock_box_released(box, now)
    """

    @staticmethod
    def user_registered(
        username: str,
        initial_balance: Decimal,
        timestamp: datetime,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTRATION,
            timestamp=timestamp,
            username=username,
            details="New user registered",
            amount=initial_balance,
        )

    @staticmethod
    def user_login(username: str, timestamp: datetime) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_LOGIN,
            timestamp=timestamp,
            username=username,
            details="User logged in",
        )

    @staticmethod
    def user_logout(username: str, timestamp: datetime) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_LOGOUT,
            timestamp=timestamp,
            username=username,
            details="User logged out",
        )

    @staticmethod
    def admin_login(username: str, timestamp: datetime) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADMIN_LOGIN,
            timestamp=timestamp,
            username=username,
            details="Administrator logged in",
        )

    @staticmethod
    def admin_logout(username: str, timestamp: datetime) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADMIN_LOGOUT,
            timestamp=timestamp,
            username=username,
            details="Administrator logged out",
        )

    @staticmethod
    def lock_box_created(
        username: str,
        lock_box_id: int,
        amount: Decimal,
        unlock_at: datetime,
        timestamp: datetime,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREATE_LOCKBOX,
            timestamp=timestamp,
            username=username,
            details=(
                f"Created lock box #{lock_box_id}, unlocks at "
                f"{unlock_at.strftime(RECORD_TIME_FORMAT)} UTC"
            ),
            amount=amount,
            lock_box_id=lock_box_id,
            extra={"unlock_at": unlock_at.isoformat()},
        )

    @staticmethod
    def lock_box_released(
        username: str,
        lock_box_id: int,
        amount: Decimal,
        released_at: datetime,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RELEASE_LOCKBOX,
            timestamp=released_at,
            username=username,
            details=f"Lock box #{lock_box_id} released",
            amount=amount,
            lock_box_id=lock_box_id,
            extra={"released_at": released_at.isoformat()},
        )

    @staticmethod
    def balance_updated(
        username: str,
        amount: Decimal,
        new_balance: Decimal,
        timestamp: datetime,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_UPDATE,
            timestamp=timestamp,
            username=username,
            details=f"Deposit received, new balance {new_balance:.2f}",
            amount=amount,
            extra={"new_balance": str(new_balance)},
        )

    @staticmethod
    def user_status_changed(
        username: str,
        was_active: bool,
        actor: str,
        timestamp: datetime,
    ) -> AuditEvent:
        before = "Active" if was_active else "Inactive"
        after = "Inactive" if was_active else "Active"
        return AuditEvent(
            event_type=AuditEventType.USER_STATUS_CHANGE,
            severity=AuditSeverity.WARNING if was_active else AuditSeverity.INFO,
            timestamp=timestamp,
            username=username,
            details=f"Status changed {before} -> {after} by {actor}",
            extra={"before": before, "after": after, "actor": actor},
        )
