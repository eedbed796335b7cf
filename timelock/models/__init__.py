"""
Data Models Package

This package contains all Pydantic models used in the Time-Locked Savings system.
All data flowing through the system must conform to these schemas.
"""

from timelock.models.lockbox import (
    LockBox,
    LockBoxSequence,
    LockBoxState,
    ReleaseEvent,
)
from timelock.models.account import (
    Account,
    AdminIdentity,
    Identity,
)
from timelock.models.query import LockBoxQuery, QueryResult
from timelock.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Lock box models
    "LockBox",
    "LockBoxSequence",
    "LockBoxState",
    "ReleaseEvent",
    # Account models
    "Account",
    "AdminIdentity",
    "Identity",
    # Query models
    "LockBoxQuery",
    "QueryResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
