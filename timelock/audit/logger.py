"""
Audit Logger

DESIGN DECISION: Every state change in the system is reported here,
exactly once. This provides:
1. A per-user transaction history and a receipt for every transaction
2. Debugging capability
3. Operator visibility into releases and status changes

The audit logger:
- Gracefully handles failures (doesn't fail the business operation if
  logging fails - the state change has already happened)
- Always logs locally through structlog, even without a storage backend
"""

import logging
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional

import structlog

from timelock.models.audit import AuditEvent, AuditEventBuilder
from timelock.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """
    Route structured logs to a file (or stderr when no file is given).

    The console menu owns stdout, so the interactive app always
    passes a file.
    """
    handler: logging.Handler
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit storage backend (transaction logs and receipts)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                    event_type=event.event_type.value,
                )
                return False

        return True

    def log_user_registered(
        self,
        username: str,
        initial_balance: Decimal,
        timestamp: datetime,
    ) -> bool:
        """Log a new registration."""
        return self.log(AuditEventBuilder.user_registered(
            username=username,
            initial_balance=initial_balance,
            timestamp=timestamp,
        ))

    def log_user_login(self, username: str, timestamp: datetime) -> bool:
        return self.log(AuditEventBuilder.user_login(username, timestamp))

    def log_user_logout(self, username: str, timestamp: datetime) -> bool:
        return self.log(AuditEventBuilder.user_logout(username, timestamp))

    def log_admin_login(self, username: str, timestamp: datetime) -> bool:
        return self.log(AuditEventBuilder.admin_login(username, timestamp))

    def log_admin_logout(self, username: str, timestamp: datetime) -> bool:
        return self.log(AuditEventBuilder.admin_logout(username, timestamp))

    def log_lock_box_created(
        self,
        username: str,
        lock_box_id: int,
        amount: Decimal,
        unlock_at: datetime,
        timestamp: datetime,
    ) -> bool:
        """Log lock box creation."""
        return self.log(AuditEventBuilder.lock_box_created(
            username=username,
            lock_box_id=lock_box_id,
            amount=amount,
            unlock_at=unlock_at,
            timestamp=timestamp,
        ))

    def log_lock_box_released(
        self,
        username: str,
        lock_box_id: int,
        amount: Decimal,
        released_at: datetime,
    ) -> bool:
        """Log a release; called once per Active -> Released transition."""
        return self.log(AuditEventBuilder.lock_box_released(
            username=username,
            lock_box_id=lock_box_id,
            amount=amount,
            released_at=released_at,
        ))

    def log_balance_updated(
        self,
        username: str,
        amount: Decimal,
        new_balance: Decimal,
        timestamp: datetime,
    ) -> bool:
        """Log a deposit."""
        return self.log(AuditEventBuilder.balance_updated(
            username=username,
            amount=amount,
            new_balance=new_balance,
            timestamp=timestamp,
        ))

    def log_user_status_changed(
        self,
        username: str,
        was_active: bool,
        actor: str,
        timestamp: datetime,
    ) -> bool:
        """Log activation or deactivation of an account."""
        return self.log(AuditEventBuilder.user_status_changed(
            username=username,
            was_active=was_active,
            actor=actor,
            timestamp=timestamp,
        ))
