"""
Receipt and Transaction Log Storage

The durable audit sink. For every event it:
1. Appends one line to the acting user's transaction log
2. Writes a standalone, human-readable receipt file

Layout:
    <receipts_dir>/<username>/transaction_log.txt
    <receipts_dir>/<username>/<EVENT_TYPE>_<YYYY-MM-DD_HH-MM-SS>_<id8>.txt

The receipt layout is for people, not programs; only the transaction
log is read back.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import structlog

from timelock.config import StorageSettings, get_settings
from timelock.models.audit import RECORD_TIME_FORMAT, AuditEvent, AuditEventType
from timelock.services.storage.interface import AuditStorageInterface, StorageError

logger = structlog.get_logger(__name__)

TRANSACTION_LOG_NAME = "transaction_log.txt"


class FileAuditStorage(AuditStorageInterface):
    """File-backed audit storage: per-user log plus one receipt per event."""

    def __init__(self, settings: Optional[StorageSettings] = None):
        self._settings = settings or get_settings().storage

    @property
    def root(self) -> Path:
        return self._settings.receipts_dir

    def user_dir(self, username: str) -> Path:
        return self.root / username

    def transaction_log_path(self, username: str) -> Path:
        return self.user_dir(username) / TRANSACTION_LOG_NAME

    def append_event(self, event: AuditEvent) -> bool:
        """Append to the user's log and write the receipt."""
        user_dir = self.user_dir(event.username)
        try:
            user_dir.mkdir(parents=True, exist_ok=True)
            with self.transaction_log_path(event.username).open(
                "a", encoding="utf-8", newline="\n"
            ) as log_file:
                log_file.write(event.to_log_line() + "\n")

            receipt_path = user_dir / event.receipt_name()
            receipt_path.write_text(event.to_receipt(), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to record {event.event_type.value} for {event.username}: {e}")

        logger.debug("receipt_written", path=str(receipt_path))
        return True

    def get_events_by_user(self, username: str) -> list[AuditEvent]:
        """Read a user's transaction log back; unreadable lines are skipped."""
        path = self.transaction_log_path(username)
        if not path.exists():
            return []

        events = []
        for line_number, line in enumerate(
            path.read_text(encoding="utf-8").splitlines(), start=1
        ):
            if not line.strip():
                continue
            try:
                events.append(self._line_to_event(line))
            except (ValueError, InvalidOperation) as e:
                logger.warning(
                    "transaction_log_line_skipped",
                    path=str(path),
                    line_number=line_number,
                    reason=str(e),
                )
        return events

    @staticmethod
    def _line_to_event(line: str) -> AuditEvent:
        # Details are free text and may themselves contain '|'
        timestamp, event_type, username, amount, details = line.split("|", 4)
        parsed_amount = Decimal(amount)
        return AuditEvent(
            timestamp=datetime.strptime(timestamp, RECORD_TIME_FORMAT).replace(
                tzinfo=timezone.utc
            ),
            event_type=AuditEventType(event_type),
            username=username,
            amount=parsed_amount if parsed_amount else None,
            details=details,
        )
