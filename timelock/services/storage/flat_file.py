"""
Flat File Storage Implementation

DESIGN DECISION: Plain pipe-delimited text files are used as the storage
backend because:
1. The operator can read and repair the data with any text editor
2. No database setup required
3. The whole entity graph is small enough to load at startup

Record layouts (one record per line):
    users.txt        username|password|balance|active(0/1)|registrationDate
    lockboxes.txt    id|amount|unlockTimestamp|active(0/1)|releaseTimestamp|creationDate|owner
    release_log.txt  lockBoxId|releaseTimestamp|amount|username|eventTimestamp

Unix timestamps are whole seconds, 0 meaning "unset". Dates are
YYYY-MM-DD HH:MM:SS in UTC.

TRADEOFFS:
- A malformed line costs only that record; the rest of the file loads
- Saving rewrites every file, so each is written to a temporary sibling
  and published with os.replace
"""

import os
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Callable, Iterator, Optional, TypeVar

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from timelock.config import StorageSettings, get_settings
from timelock.models.account import Account
from timelock.models.audit import RECORD_TIME_FORMAT
from timelock.models.lockbox import LockBox, ReleaseEvent
from timelock.services.storage.interface import (
    LedgerSnapshot,
    LedgerStorageInterface,
    PersistenceCorrupt,
    StorageError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DELIMITER = "|"

# Column mappings for each record file
ACCOUNT_COLUMNS = [
    "username",
    "password",
    "balance",
    "active",
    "registration_date",
]

LOCKBOX_COLUMNS = [
    "id",
    "amount",
    "unlock_timestamp",
    "active",
    "release_timestamp",
    "creation_date",
    "owner",
]

RELEASE_EVENT_COLUMNS = [
    "lock_box_id",
    "release_timestamp",
    "amount",
    "username",
    "event_timestamp",
]


# =============================================================================
# FIELD CODECS
# =============================================================================

def format_flag(value: bool) -> str:
    return "1" if value else "0"


def parse_flag(raw: str) -> bool:
    if raw == "1":
        return True
    if raw == "0":
        return False
    raise ValueError(f"Expected 0 or 1, got {raw!r}")


def format_epoch(moment: Optional[datetime]) -> str:
    if moment is None:
        return "0"
    return str(int(moment.timestamp()))


def parse_epoch(raw: str) -> Optional[datetime]:
    seconds = int(raw)
    if seconds < 0:
        raise ValueError(f"Negative timestamp {seconds}")
    if seconds == 0:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def format_date(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime(RECORD_TIME_FORMAT)


def parse_date(raw: str) -> datetime:
    return datetime.strptime(raw, RECORD_TIME_FORMAT).replace(tzinfo=timezone.utc)


def parse_amount(raw: str) -> Decimal:
    amount = Decimal(raw)
    if not amount.is_finite():
        raise ValueError(f"Amount is not a finite number: {raw!r}")
    return amount


# =============================================================================
# FLAT FILE STORE
# =============================================================================

class FlatFileStore(LedgerStorageInterface):
    """
    Pipe-delimited text file implementation of ledger storage.

    Lock boxes are re-attached to their owners by username on load;
    boxes whose owner is missing are dropped.
    """

    def __init__(self, settings: Optional[StorageSettings] = None):
        self._settings = settings or get_settings().storage

    @property
    def data_dir(self) -> Path:
        return self._settings.data_dir

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    def _account_to_row(self, account: Account) -> list[str]:
        """Convert an Account to a record row."""
        return [
            account.username,
            account.password,
            str(account.balance),
            format_flag(account.is_active),
            format_date(account.registered_at),
        ]

    def _row_to_account(self, row: list[str]) -> Account:
        """Convert a record row to an Account (without lock boxes)."""
        return Account(
            username=row[0],
            password=row[1],
            balance=parse_amount(row[2]),
            is_active=parse_flag(row[3]),
            registered_at=parse_date(row[4]),
        )

    def _lock_box_to_row(self, box: LockBox) -> list[str]:
        """Convert a LockBox to a record row."""
        return [
            str(box.id),
            str(box.amount),
            format_epoch(box.unlock_at),
            format_flag(box.is_active),
            format_epoch(box.released_at),
            format_date(box.created_at),
            box.owner,
        ]

    def _row_to_lock_box(self, row: list[str]) -> LockBox:
        """Convert a record row to a LockBox."""
        unlock_at = parse_epoch(row[2])
        if unlock_at is None:
            raise ValueError("Lock box has no unlock timestamp")
        return LockBox(
            id=int(row[0]),
            amount=parse_amount(row[1]),
            unlock_at=unlock_at,
            is_active=parse_flag(row[3]),
            released_at=parse_epoch(row[4]),
            created_at=parse_date(row[5]),
            owner=row[6],
        )

    def _release_event_to_row(self, event: ReleaseEvent) -> list[str]:
        """Convert a ReleaseEvent to a record row."""
        return [
            str(event.lock_box_id),
            format_epoch(event.released_at),
            str(event.amount),
            event.username,
            format_date(event.created_at),
        ]

    def _row_to_release_event(self, row: list[str]) -> ReleaseEvent:
        """Convert a record row to a ReleaseEvent."""
        released_at = parse_epoch(row[1])
        if released_at is None:
            raise ValueError("Release event has no release timestamp")
        return ReleaseEvent(
            lock_box_id=int(row[0]),
            released_at=released_at,
            amount=parse_amount(row[2]),
            username=row[3],
            created_at=parse_date(row[4]),
        )

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def _read_records(
        self,
        path: Path,
        columns: list[str],
        parse: Callable[[list[str]], T],
        snapshot: LedgerSnapshot,
    ) -> Iterator[tuple[int, T]]:
        """
        Yield (line_number, record) for every well-formed line.

        Malformed lines are logged and counted on the snapshot.
        """
        if not path.exists():
            logger.info("record_file_missing", path=str(path))
            return

        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}")

        for line_number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                record = self._parse_line(path, line_number, line, columns, parse)
            except PersistenceCorrupt as e:
                snapshot.skipped_records += 1
                logger.warning(
                    "record_skipped",
                    path=str(path),
                    line_number=line_number,
                    reason=e.reason,
                )
                continue
            yield line_number, record

    def _parse_line(
        self,
        path: Path,
        line_number: int,
        line: str,
        columns: list[str],
        parse: Callable[[list[str]], T],
    ) -> T:
        row = line.split(DELIMITER)
        if len(row) != len(columns):
            raise PersistenceCorrupt(
                path.name,
                line_number,
                f"expected {len(columns)} fields, found {len(row)}",
            )
        try:
            return parse(row)
        except (ValueError, InvalidOperation) as e:
            raise PersistenceCorrupt(path.name, line_number, str(e))

    def load(self) -> LedgerSnapshot:
        """Load the full entity graph; missing files mean an empty store."""
        snapshot = LedgerSnapshot()

        for line_number, account in self._read_records(
            self._settings.users_path, ACCOUNT_COLUMNS, self._row_to_account, snapshot
        ):
            if account.username in snapshot.accounts:
                snapshot.skipped_records += 1
                logger.warning(
                    "duplicate_account_skipped",
                    username=account.username,
                    line_number=line_number,
                )
                continue
            snapshot.accounts[account.username] = account

        max_id = 0
        seen_ids: set[int] = set()
        for line_number, box in self._read_records(
            self._settings.lockboxes_path, LOCKBOX_COLUMNS, self._row_to_lock_box, snapshot
        ):
            max_id = max(max_id, box.id)
            if box.id in seen_ids:
                snapshot.skipped_records += 1
                logger.warning(
                    "duplicate_lock_box_skipped",
                    lock_box_id=box.id,
                    line_number=line_number,
                )
                continue
            seen_ids.add(box.id)

            owner = snapshot.accounts.get(box.owner)
            if owner is None:
                snapshot.skipped_records += 1
                logger.warning(
                    "orphan_lock_box_dropped",
                    lock_box_id=box.id,
                    owner=box.owner,
                )
                continue
            owner.lock_boxes.append(box)

        for account in snapshot.accounts.values():
            account.lock_boxes.sort(key=lambda b: b.id)

        for _, event in self._read_records(
            self._settings.release_log_path,
            RELEASE_EVENT_COLUMNS,
            self._row_to_release_event,
            snapshot,
        ):
            max_id = max(max_id, event.lock_box_id)
            snapshot.release_log.append(event)

        snapshot.next_lock_box_id = max_id + 1

        logger.info(
            "ledger_loaded",
            accounts=len(snapshot.accounts),
            lock_boxes=len(seen_ids),
            release_events=len(snapshot.release_log),
            skipped=snapshot.skipped_records,
            next_lock_box_id=snapshot.next_lock_box_id,
        )
        return snapshot

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    @staticmethod
    def _render(rows: list[list[str]]) -> str:
        return "".join(DELIMITER.join(row) + "\n" for row in rows)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )
    def _write_temp(self, path: Path, content: str) -> Path:
        """Write content next to `path` without touching `path` itself."""
        tmp = path.with_name(path.name + ".tmp")
        with tmp.open("w", encoding="utf-8", newline="\n") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        return tmp

    def save(
        self,
        accounts: list[Account],
        release_log: list[ReleaseEvent],
    ) -> None:
        """
        Flush the entity graph to disk.

        All three files are staged first and only then published, so a
        failure while staging leaves the previous files untouched.
        """
        files = {
            self._settings.users_path: self._render(
                [self._account_to_row(a) for a in accounts]
            ),
            self._settings.lockboxes_path: self._render(
                [self._lock_box_to_row(box) for a in accounts for box in a.lock_boxes]
            ),
            self._settings.release_log_path: self._render(
                [self._release_event_to_row(e) for e in release_log]
            ),
        }

        staged: list[tuple[Path, Path]] = []
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            for path, content in files.items():
                staged.append((self._write_temp(path, content), path))
            for tmp, path in staged:
                os.replace(tmp, path)
        except OSError as e:
            for tmp, _ in staged:
                tmp.unlink(missing_ok=True)
            logger.error("ledger_save_failed", data_dir=str(self.data_dir), error=str(e))
            raise StorageError(f"Failed to save ledger to {self.data_dir}: {e}")

        logger.info(
            "ledger_saved",
            data_dir=str(self.data_dir),
            accounts=len(accounts),
            release_events=len(release_log),
        )
