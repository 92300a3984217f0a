"""
Queue Store module for durable registration bookkeeping.

This module keeps the append-only registration queue, the submitter log used
for rate limiting, the zone file backup log and the set of transactions
awaiting confirmation in a single sqlite database.
"""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from .enums import QueueStatus
from .exceptions import PersistenceError
from .models import (
    QueueRecord,
    RecordStatus,
    SubdomainOperation,
    SubmitterRecord,
    TrackedTransaction,
)


SUBDOMAIN_PAGE_SIZE = 100

CREATE_TABLES = [
    """CREATE TABLE IF NOT EXISTS subdomain_queue (
    queue_ix INTEGER PRIMARY KEY AUTOINCREMENT,
    subdomain_name TEXT NOT NULL,
    owner TEXT NOT NULL,
    sequence_number INTEGER NOT NULL,
    zonefile TEXT NOT NULL,
    signature TEXT DEFAULT NULL,
    status TEXT NOT NULL,
    status_detail TEXT,
    received_ts TEXT NOT NULL)""",
    "CREATE INDEX IF NOT EXISTS subdomain_queue_name ON subdomain_queue (subdomain_name)",
    "CREATE INDEX IF NOT EXISTS subdomain_queue_received ON subdomain_queue (received_ts)",
    """CREATE TABLE IF NOT EXISTS submitter_log (
    submitter_ix INTEGER PRIMARY KEY,
    ip_address TEXT,
    owner TEXT NOT NULL,
    queue_ix INTEGER NOT NULL)""",
    "CREATE INDEX IF NOT EXISTS submitter_log_ip ON submitter_log (ip_address)",
    "CREATE INDEX IF NOT EXISTS submitter_log_owner ON submitter_log (owner)",
    """CREATE TABLE IF NOT EXISTS zonefile_backups (
    backup_ix INTEGER PRIMARY KEY,
    zonefile TEXT NOT NULL,
    backup_ts TEXT NOT NULL)""",
    """CREATE TABLE IF NOT EXISTS transactions_tracked (
    tracker_ix INTEGER PRIMARY KEY,
    tx_hash TEXT NOT NULL UNIQUE,
    zonefile TEXT NOT NULL,
    block_height INTEGER NOT NULL DEFAULT 0)""",
]


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """ISO timestamps with fixed precision so they sort lexically."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


class QueueStore:
    """
    Durable, ordered record store for the registrar.

    Queue rows are never deleted; a name's current state is its row with
    the highest queue index. Callers serialize mutations through the queue
    lock, this class does no locking of its own.
    """

    def __init__(self, db_path: Union[Path, str] = ":memory:") -> None:
        """
        Open (and if needed create) the store.

        Args:
            db_path: Database file path, or ``:memory:``

        Raises:
            PersistenceError: If the database cannot be opened
        """
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(self._db_path)
            self._conn.row_factory = sqlite3.Row
            with self._conn:
                for create_cmd in CREATE_TABLES:
                    self._conn.execute(create_cmd)
        except sqlite3.Error as e:
            raise PersistenceError(
                code="open_failed",
                message=f"Failed to open queue store: {e}",
                details={"db_path": self._db_path},
            )

    def _write(self, cmd: str, args: tuple = ()) -> sqlite3.Cursor:
        try:
            with self._conn:
                return self._conn.execute(cmd, args)
        except sqlite3.Error as e:
            raise PersistenceError(
                code="write_failed",
                message=f"Queue store write failed: {e}",
                details={"statement": cmd.split(" ", 3)[:3]},
            )

    def _read(self, cmd: str, args: tuple = ()) -> list[sqlite3.Row]:
        try:
            return self._conn.execute(cmd, args).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(
                code="read_failed",
                message=f"Queue store read failed: {e}",
                details={"statement": cmd.split(" ", 3)[:3]},
            )

    @staticmethod
    def _to_queue_record(row: sqlite3.Row) -> QueueRecord:
        return QueueRecord(
            queue_index=row["queue_ix"],
            operation=SubdomainOperation(
                subdomain_name=row["subdomain_name"],
                owner=row["owner"],
                sequence_number=int(row["sequence_number"]),
                zonefile=row["zonefile"],
                signature=row["signature"],
            ),
            status=RecordStatus.parse(row["status"], row["status_detail"]),
            received_at=row["received_ts"],
        )

    # -- registration queue -------------------------------------------------

    def add_to_queue(
        self,
        operation: SubdomainOperation,
        received_at: Optional[datetime] = None,
    ) -> int:
        """Insert a ``received`` row and return its queue index."""
        cursor = self._write(
            "INSERT INTO subdomain_queue (subdomain_name, owner, sequence_number, "
            "zonefile, signature, status, received_ts) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                operation.subdomain_name,
                operation.owner,
                operation.sequence_number,
                operation.zonefile,
                operation.signature,
                RecordStatus.received().render(),
                utc_timestamp(received_at),
            ),
        )
        return cursor.lastrowid

    def fetch_queue(self) -> list[QueueRecord]:
        """All ``received`` rows, oldest first."""
        rows = self._read(
            "SELECT * FROM subdomain_queue WHERE status = ? ORDER BY queue_ix",
            (QueueStatus.RECEIVED.value,),
        )
        return [self._to_queue_record(row) for row in rows]

    def get_status_record(self, subdomain_name: str) -> Optional[QueueRecord]:
        """The most recent row for a name, if any."""
        rows = self._read(
            "SELECT * FROM subdomain_queue WHERE subdomain_name = ? "
            "ORDER BY queue_ix DESC LIMIT 1",
            (subdomain_name,),
        )
        return self._to_queue_record(rows[0]) if rows else None

    def update_status(self, subdomain_names: list[str], status: RecordStatus) -> None:
        """Set the status of every row for the given names."""
        try:
            with self._conn:
                for name in subdomain_names:
                    self._conn.execute(
                        "UPDATE subdomain_queue SET status = ?, status_detail = ? "
                        "WHERE subdomain_name = ?",
                        (status.render(), status.detail, name),
                    )
        except sqlite3.Error as e:
            raise PersistenceError(
                code="write_failed",
                message=f"Failed to update queue status: {e}",
                details={"names": subdomain_names, "status": status.render()},
            )

    def set_record_status(self, queue_index: int, status: RecordStatus) -> None:
        """Set the status of a single row."""
        self._write(
            "UPDATE subdomain_queue SET status = ?, status_detail = ? WHERE queue_ix = ?",
            (status.render(), status.detail, queue_index),
        )

    def list_subdomains(self, cursor: int, since: datetime) -> list[QueueRecord]:
        """
        A page of rows ordered by queue index.

        Args:
            cursor: Smallest queue index to return
            since: Only rows received at or after this moment
        """
        rows = self._read(
            "SELECT * FROM subdomain_queue WHERE queue_ix >= ? AND received_ts >= ? "
            "ORDER BY queue_ix LIMIT ?",
            (cursor, utc_timestamp(since), SUBDOMAIN_PAGE_SIZE),
        )
        return [self._to_queue_record(row) for row in rows]

    # -- submitter log ------------------------------------------------------

    def log_submitter(self, record: SubmitterRecord) -> None:
        """
        Record who submitted a queued registration.

        Raises:
            PersistenceError: If the queue row does not exist or the insert fails
        """
        rows = self._read(
            "SELECT queue_ix FROM subdomain_queue WHERE queue_ix = ? AND owner = ?",
            (record.queue_index, record.owner),
        )
        if len(rows) != 1:
            raise PersistenceError(
                code="no_queue_entry",
                message="No queued entry found.",
                details={"queue_index": record.queue_index},
            )
        self._write(
            "INSERT INTO submitter_log (ip_address, owner, queue_ix) VALUES (?, ?, ?)",
            (record.ip_address, record.owner, record.queue_index),
        )

    def owner_count(self, owner: str) -> int:
        rows = self._read("SELECT COUNT(*) AS n FROM submitter_log WHERE owner = ?", (owner,))
        return rows[0]["n"]

    def ip_count(self, ip_address: str) -> int:
        rows = self._read(
            "SELECT COUNT(*) AS n FROM submitter_log WHERE ip_address = ?", (ip_address,)
        )
        return rows[0]["n"]

    # -- zone files and transactions -------------------------------------------

    def backup_zonefile(self, zonefile: str) -> None:
        self._write(
            "INSERT INTO zonefile_backups (zonefile, backup_ts) VALUES (?, ?)",
            (zonefile, utc_timestamp()),
        )

    def backup_count(self) -> int:
        return self._read("SELECT COUNT(*) AS n FROM zonefile_backups")[0]["n"]

    def track_transaction(self, tx_hash: str, zonefile: str) -> None:
        self._write(
            "INSERT INTO transactions_tracked (tx_hash, zonefile) VALUES (?, ?)",
            (tx_hash, zonefile),
        )

    def record_submission(self, subdomain_names: list[str], tx_hash: str, zonefile: str) -> None:
        """
        Mark names submitted and start tracking the transaction, atomically.

        On failure neither change is applied, so the names stay ``received``.
        """
        status = RecordStatus.submitted(tx_hash)
        try:
            with self._conn:
                for name in subdomain_names:
                    self._conn.execute(
                        "UPDATE subdomain_queue SET status = ?, status_detail = ? "
                        "WHERE subdomain_name = ? AND status = ?",
                        (status.render(), tx_hash, name, QueueStatus.RECEIVED.value),
                    )
                self._conn.execute(
                    "INSERT INTO transactions_tracked (tx_hash, zonefile) VALUES (?, ?)",
                    (tx_hash, zonefile),
                )
        except sqlite3.Error as e:
            raise PersistenceError(
                code="write_failed",
                message=f"Failed to record submission of {tx_hash}: {e}",
                details={"tx_hash": tx_hash, "names": subdomain_names},
            )

    def get_tracked_transactions(self) -> list[TrackedTransaction]:
        rows = self._read(
            "SELECT tx_hash, zonefile, block_height FROM transactions_tracked ORDER BY tracker_ix"
        )
        return [
            TrackedTransaction(
                tx_hash=row["tx_hash"],
                zonefile=row["zonefile"],
                block_height=row["block_height"] or 0,
            )
            for row in rows
        ]

    def update_transaction_heights(self, heights: dict[str, int]) -> None:
        """Persist observed inclusion heights, keyed by tx hash."""
        try:
            with self._conn:
                for tx_hash, block_height in heights.items():
                    self._conn.execute(
                        "UPDATE transactions_tracked SET block_height = ? WHERE tx_hash = ?",
                        (block_height, tx_hash),
                    )
        except sqlite3.Error as e:
            raise PersistenceError(
                code="write_failed",
                message=f"Failed to update transaction heights: {e}",
                details={"tx_hashes": list(heights)},
            )

    def flush_tracked_transactions(self, tx_hashes: list[str]) -> None:
        try:
            with self._conn:
                for tx_hash in tx_hashes:
                    self._conn.execute(
                        "DELETE FROM transactions_tracked WHERE tx_hash = ?", (tx_hash,)
                    )
        except sqlite3.Error as e:
            raise PersistenceError(
                code="write_failed",
                message=f"Failed to remove tracked transactions: {e}",
                details={"tx_hashes": tx_hashes},
            )

    def close(self) -> None:
        self._conn.close()

    @property
    def db_path(self) -> str:
        return self._db_path
