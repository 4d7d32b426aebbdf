"""
Audit trail for client merges.

Each merge opens a session in a side SQLite database; the changes it made
are attached to that session once the merge has committed.
"""

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional


class OperationType(Enum):
    """Kinds of audited operation."""
    CLIENT_MERGE = "client_merge"
    ACTIVITY_REASSIGN = "activity_reassign"
    CONTACT_COUNT_UPDATE = "contact_count_update"
    CLIENT_DELETE = "client_delete"


def _dump(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    return json.dumps(metadata) if metadata else None


def _load(text: Optional[str]) -> Optional[Dict[str, Any]]:
    return json.loads(text) if text else None


@dataclass
class AuditEntry:
    """One change made by a merge."""
    operation_type: OperationType
    table_name: str
    record_id: str
    field_name: str
    old_value: Any = None
    new_value: Any = None
    reason: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    logged_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> 'AuditEntry':
        return cls(
            operation_type=OperationType(row['operation_type']),
            table_name=row['table_name'],
            record_id=row['record_id'],
            field_name=row['field_name'],
            old_value=row['old_value'],
            new_value=row['new_value'],
            reason=row['reason'],
            metadata=_load(row['metadata']),
            logged_at=row['logged_at'],
        )


@dataclass
class MergeSession:
    """Summary of one audited merge."""
    session_id: int
    operation: str
    status: str
    started_at: str
    finished_at: Optional[str]
    members_processed: int
    change_count: int
    metadata: Optional[Dict[str, Any]] = None


class AuditTrail:
    """
    Records merge sessions and their changes.

    The trail lives in its own database (``<stem>.audit.db`` next to the
    client database by default) so the client schema stays untouched.
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS merge_sessions (
            session_id INTEGER PRIMARY KEY AUTOINCREMENT,
            operation TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'running',
            started_at TEXT NOT NULL,
            finished_at TEXT,
            members_processed INTEGER NOT NULL DEFAULT 0,
            metadata TEXT
        );
        CREATE TABLE IF NOT EXISTS merge_changes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id INTEGER NOT NULL REFERENCES merge_sessions(session_id),
            logged_at TEXT NOT NULL,
            operation_type TEXT NOT NULL,
            table_name TEXT NOT NULL,
            record_id TEXT NOT NULL,
            field_name TEXT NOT NULL,
            old_value TEXT,
            new_value TEXT,
            reason TEXT,
            metadata TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_merge_changes_session
            ON merge_changes(session_id);
    """

    def __init__(self, database_path: str | Path, audit_path: Optional[str | Path] = None):
        """
        Open (or create) the audit database.

        Args:
            database_path: Path to the client database being audited
            audit_path: Explicit audit database path; ":memory:" is allowed
        """
        database_path = Path(database_path)
        if audit_path is None:
            audit_path = database_path.with_name(f"{database_path.stem}.audit.db")
        self.audit_path = audit_path

        self.conn = sqlite3.connect(str(audit_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(self.SCHEMA)

    @staticmethod
    def _now() -> str:
        return datetime.now().isoformat(timespec='microseconds')

    def start_session(
        self,
        operation: OperationType,
        metadata: Optional[Dict[str, Any]] = None
    ) -> int:
        """Open a session in the 'running' state and return its id."""
        with self.conn:
            cursor = self.conn.execute(
                "INSERT INTO merge_sessions (operation, started_at, metadata) VALUES (?, ?, ?)",
                (operation.value, self._now(), _dump(metadata))
            )
        return cursor.lastrowid

    def end_session(
        self,
        session_id: int,
        status: str = "completed",
        members_processed: int = 0,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Close a session.

        Args:
            session_id: Session to close
            status: 'completed' or 'failed'
            members_processed: Number of group members the merge covered
            metadata: Replaces the session metadata when given
        """
        with self.conn:
            self.conn.execute(
                """
                UPDATE merge_sessions
                SET status = ?, finished_at = ?, members_processed = ?,
                    metadata = COALESCE(?, metadata)
                WHERE session_id = ?
                """,
                (status, self._now(), members_processed, _dump(metadata), session_id)
            )

    def record_changes(self, session_id: int, entries: Iterable[AuditEntry]) -> int:
        """Attach changes to a session in one write; returns how many were stored."""
        logged_at = self._now()
        rows = [
            (
                session_id, logged_at, entry.operation_type.value, entry.table_name,
                str(entry.record_id), entry.field_name,
                None if entry.old_value is None else str(entry.old_value),
                None if entry.new_value is None else str(entry.new_value),
                entry.reason, _dump(entry.metadata),
            )
            for entry in entries
        ]
        with self.conn:
            self.conn.executemany(
                """
                INSERT INTO merge_changes (
                    session_id, logged_at, operation_type, table_name, record_id,
                    field_name, old_value, new_value, reason, metadata
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows
            )
        return len(rows)

    def get_session_changes(self, session_id: int) -> List[AuditEntry]:
        """Changes of one session in the order they were made."""
        rows = self.conn.execute(
            "SELECT * FROM merge_changes WHERE session_id = ? ORDER BY id",
            (session_id,)
        ).fetchall()
        return [AuditEntry.from_row(row) for row in rows]

    def get_sessions(self, limit: int = 20) -> List[MergeSession]:
        """Most recent sessions first."""
        rows = self.conn.execute(
            """
            SELECT s.*, COUNT(c.id) AS change_count
            FROM merge_sessions s
            LEFT JOIN merge_changes c ON c.session_id = s.session_id
            GROUP BY s.session_id
            ORDER BY s.session_id DESC
            LIMIT ?
            """,
            (limit,)
        ).fetchall()
        return [
            MergeSession(
                session_id=row['session_id'],
                operation=row['operation'],
                status=row['status'],
                started_at=row['started_at'],
                finished_at=row['finished_at'],
                members_processed=row['members_processed'],
                change_count=row['change_count'],
                metadata=_load(row['metadata']),
            )
            for row in rows
        ]

    def close(self):
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
