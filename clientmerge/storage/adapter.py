"""Database adapter for the outreach client SQLite database."""

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Dict

from .models import ClientRecord, ActivityRecord

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS clients (
    id TEXT PRIMARY KEY,
    first_name TEXT NOT NULL DEFAULT '',
    middle TEXT,
    last_name TEXT NOT NULL DEFAULT '',
    aka TEXT,
    age TEXT,
    gender TEXT,
    ethnicity TEXT,
    height TEXT,
    weight TEXT,
    hair TEXT,
    eyes TEXT,
    description TEXT,
    notes TEXT,
    contacts INTEGER NOT NULL DEFAULT 0 CHECK (contacts >= 0),
    last_contact TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS interactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    client_id TEXT NOT NULL REFERENCES clients(id),
    worker_id TEXT,
    worker_name TEXT,
    interaction_type TEXT,
    notes TEXT,
    interaction_date TEXT,
    location_lat REAL,
    location_lng REAL
);

CREATE INDEX IF NOT EXISTS idx_interactions_client
ON interactions(client_id);
"""


class ClientDatabase:
    """Adapter for the clients/interactions SQLite database.

    This class handles:
    - SQLite connection management
    - Reads of client and activity records
    - The update/delete primitives used by the merger
    - Transaction management

    The connection runs in autocommit mode; ``transaction()`` opens an
    explicit ``BEGIN IMMEDIATE`` so a merge holds the write lock for its
    whole duration.
    """

    supports_transactions = True

    def __init__(self, db_path: str | Path, create: bool = False):
        """Initialize database connection.

        Args:
            db_path: Path to the database file, or ":memory:"
            create: Create the file and schema if missing
        """
        self.db_path = Path(db_path) if str(db_path) != ":memory:" else None
        if self.db_path is not None and not create and not self.db_path.exists():
            raise FileNotFoundError(f"Database not found: {self.db_path}")

        self.conn = sqlite3.connect(str(db_path), isolation_level=None)
        self.conn.row_factory = sqlite3.Row  # Access columns by name
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._in_transaction = False

        if create:
            self.create_schema()

    def create_schema(self):
        """Create tables and indexes if they do not exist."""
        self.conn.executescript(SCHEMA)

    def close(self):
        """Close the database connection."""
        if self.conn:
            self.conn.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    @contextmanager
    def transaction(self):
        """Context manager for database transactions."""
        if self._in_transaction:
            raise RuntimeError("Nested transactions are not supported")

        self.conn.execute("BEGIN IMMEDIATE")
        self._in_transaction = True
        try:
            yield self.conn
            self.conn.execute("COMMIT")
        except Exception:
            self.conn.execute("ROLLBACK")
            logger.debug("Transaction rolled back")
            raise
        finally:
            self._in_transaction = False

    # ========== Statistics Methods ==========

    def get_stats(self) -> Dict[str, int]:
        """Get database statistics.

        Returns:
            Dictionary with client and interaction counts
        """
        cursor = self.conn.cursor()
        stats = {}

        cursor.execute("SELECT COUNT(*) FROM clients")
        stats['clients'] = cursor.fetchone()[0]

        cursor.execute("SELECT COUNT(*) FROM interactions")
        stats['interactions'] = cursor.fetchone()[0]

        cursor.execute("SELECT COUNT(*) FROM clients WHERE contacts > 0")
        stats['active_clients'] = cursor.fetchone()[0]

        stats['orphaned_interactions'] = self.count_orphaned_activity()

        return stats

    def count_orphaned_activity(self) -> int:
        """Count interactions whose client no longer exists."""
        cursor = self.conn.cursor()
        cursor.execute("""
            SELECT COUNT(*) FROM interactions i
            LEFT JOIN clients c ON i.client_id = c.id
            WHERE c.id IS NULL
        """)
        return cursor.fetchone()[0]

    # ========== Client Methods ==========

    def fetch_all_clients(self) -> List[ClientRecord]:
        """Get all clients, newest first.

        Returns:
            List of ClientRecord objects
        """
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM clients ORDER BY created_at DESC, rowid DESC")
        return [self._row_to_client(row) for row in cursor.fetchall()]

    def get_client(self, client_id: str) -> Optional[ClientRecord]:
        """Get a client by ID.

        Args:
            client_id: The client id to retrieve

        Returns:
            ClientRecord or None if not found
        """
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM clients WHERE id = ?", (client_id,))

        row = cursor.fetchone()
        return self._row_to_client(row) if row else None

    def add_client(self, client: ClientRecord) -> str:
        """Insert a client record.

        Args:
            client: Record to insert; an id is generated when empty

        Returns:
            The client id
        """
        client_id = client.client_id or uuid.uuid4().hex
        created_at = client.created_at or datetime.now().isoformat(timespec='seconds')

        self.conn.execute(
            """
            INSERT INTO clients (
                id, first_name, middle, last_name, aka, age, gender, ethnicity,
                height, weight, hair, eyes, description, notes, contacts,
                last_contact, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                client_id, client.first_name or '', client.middle,
                client.last_name or '', client.aka,
                None if client.age is None else str(client.age),
                client.gender, client.ethnicity, client.height, client.weight,
                client.hair, client.eyes, client.description, client.notes,
                client.contacts or 0, client.last_contact, created_at,
            )
        )
        return client_id

    def update_contact_count(self, client_id: str, new_count: int) -> int:
        """Set a client's contact count.

        Returns:
            Number of rows updated
        """
        cursor = self.conn.execute(
            "UPDATE clients SET contacts = ? WHERE id = ?",
            (new_count, client_id)
        )
        return cursor.rowcount

    def delete_client(self, client_id: str) -> int:
        """Delete a client.

        Fails with sqlite3.IntegrityError while interactions still
        reference the client.

        Returns:
            Number of rows deleted
        """
        cursor = self.conn.execute("DELETE FROM clients WHERE id = ?", (client_id,))
        return cursor.rowcount

    # ========== Activity Methods ==========

    def add_activity(self, activity: ActivityRecord) -> int:
        """Insert an interaction and return its id."""
        cursor = self.conn.execute(
            """
            INSERT INTO interactions (
                client_id, worker_id, worker_name, interaction_type, notes,
                interaction_date, location_lat, location_lng
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                activity.client_id, activity.worker_id, activity.worker_name,
                activity.interaction_type, activity.notes,
                activity.interaction_date, activity.location_lat,
                activity.location_lng,
            )
        )
        return cursor.lastrowid

    def get_client_activity(self, client_id: str) -> List[ActivityRecord]:
        """Get all interactions for a client, most recent first."""
        cursor = self.conn.cursor()
        cursor.execute("""
            SELECT * FROM interactions
            WHERE client_id = ?
            ORDER BY interaction_date DESC, id
        """, (client_id,))

        return [self._row_to_activity(row) for row in cursor.fetchall()]

    def reassign_activity(self, from_client_id: str, to_client_id: str) -> int:
        """Move every interaction of one client to another.

        Returns:
            Number of interactions moved
        """
        cursor = self.conn.execute(
            "UPDATE interactions SET client_id = ? WHERE client_id = ?",
            (to_client_id, from_client_id)
        )
        return cursor.rowcount

    # ========== Helper Methods ==========

    def _row_to_client(self, row: sqlite3.Row) -> ClientRecord:
        """Convert database row to ClientRecord object."""
        return ClientRecord(
            client_id=row['id'],
            first_name=row['first_name'],
            middle=row['middle'],
            last_name=row['last_name'],
            aka=row['aka'],
            age=row['age'],
            gender=row['gender'],
            ethnicity=row['ethnicity'],
            height=row['height'],
            weight=row['weight'],
            hair=row['hair'],
            eyes=row['eyes'],
            description=row['description'],
            notes=row['notes'],
            contacts=row['contacts'] or 0,
            last_contact=row['last_contact'],
            created_at=row['created_at'],
        )

    def _row_to_activity(self, row: sqlite3.Row) -> ActivityRecord:
        """Convert database row to ActivityRecord object."""
        return ActivityRecord(
            activity_id=row['id'],
            client_id=row['client_id'],
            worker_id=row['worker_id'],
            worker_name=row['worker_name'],
            interaction_type=row['interaction_type'],
            notes=row['notes'],
            interaction_date=row['interaction_date'],
            location_lat=row['location_lat'],
            location_lng=row['location_lng'],
        )
