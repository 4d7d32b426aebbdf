"""Shared fixtures for the ClientMerge test suite."""

from contextlib import nullcontext
from typing import Dict, List, Optional

import pytest

from clientmerge.storage import ClientDatabase, ClientRecord, ActivityRecord


def make_client(client_id: str, first: str = "", last: str = "", **kwargs) -> ClientRecord:
    """Build a client record with sensible defaults."""
    return ClientRecord(client_id=client_id, first_name=first, last_name=last, **kwargs)


class MemoryStore:
    """Dictionary-backed store without multi-statement transactions.

    ``fail_on`` maps a method name to a client id; the next call of that
    method for that id raises RuntimeError once.
    """

    supports_transactions = False

    def __init__(self, clients: List[ClientRecord], activities: Optional[List[ActivityRecord]] = None):
        self.clients: Dict[str, ClientRecord] = {c.client_id: c for c in clients}
        self.activities: List[ActivityRecord] = list(activities or [])
        self.fail_on: Dict[str, str] = {}

    def _maybe_fail(self, method: str, client_id: str):
        if self.fail_on.get(method) == client_id:
            del self.fail_on[method]
            raise RuntimeError(f"{method} unavailable")

    def fetch_all_clients(self) -> List[ClientRecord]:
        return list(self.clients.values())

    def get_client(self, client_id: str) -> Optional[ClientRecord]:
        return self.clients.get(client_id)

    def reassign_activity(self, from_client_id: str, to_client_id: str) -> int:
        self._maybe_fail('reassign_activity', from_client_id)
        moved = 0
        for activity in self.activities:
            if activity.client_id == from_client_id:
                activity.client_id = to_client_id
                moved += 1
        return moved

    def update_contact_count(self, client_id: str, new_count: int) -> int:
        self._maybe_fail('update_contact_count', client_id)
        if client_id not in self.clients:
            return 0
        self.clients[client_id].contacts = new_count
        return 1

    def delete_client(self, client_id: str) -> int:
        self._maybe_fail('delete_client', client_id)
        if any(a.client_id == client_id for a in self.activities):
            raise RuntimeError(f"client {client_id} still has activity")
        return 1 if self.clients.pop(client_id, None) else 0

    def transaction(self):
        return nullcontext()


class FailingDatabase(ClientDatabase):
    """SQLite store that raises on a chosen method/client pair."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_on: Dict[str, str] = {}

    def reassign_activity(self, from_client_id, to_client_id):
        if self.fail_on.get('reassign_activity') == from_client_id:
            raise RuntimeError("reassign_activity unavailable")
        return super().reassign_activity(from_client_id, to_client_id)

    def update_contact_count(self, client_id, new_count):
        if self.fail_on.get('update_contact_count') == client_id:
            raise RuntimeError("update_contact_count unavailable")
        return super().update_contact_count(client_id, new_count)

    def delete_client(self, client_id):
        if self.fail_on.get('delete_client') == client_id:
            raise RuntimeError("delete_client unavailable")
        return super().delete_client(client_id)


def seed_group(db) -> None:
    """Three records of one person plus one unrelated client.

    Contacts: c1=5, c2=2, c3=1, other=4.
    Interactions: c1=2, c2=3, c3=1, other=1.
    """
    db.add_client(make_client('c1', 'John', 'Smith', contacts=5, age='30',
                              created_at='2024-03-01T10:00:00'))
    db.add_client(make_client('c2', 'John', 'Smith', contacts=2,
                              created_at='2024-02-01T10:00:00'))
    db.add_client(make_client('c3', 'Jon', 'Smith', contacts=1, age='30',
                              created_at='2024-01-01T10:00:00'))
    db.add_client(make_client('other', 'Maria', 'Lopez', contacts=4,
                              created_at='2023-12-01T10:00:00'))

    for client_id, count in (('c1', 2), ('c2', 3), ('c3', 1), ('other', 1)):
        for n in range(count):
            db.add_activity(ActivityRecord(
                activity_id=0,
                client_id=client_id,
                worker_id='w1',
                worker_name='Sam Rivera',
                interaction_type='outreach',
                notes=f'visit {n}',
                interaction_date=f'2024-04-0{n + 1}',
            ))


@pytest.fixture
def db():
    """Empty in-memory client database."""
    database = ClientDatabase(":memory:", create=True)
    yield database
    database.close()


@pytest.fixture
def seeded_db(db):
    """In-memory database holding the seed group."""
    seed_group(db)
    return db


@pytest.fixture
def failing_db():
    """Seeded in-memory database with failure injection."""
    database = FailingDatabase(":memory:", create=True)
    seed_group(database)
    yield database
    database.close()


@pytest.fixture
def db_file(tmp_path):
    """Seeded database on disk, closed and ready for the CLI."""
    path = tmp_path / 'clients.db'
    with ClientDatabase(path, create=True) as database:
        seed_group(database)
    return path
