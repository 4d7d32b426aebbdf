"""Storage collaborator contract used by the matcher and merger."""

from typing import ContextManager, List, Optional, Protocol

from .models import ClientRecord


class ClientStore(Protocol):
    """Operations the engine needs from whatever owns the client records.

    Failures are reported by raising; the engine wraps them in its own
    error types. Stores that cannot run several statements atomically set
    ``supports_transactions`` to False and return a no-op context from
    ``transaction()``.
    """

    supports_transactions: bool

    def fetch_all_clients(self) -> List[ClientRecord]:
        ...

    def get_client(self, client_id: str) -> Optional[ClientRecord]:
        ...

    def reassign_activity(self, from_client_id: str, to_client_id: str) -> int:
        """Point every activity of one client at another; return rows moved."""
        ...

    def update_contact_count(self, client_id: str, new_count: int) -> int:
        """Return the number of rows updated."""
        ...

    def delete_client(self, client_id: str) -> int:
        """Return the number of rows deleted (0 when already gone)."""
        ...

    def transaction(self) -> ContextManager:
        ...
