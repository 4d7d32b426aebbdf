"""
Client duplicate detection.

Groups client records that likely denote the same person. Grouping is
greedy and non-transitive: each unclaimed record collects every later
unclaimed record that is a duplicate of *it*, so members of one group are
not necessarily duplicates of each other.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set

from ..config import EngineConfig, default_config
from ..errors import FetchFailed
from ..storage.interface import ClientStore
from ..storage.models import ClientRecord
from .scorer import MatchScorer, MatchResult, DuplicateReason

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DuplicateGroup:
    """A set of client records believed to be one person."""
    group_id: str
    clients: List[ClientRecord]
    match_result: MatchResult

    @property
    def score(self) -> int:
        """Confidence score of the group's first two members."""
        return self.match_result.score

    @property
    def reason(self) -> DuplicateReason:
        return self.match_result.reason

    @property
    def client_ids(self) -> List[str]:
        return [c.client_id for c in self.clients]

    @property
    def total_contacts(self) -> int:
        """Contacts across every member; what the survivor ends up with."""
        return sum(c.contacts or 0 for c in self.clients)

    def suggested_survivor(self) -> ClientRecord:
        return suggest_survivor(self.clients)

    def __str__(self) -> str:
        return f"{len(self.clients)} potential duplicates: {self.reason} (score {self.score})"


def suggest_survivor(clients: Sequence[ClientRecord]) -> ClientRecord:
    """Client with the most contacts; the first one wins ties."""
    survivor = clients[0]
    for client in clients[1:]:
        if (client.contacts or 0) > (survivor.contacts or 0):
            survivor = client
    return survivor


class ClientMatcher:
    """
    Finds duplicate groups in a snapshot of client records.

    ``detect`` is pure: no I/O and no mutation of its input, and the same
    input always gives the same groups in the same order.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Initialize the matcher.

        Args:
            config: Engine configuration (thresholds and score weights)
        """
        self.config = config or default_config
        self.scorer = MatchScorer(self.config)

    def detect(self, clients: Sequence[ClientRecord]) -> List[DuplicateGroup]:
        """
        Group duplicate client records.

        Args:
            clients: Client records in the order they should be examined

        Returns:
            Groups sorted by score (highest first); ties keep detection order
        """
        groups = []
        claimed: Set[str] = set()

        for index, client in enumerate(clients):
            if client.client_id in claimed:
                continue

            duplicates = [
                other for other in clients[index + 1:]
                if other.client_id not in claimed
                and self.scorer.is_duplicate(client, other)
            ]

            if not duplicates:
                continue

            members = [client] + duplicates
            claimed.update(c.client_id for c in members)

            match_result = self.scorer.calculate_match_score(client, duplicates[0])
            groups.append(DuplicateGroup(
                group_id=f"group-{index}",
                clients=members,
                match_result=match_result,
            ))
            logger.debug(
                f"Grouped {len(members)} clients around {client.client_id}: "
                f"{match_result.reason} (score {match_result.score})"
            )

        # sorted() is stable, so equal scores stay in detection order
        return sorted(groups, key=lambda g: g.score, reverse=True)

    def find_duplicates(
        self,
        store: ClientStore,
        min_score: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[DuplicateGroup]:
        """
        Load every client from storage and detect duplicate groups.

        Args:
            store: Storage collaborator to read clients from
            min_score: Drop groups scoring below this
            limit: Maximum number of groups to return

        Returns:
            List of duplicate groups sorted by score

        Raises:
            FetchFailed: If the clients could not be loaded
        """
        try:
            clients = store.fetch_all_clients()
        except Exception as e:
            logger.error(f"Failed to load clients: {e}")
            raise FetchFailed(f"Failed to load clients: {e}") from e

        logger.info(f"Checking {len(clients)} clients for duplicates")
        groups = self.detect(clients)

        if min_score is not None:
            groups = [g for g in groups if g.score >= min_score]

        if limit is not None:
            groups = groups[:limit]

        logger.info(f"Found {len(groups)} potential duplicate groups")
        return groups
