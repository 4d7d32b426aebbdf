"""
Client record merger.

Consolidates a group of duplicate clients into one surviving record:
activity is moved to the survivor, contact counts are summed, and the
absorbed records are deleted, all inside one storage transaction.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Sequence, Tuple

from ..errors import (
    FetchFailed,
    InvalidMergeRequest,
    ReassignmentFailed,
    CountUpdateFailed,
    DeletionFailed,
)
from ..matching.matcher import DuplicateGroup
from ..storage.interface import ClientStore
from ..storage.models import ClientRecord
from ..utils.audit_trail import AuditTrail, AuditEntry, OperationType

logger = logging.getLogger(__name__)


@dataclass
class MergePlan:
    """Preview of a merge, computed without touching storage."""
    survivor: ClientRecord
    absorbed: List[ClientRecord]

    @property
    def total_clients(self) -> int:
        return len(self.absorbed) + 1

    @property
    def total_contacts(self) -> int:
        """Contact count the survivor will have after the merge."""
        return (self.survivor.contacts or 0) + sum(c.contacts or 0 for c in self.absorbed)

    @property
    def clients_to_delete(self) -> int:
        return len(self.absorbed)

    def __str__(self) -> str:
        """Human-readable summary."""
        return (
            f"Merge Summary (keeping {self.survivor.full_name()}):\n"
            f"  • Total clients to merge: {self.total_clients}\n"
            f"  • Total interactions to transfer: {self.total_contacts}\n"
            f"  • Clients to be deleted: {self.clients_to_delete}"
        )


@dataclass
class MergeOutcome:
    """Result of a completed merge."""
    survivor_id: str
    absorbed_ids: List[str]
    reassigned_count: int
    contact_count: int
    reassigned_by_client: Dict[str, int] = field(default_factory=dict)
    survivor_name: str = ""

    def summary(self) -> str:
        """One-line message for the operator."""
        count = len(self.absorbed_ids)
        if count == 0:
            return f"Nothing to merge into {self.survivor_name or self.survivor_id}"
        plural = 's' if count > 1 else ''
        return f"Successfully merged {count} duplicate{plural} into {self.survivor_name or self.survivor_id}"

    def __str__(self) -> str:
        return (
            f"✓ {self.summary()}\n"
            f"  Interactions reassigned: {self.reassigned_count}\n"
            f"  Contact count: {self.contact_count}"
        )


class ClientMerger:
    """
    Merges duplicate client records.

    Merge Process:
    1. Validate the request (survivor in group, >= 2 members, all exist)
    2. Reassign each absorbed client's interactions to the survivor
    3. Set the survivor's contact count to the group total
    4. Delete the absorbed clients
    5. Log changes to the audit trail

    Steps 2-4 run inside ``store.transaction()``; any failure rolls them
    all back. Stores without transactions are refused unless
    ``allow_non_transactional`` is set. Those get members processed in
    input order, and clients that are already gone count as already
    absorbed, so retrying a half-finished merge completes it. A failure
    between the count update and the first deletion still leaves the
    count to be added again on retry.
    """

    def __init__(
        self,
        store: ClientStore,
        audit: Optional[AuditTrail] = None,
        allow_non_transactional: bool = False
    ):
        """
        Initialize the merger.

        Args:
            store: Storage collaborator holding the clients
            audit: Optional audit trail to record merges in
            allow_non_transactional: Accept stores that cannot roll back
        """
        self.store = store
        self.audit = audit
        self.allow_non_transactional = allow_non_transactional

    def plan(self, member_ids: Sequence[str], survivor_id: str) -> MergePlan:
        """
        Validate a merge request and describe what it would do.

        Raises:
            InvalidMergeRequest: If the request is not valid
            FetchFailed: If the members could not be read
        """
        ordered_ids = self._validate_request(member_ids, survivor_id)
        survivor, absorbed, _ = self._load_members(ordered_ids, survivor_id)
        return MergePlan(survivor=survivor, absorbed=absorbed)

    def merge_group(self, group: DuplicateGroup, survivor_id: Optional[str] = None) -> MergeOutcome:
        """
        Merge a detected group, keeping its suggested survivor by default.

        Args:
            group: Group produced by the matcher
            survivor_id: Member to keep instead of the suggestion
        """
        if survivor_id is None:
            survivor_id = group.suggested_survivor().client_id
        return self.merge(group.client_ids, survivor_id)

    def merge(self, member_ids: Sequence[str], survivor_id: str) -> MergeOutcome:
        """
        Merge a group of clients into one survivor.

        Args:
            member_ids: Every client in the group, survivor included
            survivor_id: The client to keep

        Returns:
            MergeOutcome describing what changed

        Raises:
            InvalidMergeRequest: Before any mutation, if the request is invalid
            ReassignmentFailed, CountUpdateFailed, DeletionFailed: If a step failed
        """
        ordered_ids = self._validate_request(member_ids, survivor_id)

        if not self.store.supports_transactions and not self.allow_non_transactional:
            raise InvalidMergeRequest(
                "Store cannot roll back a failed merge; "
                "pass allow_non_transactional=True to merge anyway"
            )

        session_id = None
        if self.audit:
            session_id = self.audit.start_session(
                OperationType.CLIENT_MERGE,
                {'survivor_id': survivor_id, 'member_ids': ordered_ids}
            )

        changes: List[AuditEntry] = []
        try:
            with self.store.transaction():
                survivor, absorbed, already_absorbed = self._load_members(ordered_ids, survivor_id)
                outcome = self._apply(survivor, absorbed, already_absorbed, changes)
        except Exception as e:
            logger.error(f"Merge into {survivor_id} failed: {e}")
            if self.audit:
                self.audit.end_session(
                    session_id,
                    status="failed",
                    members_processed=len(ordered_ids),
                    metadata={
                        'survivor_id': survivor_id,
                        'member_ids': ordered_ids,
                        'error': str(e),
                        'step': getattr(e, 'step', None),
                        'client_id': getattr(e, 'client_id', None),
                    }
                )
            raise

        if self.audit:
            self._record_audit(session_id, len(ordered_ids), changes)

        logger.info(outcome.summary())
        return outcome

    def _record_audit(self, session_id: int, members_processed: int, changes: List[AuditEntry]):
        """Write a committed merge to the audit trail; failures are logged, not raised."""
        try:
            self.audit.record_changes(session_id, changes)
            self.audit.end_session(session_id, members_processed=members_processed)
        except Exception as e:
            logger.error(f"Merge committed but audit session {session_id} was not recorded: {e}")

    def _validate_request(self, member_ids: Sequence[str], survivor_id: str) -> List[str]:
        """Check the shape of a request and return de-duplicated ids in input order."""
        ordered_ids = list(dict.fromkeys(member_ids))

        if len(ordered_ids) < 2:
            raise InvalidMergeRequest("A merge needs at least two distinct clients")

        if survivor_id not in ordered_ids:
            raise InvalidMergeRequest(f"Survivor {survivor_id} is not a member of the group")

        return ordered_ids

    def _load_members(
        self,
        ordered_ids: List[str],
        survivor_id: str
    ) -> Tuple[ClientRecord, List[ClientRecord], List[str]]:
        """
        Read the current state of every member.

        Returns:
            (survivor, absorbed clients still present, absorbed ids already gone)
        """
        records = {}
        for client_id in ordered_ids:
            try:
                records[client_id] = self.store.get_client(client_id)
            except Exception as e:
                raise FetchFailed(f"Failed to load client {client_id}: {e}") from e

        if records[survivor_id] is None:
            raise InvalidMergeRequest(f"Survivor {survivor_id} does not exist")

        missing = [cid for cid in ordered_ids if cid != survivor_id and records[cid] is None]
        if missing and self.store.supports_transactions:
            raise InvalidMergeRequest(f"Clients do not exist: {', '.join(missing)}")

        absorbed = [
            records[cid] for cid in ordered_ids
            if cid != survivor_id and records[cid] is not None
        ]
        return records[survivor_id], absorbed, missing

    def _apply(
        self,
        survivor: ClientRecord,
        absorbed: List[ClientRecord],
        already_absorbed: List[str],
        changes: List[AuditEntry]
    ) -> MergeOutcome:
        """Run the mutation steps. Must be called inside ``store.transaction()``."""
        survivor_id = survivor.client_id
        reassigned: Dict[str, int] = {}

        for client in absorbed:
            try:
                moved = self.store.reassign_activity(client.client_id, survivor_id)
            except Exception as e:
                raise ReassignmentFailed(client.client_id, str(e)) from e
            reassigned[client.client_id] = moved
            changes.append(AuditEntry(
                OperationType.ACTIVITY_REASSIGN, 'interactions', client.client_id,
                'client_id', client.client_id, survivor_id,
                f"Absorbed into {survivor_id}", {'rows': moved}
            ))

        previous_count = survivor.contacts or 0
        contact_count = previous_count

        # Deletions only start after the count is written, so a missing
        # member means the count already includes it
        if not already_absorbed:
            contact_count += sum(c.contacts or 0 for c in absorbed)
            try:
                updated = self.store.update_contact_count(survivor_id, contact_count)
            except Exception as e:
                raise CountUpdateFailed(survivor_id, str(e)) from e
            if not updated:
                raise CountUpdateFailed(survivor_id, "survivor no longer exists")
            changes.append(AuditEntry(
                OperationType.CONTACT_COUNT_UPDATE, 'clients', survivor_id,
                'contacts', previous_count, contact_count,
                "Sum of group contact counts", None
            ))
        elif absorbed:
            logger.warning(
                f"Resuming merge into {survivor_id}: "
                f"{', '.join(already_absorbed)} already absorbed, keeping contact count"
            )

        for client in absorbed:
            try:
                deleted = self.store.delete_client(client.client_id)
            except Exception as e:
                raise DeletionFailed(client.client_id, str(e)) from e
            if not deleted and self.store.supports_transactions:
                raise DeletionFailed(client.client_id, "client no longer exists")
            changes.append(AuditEntry(
                OperationType.CLIENT_DELETE, 'clients', client.client_id,
                'id', client.full_name(), None,
                f"Merged into {survivor_id}", {'contacts': client.contacts or 0}
            ))

        return MergeOutcome(
            survivor_id=survivor_id,
            absorbed_ids=[c.client_id for c in absorbed],
            reassigned_count=sum(reassigned.values()),
            contact_count=contact_count,
            reassigned_by_client=reassigned,
            survivor_name=survivor.full_name(),
        )
