"""Exceptions raised by the duplicate detection and merge engine."""

from typing import Optional


class ClientMergeError(Exception):
    """Base exception for engine failures."""


class FetchFailed(ClientMergeError):
    """Raised when client records cannot be read from storage."""


class InvalidMergeRequest(ClientMergeError):
    """Raised when a merge request fails validation, before any mutation."""


class MergeStepError(ClientMergeError):
    """A mutation step of a merge failed.

    Attributes:
        step: Name of the failed step
        client_id: The client the step was operating on
    """

    step = "merge"

    def __init__(self, client_id: Optional[str], message: str):
        self.client_id = client_id
        super().__init__(f"{self.step} failed for client {client_id}: {message}")


class ReassignmentFailed(MergeStepError):
    """Activity records of an absorbed client could not be moved."""

    step = "reassign_activity"


class CountUpdateFailed(MergeStepError):
    """The survivor's contact count could not be updated."""

    step = "update_contact_count"


class DeletionFailed(MergeStepError):
    """An absorbed client could not be deleted."""

    step = "delete_client"
