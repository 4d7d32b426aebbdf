"""ClientMerge - find and merge duplicate client records for outreach teams."""

__version__ = "0.1.0"

from .config import EngineConfig, default_config
from .errors import (
    ClientMergeError,
    FetchFailed,
    InvalidMergeRequest,
    MergeStepError,
    ReassignmentFailed,
    CountUpdateFailed,
    DeletionFailed,
)
from .storage import ClientDatabase, ClientStore, ClientRecord, ActivityRecord
from .matching import ClientMatcher, DuplicateGroup, DuplicateReason
from .merge import ClientMerger, MergeOutcome, MergePlan

__all__ = [
    'EngineConfig',
    'default_config',
    'ClientMergeError',
    'FetchFailed',
    'InvalidMergeRequest',
    'MergeStepError',
    'ReassignmentFailed',
    'CountUpdateFailed',
    'DeletionFailed',
    'ClientDatabase',
    'ClientStore',
    'ClientRecord',
    'ActivityRecord',
    'ClientMatcher',
    'DuplicateGroup',
    'DuplicateReason',
    'ClientMerger',
    'MergeOutcome',
    'MergePlan',
]
