"""
Client record merging.

This module consolidates a group of duplicate clients into one survivor
while keeping every interaction attached to an existing client.
"""

from .merger import ClientMerger, MergeOutcome, MergePlan

__all__ = [
    'ClientMerger',
    'MergeOutcome',
    'MergePlan',
]
