"""
Duplicate detection matching engine.

This module provides the rules for detecting client records that denote
the same person, and the scoring that ranks and explains each group.
"""

from .matcher import ClientMatcher, DuplicateGroup, suggest_survivor
from .scorer import MatchScorer, MatchResult, DuplicateReason
from .similarity import edit_distance, name_similarity

__all__ = [
    'ClientMatcher',
    'DuplicateGroup',
    'suggest_survivor',
    'MatchScorer',
    'MatchResult',
    'DuplicateReason',
    'edit_distance',
    'name_similarity',
]
