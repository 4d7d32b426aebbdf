"""
Duplicate rules and group scoring.

Decides whether two client records denote the same person and, for a
detected group, how confident that call is and why it was made.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..config import EngineConfig, default_config
from ..storage.models import ClientRecord
from .similarity import name_similarity, is_present


class DuplicateReason(Enum):
    """Why a group was reported."""
    EXACT_NAME = "exact name match"
    MATCHING_AKA = "matching AKA"
    SIMILAR_NAME = "similar name + demographics"

    def __str__(self) -> str:
        return self.value


@dataclass
class MatchResult:
    """Score and explanation for a pair of client records."""
    score: int = 0
    reason: DuplicateReason = DuplicateReason.SIMILAR_NAME
    name_similarity: float = 0.0
    matched_fields: List[str] = field(default_factory=list)
    contact_penalty: int = 0

    def __str__(self) -> str:
        """Human-readable description."""
        fields = ', '.join(self.matched_fields) or 'none'
        return (
            f"Score: {self.score} ({self.reason})\n"
            f"  Name similarity: {self.name_similarity:.2f}\n"
            f"  Matching fields: {fields}\n"
            f"  Contact count penalty: -{self.contact_penalty}"
        )


class MatchScorer:
    """
    Applies the duplicate rules to pairs of client records.

    A pair is a duplicate if any of these hold, checked in order:
    1. Normalised "first last" names are equal
    2. Both aliases are set and equal
    3. One side's name equals the other side's alias
    4. Names are similar and age, gender or ethnicity agree

    Empty names are compared like any other name, so two nameless records
    match under rule 1.
    """

    # Descriptors that can confirm a similar name, in check order
    DEMOGRAPHIC_FIELDS = ('age', 'gender', 'ethnicity')

    # Descriptors that add to a group's score, in scoring order
    SCORED_FIELDS = ('age', 'gender', 'ethnicity', 'height')

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or default_config

    def is_duplicate(self, client1: ClientRecord, client2: ClientRecord) -> bool:
        """True if the two records are judged to be the same person."""
        return self.matching_rule(client1, client2) is not None

    def matching_rule(self, client1: ClientRecord, client2: ClientRecord) -> Optional[str]:
        """
        Name of the first duplicate rule the pair satisfies.

        Returns:
            'name', 'aka', 'name_aka', 'similar_name', or None
        """
        name1 = client1.match_name()
        name2 = client2.match_name()
        if name1 == name2:
            return 'name'

        aka1 = client1.match_aka()
        aka2 = client2.match_aka()
        if aka1 and aka2 and aka1 == aka2:
            return 'aka'

        if (aka1 and name2 == aka1) or (aka2 and name1 == aka2):
            return 'name_aka'

        if name_similarity(name1, name2) > self.config.similarity_threshold:
            if self._shared_demographic(client1, client2) is not None:
                return 'similar_name'

        return None

    def calculate_match_score(
        self,
        client1: ClientRecord,
        client2: ClientRecord
    ) -> MatchResult:
        """
        Score a pair and classify the reason.

        Args:
            client1: First group member
            client2: Second group member

        Returns:
            MatchResult with a score that is never negative
        """
        weights = self.config.score_weights
        result = MatchResult()

        result.name_similarity = name_similarity(client1.match_name(), client2.match_name())

        score = 0
        if client1.display_key() == client2.display_key():
            score += weights['exact_name']
            result.matched_fields.append('name')

        for field_name in self.SCORED_FIELDS:
            if self._field_matches(client1, client2, field_name):
                score += weights[field_name]
                result.matched_fields.append(field_name)

        result.contact_penalty = abs((client1.contacts or 0) - (client2.contacts or 0))
        score -= result.contact_penalty

        result.score = max(0, score)
        result.reason = self.classify_reason(client1, client2)

        return result

    def classify_reason(self, client1: ClientRecord, client2: ClientRecord) -> DuplicateReason:
        """
        Pick the reason label for a pair.

        Names and aliases are compared untrimmed here, unlike the duplicate
        rules, so a pair grouped on trimmed names can still be labelled
        "similar name + demographics".
        """
        if client1.display_key() == client2.display_key():
            return DuplicateReason.EXACT_NAME

        if client1.aka and client2.aka and client1.aka.lower() == client2.aka.lower():
            return DuplicateReason.MATCHING_AKA

        return DuplicateReason.SIMILAR_NAME

    def _shared_demographic(self, client1: ClientRecord, client2: ClientRecord) -> Optional[str]:
        """First demographic field set and equal on both sides."""
        for field_name in self.DEMOGRAPHIC_FIELDS:
            if self._field_matches(client1, client2, field_name):
                return field_name
        return None

    @staticmethod
    def _field_matches(client1: ClientRecord, client2: ClientRecord, field_name: str) -> bool:
        value1 = getattr(client1, field_name)
        value2 = getattr(client2, field_name)
        return is_present(value1) and value1 == value2
