"""
Tests for duplicate detection and scoring.
"""

import pytest
from clientmerge.config import EngineConfig
from clientmerge.errors import FetchFailed
from clientmerge.matching import (
    ClientMatcher,
    MatchScorer,
    DuplicateReason,
    suggest_survivor,
)

from conftest import make_client, MemoryStore


class TestMatchScorer:
    """Tests for MatchScorer class."""

    def test_exact_name_ignores_case_and_whitespace(self):
        """Names equal after trimming and lowercasing are duplicates."""
        scorer = MatchScorer()
        a = make_client('a', ' JOHN', 'smith')
        b = make_client('b', 'john', 'Smith ')
        assert scorer.matching_rule(a, b) == 'name'

    def test_matching_aka(self):
        """Two equal aliases are enough."""
        scorer = MatchScorer()
        a = make_client('a', 'Robert', 'Jones', aka='Red')
        b = make_client('b', 'Bobby', 'Crane', aka='RED')
        assert scorer.matching_rule(a, b) == 'aka'
        assert scorer.classify_reason(a, b) == DuplicateReason.MATCHING_AKA

    def test_padded_alias_groups_but_is_not_labelled_aka(self):
        """Aliases are trimmed for grouping but not for the reason label."""
        scorer = MatchScorer()
        a = make_client('a', 'Robert', 'Jones', aka='Red')
        b = make_client('b', 'Bobby', 'Crane', aka=' red ')
        assert scorer.matching_rule(a, b) == 'aka'
        assert scorer.classify_reason(a, b) == DuplicateReason.SIMILAR_NAME

    def test_blank_alias_does_not_match(self):
        """Whitespace-only aliases are treated as missing."""
        scorer = MatchScorer()
        a = make_client('a', 'Robert', 'Jones', aka='  ')
        b = make_client('b', 'Maria', 'Lopez', aka='')
        assert not scorer.is_duplicate(a, b)

    def test_name_matches_other_alias(self):
        """One side's name equal to the other's alias, in both directions."""
        scorer = MatchScorer()
        a = make_client('a', 'Robert', 'Jones')
        b = make_client('b', 'Bobby', 'Crane', aka='Robert Jones')
        assert scorer.matching_rule(a, b) == 'name_aka'
        assert scorer.matching_rule(b, a) == 'name_aka'
        assert scorer.classify_reason(a, b) == DuplicateReason.SIMILAR_NAME

    def test_similar_name_needs_demographic(self):
        """A similar name alone is not enough."""
        scorer = MatchScorer()
        a = make_client('a', 'Jon', 'Smith')
        b = make_client('b', 'John', 'Smith')
        assert not scorer.is_duplicate(a, b)

        a.gender = 'M'
        b.gender = 'M'
        assert scorer.matching_rule(a, b) == 'similar_name'

    def test_similar_name_mismatched_demographics(self):
        """Demographics that differ do not confirm a similar name."""
        scorer = MatchScorer()
        a = make_client('a', 'Jon', 'Smith', age='30', gender='M')
        b = make_client('b', 'John', 'Smith', age='31', gender='F')
        assert not scorer.is_duplicate(a, b)

    def test_similarity_threshold_is_strict(self):
        """A similarity of exactly 0.8 does not count."""
        scorer = MatchScorer()
        a = make_client('a', 'Jon', 'Smyth', age='30')
        b = make_client('b', 'John', 'Smith', age='30')
        assert not scorer.is_duplicate(a, b)

        lenient = MatchScorer(EngineConfig(similarity_threshold=0.75))
        assert lenient.is_duplicate(a, b)

    def test_empty_names_match(self):
        """Two nameless records match on the exact name rule."""
        scorer = MatchScorer()
        assert scorer.matching_rule(make_client('a'), make_client('b')) == 'name'

    def test_score_exact_name(self):
        """Exact names score 100 minus the contact difference."""
        scorer = MatchScorer()
        a = make_client('a', 'John', 'Smith', contacts=2)
        b = make_client('b', 'John', 'Smith', contacts=5)

        result = scorer.calculate_match_score(a, b)

        assert result.score == 97
        assert result.contact_penalty == 3
        assert result.reason == DuplicateReason.EXACT_NAME
        assert result.matched_fields == ['name']

    def test_score_padded_names_not_exact(self):
        """Names equal only after trimming get no exact-name bonus."""
        scorer = MatchScorer()
        a = make_client('a', ' JOHN', 'smith', contacts=2)
        b = make_client('b', 'john', 'Smith ', contacts=2)

        result = scorer.calculate_match_score(a, b)

        assert scorer.is_duplicate(a, b)
        assert result.score == 0
        assert 'name' not in result.matched_fields
        assert result.reason == DuplicateReason.SIMILAR_NAME

    def test_score_all_fields(self):
        """Every matching descriptor adds its weight."""
        scorer = MatchScorer()
        fields = dict(age='40', gender='F', ethnicity='Hispanic', height="5'4\"")
        a = make_client('a', 'Maria', 'Lopez', **fields)
        b = make_client('b', 'Maria', 'Lopez', **fields)

        result = scorer.calculate_match_score(a, b)

        assert result.score == 100 + 20 + 15 + 15 + 10
        assert result.matched_fields == ['name', 'age', 'gender', 'ethnicity', 'height']

    def test_score_ignores_empty_fields(self):
        """Empty descriptors never count as a match."""
        scorer = MatchScorer()
        a = make_client('a', 'Jon', 'Smith', age='', gender=None)
        b = make_client('b', 'John', 'Smith', age='', gender=None)
        assert scorer.calculate_match_score(a, b).score == 0

    def test_score_never_negative(self):
        """Large contact differences floor the score at zero."""
        scorer = MatchScorer()
        a = make_client('a', 'John', 'Smith', contacts=0)
        b = make_client('b', 'John', 'Smith', contacts=500)
        assert scorer.calculate_match_score(a, b).score == 0


class TestClientMatcher:
    """Tests for ClientMatcher class."""

    def test_empty_input(self):
        """No records, no groups, no error."""
        assert ClientMatcher().detect([]) == []

    def test_exact_name_scenario(self):
        """Two John Smiths form one group scoring 97."""
        clients = [
            make_client('a', 'John', 'Smith', aka='', contacts=2),
            make_client('b', 'John', 'Smith', aka='', contacts=5),
        ]

        groups = ClientMatcher().detect(clients)

        assert len(groups) == 1
        assert groups[0].client_ids == ['a', 'b']
        assert groups[0].reason == DuplicateReason.EXACT_NAME
        assert str(groups[0].reason) == "exact name match"
        assert groups[0].score == 97

    def test_similar_name_scenario(self):
        """Similar names with a matching age score 20."""
        clients = [
            make_client('a', 'Jon', 'Smith', age='30', contacts=1),
            make_client('b', 'John', 'Smith', age='30', contacts=1),
        ]

        groups = ClientMatcher().detect(clients)

        assert len(groups) == 1
        assert groups[0].reason == DuplicateReason.SIMILAR_NAME
        assert groups[0].score == 20

    def test_grouping_is_not_transitive(self):
        """Members only need to match the record that started the group."""
        anchor = make_client('anchor', 'John', 'Smith', age='30')
        same_name = make_client('same', 'John', 'Smith')
        similar = make_client('similar', 'Jon', 'Smith', age='30')

        groups = ClientMatcher().detect([anchor, same_name, similar])

        assert len(groups) == 1
        assert groups[0].client_ids == ['anchor', 'same', 'similar']
        assert not MatchScorer().is_duplicate(same_name, similar)

    def test_first_hit_wins(self):
        """Input order decides which records get claimed."""
        anchor = make_client('anchor', 'John', 'Smith', age='30')
        same_name = make_client('same', 'John', 'Smith')
        similar = make_client('similar', 'Jon', 'Smith', age='30')

        groups = ClientMatcher().detect([same_name, similar, anchor])

        assert len(groups) == 1
        assert groups[0].client_ids == ['same', 'anchor']

    def test_sorted_by_score(self):
        """Higher scoring groups come first."""
        clients = [
            make_client('a1', 'John', 'Smith', contacts=2),
            make_client('a2', 'John', 'Smith', contacts=5),
            make_client('b1', 'Maria', 'Lopez', contacts=1),
            make_client('b2', 'Maria', 'Lopez', contacts=1),
        ]

        groups = ClientMatcher().detect(clients)

        assert [g.group_id for g in groups] == ['group-2', 'group-0']
        assert [g.score for g in groups] == [100, 97]

    def test_ties_keep_detection_order(self):
        """Equal scores stay in the order the groups were found."""
        clients = [
            make_client('a1', 'Maria', 'Lopez'),
            make_client('b1', 'John', 'Smith'),
            make_client('a2', 'Maria', 'Lopez'),
            make_client('b2', 'John', 'Smith'),
        ]

        groups = ClientMatcher().detect(clients)

        assert [g.group_id for g in groups] == ['group-0', 'group-1']
        assert groups[0].client_ids == ['a1', 'a2']

    def test_detect_is_deterministic(self):
        """Repeated calls give identical results."""
        clients = [
            make_client('a', 'John', 'Smith', contacts=3, gender='M'),
            make_client('b', 'Jon', 'Smith', gender='M'),
            make_client('c', 'Red', 'Cole', aka='Red'),
            make_client('d', 'Ronald', 'Cole', aka='red'),
            make_client('e', 'Maria', 'Lopez'),
        ]
        matcher = ClientMatcher()

        first = matcher.detect(clients)
        second = matcher.detect(clients)

        assert [(g.group_id, g.client_ids, g.score, g.reason) for g in first] == \
               [(g.group_id, g.client_ids, g.score, g.reason) for g in second]

    def test_unnamed_records_are_grouped(self):
        """Records with no name at all end up in one group."""
        clients = [make_client('a'), make_client('b'), make_client('c', 'Maria', 'Lopez')]

        groups = ClientMatcher().detect(clients)

        assert len(groups) == 1
        assert groups[0].client_ids == ['a', 'b']

    def test_swapped_single_names_scored_as_similar(self):
        """A surname typed in either name field groups but scores as similar."""
        clients = [
            make_client('a', '', 'Smith', age='30'),
            make_client('b', 'Smith', '', age='30'),
        ]

        groups = ClientMatcher().detect(clients)

        assert len(groups) == 1
        assert groups[0].score == 20
        assert groups[0].reason == DuplicateReason.SIMILAR_NAME

    def test_group_totals_and_survivor(self):
        """Group exposes its contact total and the suggested survivor."""
        clients = [
            make_client('a', 'John', 'Smith', contacts=2),
            make_client('b', 'John', 'Smith', contacts=5),
            make_client('c', 'John', 'Smith', contacts=5),
        ]

        group = ClientMatcher().detect(clients)[0]

        assert group.total_contacts == 12
        assert group.suggested_survivor().client_id == 'b'

    def test_suggest_survivor_first_on_tie(self):
        """The first member wins when contact counts tie."""
        clients = [make_client('a', contacts=1), make_client('b', contacts=1)]
        assert suggest_survivor(clients).client_id == 'a'

    def test_find_duplicates_from_store(self, seeded_db):
        """Loading through the store finds the seeded group."""
        groups = ClientMatcher().find_duplicates(seeded_db)

        assert len(groups) == 1
        assert groups[0].client_ids == ['c1', 'c2', 'c3']
        assert groups[0].score == 97

    def test_find_duplicates_filters(self, seeded_db):
        """min_score and limit trim the result."""
        matcher = ClientMatcher()
        assert matcher.find_duplicates(seeded_db, min_score=98) == []
        assert len(matcher.find_duplicates(seeded_db, limit=1)) == 1
        assert matcher.find_duplicates(seeded_db, limit=0) == []

    def test_find_duplicates_fetch_failure(self):
        """A storage read error surfaces as FetchFailed."""
        store = MemoryStore([])

        def broken():
            raise RuntimeError("connection reset")

        store.fetch_all_clients = broken

        with pytest.raises(FetchFailed, match="connection reset"):
            ClientMatcher().find_duplicates(store)
