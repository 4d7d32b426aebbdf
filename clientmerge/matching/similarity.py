"""
String similarity helpers used by the duplicate scorer.

Name similarity is the normalised Levenshtein distance between the two
"first last" strings:

    similarity = (len(longer) - distance(longer, shorter)) / len(longer)
"""

from rapidfuzz.distance import Levenshtein


def edit_distance(s1: str, s2: str) -> int:
    """
    Classic Levenshtein edit distance (unit cost insert/delete/substitute).

    Args:
        s1: First string
        s2: Second string

    Returns:
        Minimum number of single-character edits turning s1 into s2
    """
    return Levenshtein.distance(s1 or "", s2 or "")


def name_similarity(name1: str, name2: str) -> float:
    """
    Similarity of two already-normalised names in [0, 1].

    Two empty names are identical (1.0).
    """
    longer, shorter = (name1, name2) if len(name1) > len(name2) else (name2, name1)

    if len(longer) == 0:
        return 1.0

    distance = edit_distance(longer, shorter)
    return (len(longer) - distance) / len(longer)


def is_present(value) -> bool:
    """True if a descriptor holds something other than blanks."""
    return value is not None and str(value).strip() != ""
