"""
String similarity scoring for sanctions name matching.

Scores are normalized to [0, 1]:
- identical strings (case and surrounding whitespace ignored) score 1.0
- one string containing the other scores a flat 0.8
- anything else scores 1 - levenshtein / longer length
"""

CONTAINMENT_SCORE = 0.8


def edit_distance(s1: str, s2: str) -> int:
    """
    Levenshtein distance with unit cost insert, delete and substitute.

    Keeps one row of the DP table, sized by the shorter string.
    """
    longer, shorter = (s1, s2) if len(s1) >= len(s2) else (s2, s1)
    if not shorter:
        return len(longer)

    row = list(range(len(shorter) + 1))
    for i, ch in enumerate(longer, start=1):
        diagonal, row[0] = row[0], i
        for j, other in enumerate(shorter, start=1):
            above = row[j]
            row[j] = min(above + 1, row[j - 1] + 1, diagonal + (ch != other))
            diagonal = above
    return row[-1]


def normalize(s: str) -> str:
    return s.strip().lower()


def similarity(a: str, b: str) -> float:
    """
    Similarity score between two strings.

    Args:
        a: First string
        b: Second string

    Returns:
        Score in [0.0, 1.0], symmetric in its arguments
    """
    s1 = normalize(a)
    s2 = normalize(b)

    if not s1 and not s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0
    if s1 in s2 or s2 in s1:
        return CONTAINMENT_SCORE

    return 1.0 - edit_distance(s1, s2) / max(len(s1), len(s2))
