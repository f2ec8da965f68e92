"""
Fuzzy Matching
--------------
Edit distance and normalized similarity for command tokens.
Pure functions. No registry knowledge.
"""

from typing import Tuple


# Share of the remaining gap granted to candidates that start with the query
PREFIX_BONUS = 0.5


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings (insert, delete, substitute)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    # Keep the shorter string in the inner loop
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current

    return previous[-1]


def similarity(query: str, candidate: str) -> float:
    """
    Normalized similarity in [0, 1], case-insensitive.

    1 - distance / max(len). Candidates that start with the query get
    conf + (1 - conf) * PREFIX_BONUS.
    """
    q = query.strip().lower()
    c = candidate.lower()

    if not q or not c:
        return 0.0

    longest = max(len(q), len(c))
    confidence = 1.0 - levenshtein(q, c) / longest

    if c.startswith(q):
        confidence = confidence + (1.0 - confidence) * PREFIX_BONUS

    return max(0.0, min(1.0, confidence))


def match(query: str, candidate: str) -> Tuple[float, bool]:
    """Similarity together with whether the candidate is a prefix match."""
    is_prefix = bool(query.strip()) and candidate.lower().startswith(query.strip().lower())
    return similarity(query, candidate), is_prefix
