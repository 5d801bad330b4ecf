"""Fuzzy matching of worktree names for the filter mode."""

from typing import List, Optional, Sequence, Tuple

MATCH_SCORE = 1
CONTIGUOUS_BONUS = 5
PREFIX_BONUS = 10
BOUNDARY_BONUS = 3
EXACT_BONUS = 20
MIN_SCORE = 1

WORD_BOUNDARIES = "-_/. "


def fuzzy_score(query: str, candidate: str) -> Optional[int]:
    """Score ``candidate`` against ``query``, or None when it does not match.

    Every query character must appear in order (case-insensitive). Runs of
    consecutive matches, a match at the start and matches right after a
    separator score extra. Each character takes the earliest possible
    position, so the result is deterministic.
    """
    if not query:
        return 0

    q = query.lower()
    c = candidate.lower()
    score = 0
    position = 0
    previous = -2

    for ch in q:
        index = c.find(ch, position)
        if index < 0:
            return None
        score += MATCH_SCORE
        if index == previous + 1:
            score += CONTIGUOUS_BONUS
        if index == 0:
            score += PREFIX_BONUS
        elif c[index - 1] in WORD_BOUNDARIES:
            score += BOUNDARY_BONUS
        previous = index
        position = index + 1

    if q == c:
        score += EXACT_BONUS
    return score


def fuzzy_filter(query: str, candidates: Sequence[str], threshold: int = MIN_SCORE) -> List[Tuple[int, int]]:
    """Rank ``candidates`` against ``query``.

    Returns:
        (original index, score) pairs for matches scoring at least
        ``threshold``, best first; equal scores keep their original order.
        An empty query keeps every candidate in order.
    """
    if not query:
        return [(i, 0) for i in range(len(candidates))]

    scored = []
    for index, candidate in enumerate(candidates):
        score = fuzzy_score(query, candidate)
        if score is not None and score >= threshold:
            scored.append((index, score))
    # sorted() is stable, so ties stay in list order
    return sorted(scored, key=lambda pair: -pair[1])
