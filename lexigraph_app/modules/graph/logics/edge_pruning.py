"""
Edge pruning for the semantic graph.

Candidate edges are visited strongest first and accepted only while both
endpoints still have capacity, so no node ever exceeds its own limit.
"""
from typing import Dict, Iterable, List, Tuple

Candidate = Tuple[str, str, float]


def prune_edges(
    candidates: Iterable[Candidate],
    capacity: Dict[str, int],
    threshold: float,
) -> List[Candidate]:
    """
    Keep the strongest ``(source, target, similarity)`` candidates.

    Args:
        candidates: unordered pairs, each listed once.
        capacity: maximum retained edges per node id.
        threshold: candidates at or below this similarity are ignored.
    """
    remaining = dict(capacity)
    ordered = sorted(
        (c for c in candidates if c[2] > threshold and c[0] != c[1]),
        key=lambda c: (-c[2], c[0], c[1]),
    )
    kept: List[Candidate] = []
    seen = set()
    for source, target, similarity in ordered:
        pair = frozenset((source, target))
        if pair in seen:
            continue
        if remaining.get(source, 0) <= 0 or remaining.get(target, 0) <= 0:
            continue
        remaining[source] -= 1
        remaining[target] -= 1
        seen.add(pair)
        kept.append((source, target, similarity))
    return kept
