"""
Greedy nearest-neighbour chain ordering.

Starting from the first word, repeatedly append the unvisited word most
similar to the current end of the chain. Words without a vector keep their
relative order at the end.
"""
from typing import Dict, List, Sequence

import numpy as np

from .similarity import normalize_rows


def chain_order(words: Sequence[str], vectors: Dict[str, np.ndarray]) -> List[int]:
    """Return the chain as indices into ``words``."""
    embedded = [i for i, w in enumerate(words) if w in vectors]
    missing = [i for i, w in enumerate(words) if w not in vectors]
    if len(embedded) <= 1:
        return embedded + missing

    unit = normalize_rows(np.vstack([np.asarray(vectors[words[i]], dtype=float) for i in embedded]))
    sims = unit @ unit.T

    order = [0]
    visited = {0}
    while len(order) < len(embedded):
        current = order[-1]
        best, best_score = None, -np.inf
        for j in range(len(embedded)):
            if j in visited:
                continue
            if sims[current, j] > best_score:
                best, best_score = j, sims[current, j]
        order.append(best)
        visited.add(best)

    return [embedded[j] for j in order] + missing


def sort_by_chain(items: Sequence, vectors: Dict[str, np.ndarray], key=lambda item: item) -> list:
    words = [key(item) for item in items]
    return [items[i] for i in chain_order(words, vectors)]
