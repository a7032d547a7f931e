"""
Deck clustering.

Splits a deck into study groups of related words:

1. Strong links (cosine similarity >= ``link_threshold``) form an undirected graph.
2. Connected components between ``min_size`` and ``max_size`` become groups.
3. Larger components are split by recursive 2-means until none exceeds ``max_size``.
4. Smaller components are pooled and re-clustered with ``k = ceil(n / target_size)``.
5. Words without a vector go into a separate group.

Each group is labelled with its most connected word and groups are returned
largest first. Pure logic, no I/O.
"""
import math
from collections import deque
from typing import Dict, List, Sequence

import numpy as np

from ..schemas import ClusterGroup
from .similarity import normalize_rows, similarity_matrix

UNLINKED_LABEL = 'Unlinked words'


def build_adjacency(words: Sequence[str], vectors: Dict[str, np.ndarray], threshold: float) -> Dict[str, List[str]]:
    adjacency = {w: [] for w in words}
    embedded = [w for w in words if w in vectors]
    matrix = similarity_matrix([vectors[w] for w in embedded])
    for i in range(len(embedded)):
        for j in range(i + 1, len(embedded)):
            if matrix[i, j] >= threshold:
                adjacency[embedded[i]].append(embedded[j])
                adjacency[embedded[j]].append(embedded[i])
    return adjacency


def connected_components(words: Sequence[str], adjacency: Dict[str, List[str]]) -> List[List[str]]:
    visited = set()
    components = []
    for word in words:
        if word in visited:
            continue
        component = []
        queue = deque([word])
        visited.add(word)
        while queue:
            current = queue.popleft()
            component.append(current)
            for neighbor in adjacency.get(current, ()):
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)
        components.append(component)
    return components


def kmeans(vectors: np.ndarray, k: int, max_iter: int = 10) -> List[List[int]]:
    """Cosine k-means seeded with the first ``k`` rows. Returns index lists (empty clusters dropped)."""
    n = len(vectors)
    if n == 0:
        return []
    k = max(1, min(k, n))
    unit = normalize_rows(np.asarray(vectors, dtype=float))
    centroids = unit[:k].copy()
    assignment = np.full(n, -1)

    for _ in range(max_iter):
        distances = 1.0 - unit @ normalize_rows(centroids.copy()).T
        new_assignment = np.argmin(distances, axis=1)
        if np.array_equal(new_assignment, assignment):
            break
        assignment = new_assignment
        for c in range(k):
            members = unit[assignment == c]
            if len(members):
                centroids[c] = members.mean(axis=0)

    clusters = [[int(i) for i in np.flatnonzero(assignment == c)] for c in range(k)]
    return [c for c in clusters if c]


def recursive_split(words: List[str], vectors: Dict[str, np.ndarray], max_size: int, max_iter: int = 10) -> List[List[str]]:
    if len(words) <= max_size:
        return [words]

    parts = kmeans(np.vstack([vectors[w] for w in words]), 2, max_iter)
    if len(parts) < 2:
        # Identical vectors cannot be separated by distance; halve instead.
        middle = len(words) // 2
        parts = [list(range(middle)), list(range(middle, len(words)))]

    result = []
    for indices in parts:
        result.extend(recursive_split([words[i] for i in indices], vectors, max_size, max_iter))
    return result


def pick_label(words: Sequence[str], adjacency: Dict[str, List[str]]) -> str:
    members = set(words)
    best, best_degree = words[0], -1
    for word in words:
        degree = sum(1 for n in adjacency.get(word, ()) if n in members)
        if degree > best_degree:
            best, best_degree = word, degree
    return best


def cluster_words(
    words: Sequence[str],
    vectors: Dict[str, np.ndarray],
    link_threshold: float = 0.6,
    min_size: int = 10,
    max_size: int = 30,
    target_size: int = 20,
    max_iter: int = 10,
) -> List[ClusterGroup]:
    words = list(dict.fromkeys(words))
    if not words:
        return []

    adjacency = build_adjacency(words, vectors, link_threshold)
    groups: List[List[str]] = []
    pooled: List[str] = []

    for component in connected_components(words, adjacency):
        if len(component) > max_size:
            embedded = [w for w in component if w in vectors]
            if len(embedded) < len(component) * 0.5:
                pooled.extend(component)
                continue
            groups.extend(g for g in recursive_split(embedded, vectors, max_size, max_iter) if g)
            pooled.extend(w for w in component if w not in vectors)
        elif len(component) < min_size:
            pooled.extend(component)
        else:
            groups.append(component)

    unlinked: List[str] = []
    if pooled:
        embedded = [w for w in pooled if w in vectors]
        unlinked = [w for w in pooled if w not in vectors]
        if embedded:
            k = max(1, math.ceil(len(pooled) / target_size))
            for indices in kmeans(np.vstack([vectors[w] for w in embedded]), k, max_iter):
                groups.append([embedded[i] for i in indices])

    result = [ClusterGroup(label=pick_label(g, adjacency), words=g) for g in groups]
    if unlinked:
        result.append(ClusterGroup(label=UNLINKED_LABEL, words=unlinked))

    result.sort(key=lambda g: len(g.words), reverse=True)
    return result
