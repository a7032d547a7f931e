"""
Vector similarity helpers. Pure numpy, no I/O.
"""
from typing import Sequence

import numpy as np


def normalize_rows(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return matrix / norms


def similarity_matrix(vectors: Sequence[np.ndarray]) -> np.ndarray:
    """Pairwise cosine similarity of ``vectors`` (n x n)."""
    if not len(vectors):
        return np.zeros((0, 0))
    unit = normalize_rows(np.vstack([np.asarray(v, dtype=float) for v in vectors]))
    return unit @ unit.T

