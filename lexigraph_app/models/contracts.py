# File: lexigraph_app/models/contracts.py
"""
Collaborator Contracts
======================
Abstract contracts for everything the engine talks to but does not own:
card persistence, the spaced-repetition rating service, text generation and
embeddings.

* Persistence and rating are synchronous (read-after-write consistent from
  the same process).
* Generation and embedding lookups are network bound and therefore ``async``.
  They may fail with ``NetworkError``; callers degrade to empty results.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from .card import Card, CacheEntry


class CardRepository(ABC):
    """Durable store for cards and generated-content cache entries."""

    @abstractmethod
    def get_card(self, card_id: str) -> Optional[Card]:
        ...

    @abstractmethod
    def save_card(self, card: Card) -> Card:
        ...

    @abstractmethod
    def get_cards_by_ids(self, card_ids: Sequence[str]) -> List[Card]:
        """Return the cards that still exist, in the order requested."""

    @abstractmethod
    def get_cache_entry(self, key: str) -> Optional[CacheEntry]:
        ...

    @abstractmethod
    def save_cache_entry(self, entry: CacheEntry) -> None:
        ...

    @abstractmethod
    def all_cards(self) -> List[Card]:
        """The full word corpus available for context selection."""


class RatingService(ABC):
    """Opaque spaced-repetition scheduler."""

    @abstractmethod
    def rate(self, card: Card, grade: int) -> Card:
        """Apply ``grade`` (``Rating.*``) and return the card with updated scheduling fields."""


class GenerationService(ABC):
    """Text generation for relation labels, bridging examples and related words."""

    @abstractmethod
    async def label_edges(self, pairs: Sequence[tuple]) -> List[Dict[str, str]]:
        """
        Label each ``(source_word, target_word)`` pair.

        Returns ``[{'source': ..., 'target': ..., 'label': ...}]``. Entries may
        be missing when generation partially fails.
        """

    @abstractmethod
    async def example(self, word_a: str, word_b: str, relation: str = '') -> str:
        ...

    @abstractmethod
    async def related_words(self, word: str) -> List[Dict[str, str]]:
        """``[{'word', 'meaning', 'relation'}]`` suggestions for ``word``."""


class EmbeddingService(ABC):
    """Word embeddings. Only ``embed`` is required; the rest derive from it."""

    @abstractmethod
    async def embed(self, word: str) -> Optional[np.ndarray]:
        """Return the vector for ``word`` or ``None`` when it has none."""

    async def embed_many(self, words: Iterable[str]) -> Dict[str, np.ndarray]:
        words = list(dict.fromkeys(words))
        vectors = await asyncio.gather(*(self.embed(w) for w in words))
        return {w: np.asarray(v, dtype=float) for w, v in zip(words, vectors) if v is not None}

    def similarity(self, vec_a, vec_b) -> float:
        return cosine_similarity(vec_a, vec_b)

    async def nearest_neighbors(self, targets: Sequence[str], k: int, pool: Sequence[str]) -> List[str]:
        """
        Rank ``pool`` words by similarity to the centroid of ``targets``.

        Target words and words without vectors are never returned.
        """
        if k <= 0 or not pool:
            return []
        vectors = await self.embed_many(list(targets) + list(pool))
        target_vectors = [vectors[w] for w in targets if w in vectors]
        if not target_vectors:
            return []
        centroid = np.mean(np.stack(target_vectors), axis=0)

        exclude = set(targets)
        scored = []
        for word in dict.fromkeys(pool):
            if word in exclude or word not in vectors:
                continue
            scored.append((self.similarity(centroid, vectors[word]), word))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [word for _, word in scored[:k]]


def cosine_similarity(vec_a, vec_b) -> float:
    """Cosine similarity; 0.0 when either vector is missing or has zero norm."""
    if vec_a is None or vec_b is None:
        return 0.0
    a = np.asarray(vec_a, dtype=float)
    b = np.asarray(vec_b, dtype=float)
    if a.shape != b.shape:
        return 0.0
    norm = np.linalg.norm(a) * np.linalg.norm(b)
    if norm == 0:
        return 0.0
    return float(np.dot(a, b) / norm)
