# File: lexigraph_app/modules/graph/services/deck_clusterer.py
"""
Deck Clusterer
==============
Splits a deck into study groups (``GroupDescriptor``) of related words.

Results are cached through the Cache Manager as word lists only and
rehydrated with fresh cards on every call, so a cached grouping never
resurrects stale card state. Concurrent requests for the same deck join the
calculation already in flight.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from lexigraph_app.core.defaults import EngineSettings
from lexigraph_app.models.card import Card, CardState
from lexigraph_app.modules.cache.logics import keys

from ..logics.clustering import cluster_words

logger = logging.getLogger(__name__)


def _norm(word: str) -> str:
    return (word or '').strip().lower()


def _prefer(existing: Optional[Card], candidate: Card) -> Card:
    """Between duplicate words keep the card with learning progress."""
    if existing is None:
        return candidate
    existing_new = existing.state == CardState.NEW and not existing.is_familiar
    candidate_new = candidate.state == CardState.NEW and not candidate.is_familiar
    if existing_new and not candidate_new:
        return candidate
    return existing


class DeckClusterer:
    def __init__(self, embeddings, cache, settings: Optional[EngineSettings] = None):
        self.embeddings = embeddings
        self.cache = cache
        self.settings = settings or EngineSettings()

    async def cluster(self, cards: Sequence[Card], force_refresh: bool = False) -> List[dict]:
        """
        Return ``[{'label': str, 'items': [Card, ...]}]``, largest group first.
        """
        by_word: Dict[str, Card] = {}
        for card in cards:
            word = _norm(card.word)
            if word:
                by_word[word] = _prefer(by_word.get(word), card)
        if not by_word:
            return []

        key = keys.clusters_key(c.id for c in by_word.values())
        words = list(by_word.keys())

        async def generate():
            return await self._compute(words)

        groups = await self.cache.get_or_generate(key, generate, force_refresh=force_refresh, default=None)
        if groups is None:
            logger.warning("Clustering failed for %d cards, returning a single group", len(words))
            groups = [{'label': by_word[words[0]].word, 'words': words}]

        result = []
        for group in groups:
            items = [by_word[w] for w in group.get('words', []) if w in by_word]
            if items:
                label = group.get('label')
                label = by_word[label].word if label in by_word else label
                result.append({'label': label, 'items': items})
        return result

    async def _compute(self, words: List[str]) -> List[dict]:
        s = self.settings
        vectors = await self.embeddings.embed_many(words)
        clusters = cluster_words(
            words,
            vectors,
            link_threshold=s.cluster_link_threshold,
            min_size=s.cluster_min_size,
            max_size=s.cluster_max_size,
            target_size=s.cluster_target_size,
            max_iter=s.cluster_kmeans_iterations,
        )
        logger.info("Clustered %d words into %d groups", len(words), len(clusters))
        return [{'label': c.label, 'words': c.words} for c in clusters]
