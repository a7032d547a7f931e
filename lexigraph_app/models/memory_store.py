# File: lexigraph_app/models/memory_store.py
"""In-process ``CardRepository`` used for local wiring and tests."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Sequence

from .card import Card, CacheEntry, _utcnow
from .contracts import CardRepository


class MemoryCardStore(CardRepository):
    """Dictionary-backed store. Cards are copied on the way in and out."""

    def __init__(self, cards: Optional[Iterable[Card]] = None):
        self._lock = threading.RLock()
        self._cards: Dict[str, Card] = {}
        self._cache: Dict[str, CacheEntry] = {}
        for card in cards or ():
            self._cards[card.id] = card.copy()

    def get_card(self, card_id: str) -> Optional[Card]:
        with self._lock:
            card = self._cards.get(card_id)
            return card.copy() if card else None

    def save_card(self, card: Card) -> Card:
        with self._lock:
            stored = card.copy(updated_at=_utcnow())
            self._cards[card.id] = stored
            return stored.copy()

    def get_cards_by_ids(self, card_ids: Sequence[str]) -> List[Card]:
        with self._lock:
            return [self._cards[cid].copy() for cid in card_ids if cid in self._cards]

    def delete_card(self, card_id: str) -> None:
        with self._lock:
            self._cards.pop(card_id, None)

    def get_cache_entry(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._cache.get(key)

    def save_cache_entry(self, entry: CacheEntry) -> None:
        with self._lock:
            self._cache[entry.key] = entry

    def all_cards(self) -> List[Card]:
        with self._lock:
            return [card.copy() for card in self._cards.values()]
