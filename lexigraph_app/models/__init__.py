# File: lexigraph_app/models/__init__.py
from .card import Card, CardState, Rating, CacheEntry
from .contracts import (
    CardRepository,
    RatingService,
    GenerationService,
    EmbeddingService,
    cosine_similarity,
)
from .memory_store import MemoryCardStore

__all__ = [
    'Card', 'CardState', 'Rating', 'CacheEntry',
    'CardRepository', 'RatingService', 'GenerationService', 'EmbeddingService',
    'cosine_similarity', 'MemoryCardStore',
]
