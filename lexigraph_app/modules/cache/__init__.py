# File: lexigraph_app/modules/cache/__init__.py
"""Two-tier cache for generated graph, label and related-word data."""

from .services.cache_manager import CacheManager
from .logics import keys

__all__ = ['CacheManager', 'keys']
