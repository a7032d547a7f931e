# File: lexigraph_app/modules/cache/logics/keys.py
"""
Cache key builders. Pure functions; every key is namespaced by what it holds.

Word sets are hashed order-independently so that the same group studied in a
different chain order hits the same entry.
"""
import hashlib
from typing import Iterable


def _normalize(word: str) -> str:
    return (word or '').strip().lower()


def word_set_hash(words: Iterable[str]) -> str:
    joined = '\n'.join(sorted({_normalize(w) for w in words if w}))
    return hashlib.sha1(joined.encode('utf-8')).hexdigest()


def graph_key(words: Iterable[str]) -> str:
    return f"graph:{word_set_hash(words)}"


def context_graph_key(word: str) -> str:
    return f"context:{_normalize(word)}"


def labels_key(word: str) -> str:
    """Relation labels generated for edges leaving ``word``: ``{target_word: label}``."""
    return f"labels:{_normalize(word)}"


def related_key(word: str) -> str:
    return f"related:{_normalize(word)}"


def example_key(word_a: str, word_b: str) -> str:
    a, b = sorted((_normalize(word_a), _normalize(word_b)))
    return f"example:{a}|{b}"


def clusters_key(card_ids: Iterable[str]) -> str:
    joined = ','.join(sorted(str(cid) for cid in card_ids))
    return f"clusters:{hashlib.sha1(joined.encode('utf-8')).hexdigest()}"
