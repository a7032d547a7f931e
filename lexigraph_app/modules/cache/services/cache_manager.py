# File: lexigraph_app/modules/cache/services/cache_manager.py
"""
Cache Manager
=============
Two-tier get/populate for generated data.

* **Memory tier**: a bounded LRU owned by one learning session. It may also
  hold an in-flight sentinel while a value is being generated.
* **Durable tier**: the persistence collaborator's cache entries, valid for
  ``ttl_seconds`` after their timestamp.

``get_or_generate`` is the only path that generates. Concurrent calls for the
same key join the generation already in flight instead of starting another
one; a failed generation clears the sentinel so that a later call retries.
The sentinel is not tied to an event loop, so a request running its own loop
in another thread can join it.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import Future
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Optional

from lexigraph_app.core.defaults import EngineSettings
from lexigraph_app.models.card import CacheEntry

logger = logging.getLogger(__name__)

_MISS = object()
_FAILED = object()


class _InFlight:
    """Memory-tier sentinel for a generation that has not finished yet."""

    __slots__ = ('future',)

    def __init__(self):
        self.future = Future()

    def resolve(self, value):
        if not self.future.done():
            self.future.set_result(value)

    async def wait(self):
        return await asyncio.shield(asyncio.wrap_future(self.future))


class CacheManager:
    def __init__(
        self,
        repository,
        ttl_seconds: Optional[float] = None,
        memory_size: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        defaults = EngineSettings()
        self.repository = repository
        self.ttl_seconds = defaults.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.memory_size = memory_size or defaults.memory_cache_size
        self._clock = clock
        self._memory: 'OrderedDict[str, Any]' = OrderedDict()
        # Guards the memory tier; never held across an await.
        self._lock = threading.RLock()
        # Keys invalidated this session; the durable copy is ignored until repopulated.
        self._stale = set()
        self.stats = {'hits': 0, 'misses': 0, 'generations': 0, 'failures': 0}

    @classmethod
    def from_settings(cls, repository, settings: EngineSettings, **kwargs) -> 'CacheManager':
        return cls(
            repository,
            ttl_seconds=settings.cache_ttl_seconds,
            memory_size=settings.memory_cache_size,
            **kwargs,
        )

    # ── reads ────────────────────────────────────────────────────────

    def get(self, key: str, default=None):
        """Memory tier, then durable tier within TTL. ``default`` on a miss."""
        value = self._lookup(key)
        if value is _MISS:
            self.stats['misses'] += 1
            return default
        self.stats['hits'] += 1
        return value

    def contains(self, key: str) -> bool:
        return self._lookup(key) is not _MISS

    def is_in_flight(self, key: str) -> bool:
        return isinstance(self._memory.get(key), _InFlight)

    def _lookup(self, key: str):
        with self._lock:
            slot = self._memory.get(key, _MISS)
            if slot is not _MISS and not isinstance(slot, _InFlight):
                self._memory.move_to_end(key)
                return slot

            if key in self._stale:
                return _MISS

            entry = self._read_durable(key)
            if entry is None:
                return _MISS
            if self._clock() - entry.timestamp >= self.ttl_seconds:
                logger.debug("Cache entry %s expired", key)
                return _MISS

            # Never overwrite a pending sentinel with the durable copy.
            if not self.is_in_flight(key):
                self._remember(key, entry.payload)
            return entry.payload

    def _read_durable(self, key: str) -> Optional[CacheEntry]:
        try:
            return self.repository.get_cache_entry(key)
        except Exception as e:
            logger.warning(f"Durable cache read failed for {key}: {e}")
            return None

    # ── writes ───────────────────────────────────────────────────────

    def populate(self, key: str, value: Any) -> None:
        """Write the durable tier with the current timestamp, then the memory tier."""
        entry = CacheEntry(key=key, payload=value, timestamp=self._clock())
        try:
            self.repository.save_cache_entry(entry)
        except Exception as e:
            logger.warning(f"Durable cache write failed for {key}: {e}")
        with self._lock:
            self._stale.discard(key)
            self._remember(key, value)

    def invalidate(self, key: str) -> None:
        """Forget ``key`` for this session until it is populated again."""
        with self._lock:
            if self.is_in_flight(key):
                return
            self._memory.pop(key, None)
            self._stale.add(key)
        logger.debug("Invalidated cache entry %s", key)

    def _remember(self, key: str, value: Any) -> None:
        self._memory[key] = value
        self._memory.move_to_end(key)
        self._evict()

    def _evict(self) -> None:
        overflow = len(self._memory) - self.memory_size
        if overflow <= 0:
            return
        for key in list(self._memory.keys()):
            if overflow <= 0:
                break
            if isinstance(self._memory[key], _InFlight):
                continue
            del self._memory[key]
            overflow -= 1

    # ── generation ───────────────────────────────────────────────────

    async def get_or_generate(
        self,
        key: str,
        generator: Callable[[], Awaitable[Any]],
        force_refresh: bool = False,
        default: Any = None,
    ):
        """
        Return the cached value for ``key`` or generate, populate and return it.

        Args:
            generator: zero-argument coroutine function producing the value.
            force_refresh: bypass both tiers and regenerate unconditionally.
            default: returned (and never stored) when generation fails.
        """
        with self._lock:
            slot = None if force_refresh else self._memory.get(key)
            if not isinstance(slot, _InFlight):
                value = _MISS if force_refresh else self._lookup(key)
                if value is not _MISS:
                    self.stats['hits'] += 1
                    return value
                if not force_refresh:
                    self.stats['misses'] += 1
                sentinel = _InFlight()
                self._memory[key] = sentinel
                self.stats['generations'] += 1

        if isinstance(slot, _InFlight):
            logger.debug("Joining in-flight generation for %s", key)
            result = await slot.wait()
            return default if result is _FAILED else result

        try:
            value = await generator()
        except Exception as e:
            with self._lock:
                self.stats['failures'] += 1
                if self._memory.get(key) is sentinel:
                    del self._memory[key]
            logger.warning(f"Generation failed for {key}: {e}")
            sentinel.resolve(_FAILED)
            return default

        with self._lock:
            if self._memory.get(key) is sentinel or key not in self._memory:
                self.populate(key, value)
        sentinel.resolve(value)
        return value
