"""Response cache: store + invalidation index + expiry timers.

Usage:
    cache = create_in_memory_cache()
    plugin = use_response_cache(session=lambda context: None, cache=cache)

    # out-of-band busting, e.g. from a webhook handler
    await cache.invalidate([{"typename": "User", "id": "1"}])
    await cache.invalidate([{"typename": "Comment"}])  # every entry with a Comment
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from graphql_envelop.plugins.response_cache.index import InvalidationIndex
from graphql_envelop.plugins.response_cache.store import InMemoryStore, Store
from graphql_envelop.plugins.response_cache.types import CacheEntry, EntityReference

if TYPE_CHECKING:
    from graphql import ExecutionResult

logger = logging.getLogger(__name__)

__all__ = ["ResponseCache", "create_in_memory_cache"]

Clock = Callable[[], float]


class ResponseCache:
    """Cache of whole operation results with entity-aware invalidation.

    TTLs are milliseconds. ``math.inf`` caches until invalidated. When the
    store does not enforce TTL itself, expiry is enforced twice: a per-entry
    ``asyncio`` timer removes the entry (and its index entries) once the TTL
    elapses, and reads check the deadline against ``clock`` so an entry is
    never served late even if its timer has not fired.

    Args:
        store: Backing store (defaults to ``InMemoryStore``).
        clock: Monotonic clock in seconds; injectable for tests.
    """

    def __init__(self, store: Store | None = None, clock: Clock = time.monotonic) -> None:
        self.store = store if store is not None else InMemoryStore()
        self.index = InvalidationIndex()
        self._clock = clock
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Future[None]] = set()

    async def get(self, key: str) -> ExecutionResult | None:
        entry = await self.store.get(key)
        if entry is None:
            return None
        if not self.store.enforces_ttl and entry.is_expired(self._clock()):
            logger.debug("Cache entry expired on read", extra={"cache_key": key})
            await self._evict([key])
            return None
        return entry.value

    async def set(
        self,
        key: str,
        value: ExecutionResult,
        entities: Iterable[EntityReference] = (),
        ttl: float = math.inf,
        typenames: Iterable[str] = (),
    ) -> None:
        """Store ``value`` under ``key`` for ``ttl`` milliseconds.

        The store is written first; only once that succeeds are the old
        index entries and pending timer of a replaced key swapped out.
        """
        if ttl <= 0:
            return
        expires_at = math.inf if math.isinf(ttl) else self._clock() + ttl / 1000.0
        entry = CacheEntry(
            key=key,
            value=value,
            expires_at=expires_at,
            entities=frozenset(entity for entity in entities if entity.id is not None),
            typenames=frozenset(typenames),
        )
        await self.store.set(entry)
        self._cancel_timer(key)
        self.index.remove_keys([key])
        self.index.add(key, entry.entities, entry.typenames)
        if not self.store.enforces_ttl and not math.isinf(ttl):
            self._schedule_expiry(key, ttl / 1000.0)

    async def invalidate(self, entities: Iterable[EntityReference | Mapping[str, Any]]) -> list[str]:
        """Delete every entry referencing any of ``entities``.

        A reference without ``id`` matches every entry that ever returned
        the type name.

        Returns:
            The deleted cache keys, sorted.
        """
        refs = [EntityReference.coerce(entity) for entity in entities]
        keys = self.index.keys_for(refs)
        if keys:
            await self._evict(keys)
            logger.debug(
                "Invalidated cache entries",
                extra={"entities": [str(ref) for ref in refs], "keys": len(keys)},
            )
        return sorted(keys)

    async def _evict(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        for key in keys:
            self._cancel_timer(key)
        await self.store.delete_keys(keys)
        self.index.remove_keys(keys)

    def _schedule_expiry(self, key: str, delay: float) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: expiry is still enforced on read.
            return
        self._timers[key] = loop.call_later(delay, self._on_timer, key)

    def _cancel_timer(self, key: str) -> None:
        handle = self._timers.pop(key, None)
        if handle is not None:
            handle.cancel()

    def _on_timer(self, key: str) -> None:
        self._timers.pop(key, None)
        task = asyncio.ensure_future(self._expire(key))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _expire(self, key: str) -> None:
        try:
            entry = await self.store.get(key)
            # The entry may have been replaced or already removed since scheduling.
            if entry is None:
                return
            remaining = entry.expires_at - self._clock()
            if remaining > 0:
                if not math.isinf(remaining):
                    self._schedule_expiry(key, remaining)
                return
            await self._evict([key])
            logger.debug("Cache entry expired", extra={"cache_key": key})
        except Exception:
            logger.exception("Cache expiry failed", extra={"cache_key": key})


def create_in_memory_cache(clock: Clock = time.monotonic) -> ResponseCache:
    """Create the reference in-process response cache."""
    return ResponseCache(InMemoryStore(), clock=clock)
