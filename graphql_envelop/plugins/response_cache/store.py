"""Key/value stores backing the response cache.

A store only keeps ``CacheEntry`` values by key. TTL timers and the
invalidation index live in ``ResponseCache``; a store that enforces TTL on
its own (a networked store) sets ``enforces_ttl`` so no local timers are
scheduled for it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from graphql_envelop.plugins.response_cache.types import CacheEntry

__all__ = ["InMemoryStore", "Store"]


class Store(ABC):
    """Store contract used by ``ResponseCache``.

    Implementations must make ``set`` and ``delete_keys`` atomic with
    respect to interleaving reads: a reader sees either the old or the new
    entry, never a partial one.
    """

    enforces_ttl: bool = False

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None:
        """Return the entry stored under ``key``, or None."""

    @abstractmethod
    async def set(self, entry: CacheEntry) -> None:
        """Store ``entry`` under ``entry.key``, replacing any previous entry."""

    @abstractmethod
    async def delete_keys(self, keys: Iterable[str]) -> None:
        """Delete every entry whose key is in ``keys``; unknown keys are ignored."""


class InMemoryStore(Store):
    """Process-local store; entries live in a plain dict.

    Methods never suspend between reading and writing, so under cooperative
    scheduling every operation is atomic.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    async def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    async def set(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry

    async def delete_keys(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._entries.pop(key, None)
