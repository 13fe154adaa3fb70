"""Invalidation index: which cache keys reference which entities.

Used only to find keys to delete on invalidation, never to look up a
result by cache key.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from graphql_envelop.plugins.response_cache.types import EntityReference

__all__ = ["InvalidationIndex"]


class InvalidationIndex:
    """Bidirectional mapping between entity references and cache keys.

    Every key is indexed under each ``EntityReference(typename, id)`` it
    contains and under ``EntityReference(typename)`` for each returned type
    name, so a reference without ``id`` reaches every entry that returned
    the type, including types without an identity field.
    """

    def __init__(self) -> None:
        self._keys_by_ref: defaultdict[EntityReference, set[str]] = defaultdict(set)
        self._refs_by_key: defaultdict[str, set[EntityReference]] = defaultdict(set)

    def __len__(self) -> int:
        return len(self._keys_by_ref)

    def add(self, key: str, entities: Iterable[EntityReference], typenames: Iterable[str] = ()) -> None:
        refs = set(entities)
        refs.update(EntityReference(entity.typename) for entity in list(refs))
        refs.update(EntityReference(typename) for typename in typenames)
        for ref in refs:
            self._keys_by_ref[ref].add(key)
        self._refs_by_key[key].update(refs)

    def keys_for(self, refs: Iterable[EntityReference]) -> set[str]:
        keys: set[str] = set()
        for ref in refs:
            found = self._keys_by_ref.get(ref)
            if found:
                keys.update(found)
        return keys

    def refs_for(self, key: str) -> set[EntityReference]:
        return set(self._refs_by_key.get(key, ()))

    def remove_keys(self, keys: Iterable[str]) -> None:
        """Drop ``keys`` and prune references left without any key."""
        for key in keys:
            for ref in self._refs_by_key.pop(key, ()):
                bucket = self._keys_by_ref.get(ref)
                if bucket is None:
                    continue
                bucket.discard(key)
                if not bucket:
                    del self._keys_by_ref[ref]
