"""Result walking: strip bookkeeping fields and collect entity references."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from graphql_envelop.plugins.response_cache.document import ID_ALIAS, TYPENAME_ALIAS
from graphql_envelop.plugins.response_cache.types import EntityReference

__all__ = ["CollectedEntities", "strip_bookkeeping"]

_BOOKKEEPING_KEYS = frozenset({TYPENAME_ALIAS, ID_ALIAS})


@dataclass
class CollectedEntities:
    entities: set[EntityReference] = field(default_factory=set)
    typenames: set[str] = field(default_factory=set)


def strip_bookkeeping(data: Any, ignored_types: Iterable[str] = ()) -> tuple[Any, CollectedEntities]:
    """Walk result data, collecting entities and removing injected fields.

    Objects of an ignored type still report their type name (so the caller
    can decline caching) but never yield an entity reference.

    Returns:
        A new data tree without bookkeeping keys, and what was collected.
    """
    collected = CollectedEntities()
    ignored = frozenset(ignored_types)
    return _walk(data, collected, ignored), collected


def _walk(value: Any, collected: CollectedEntities, ignored: frozenset[str]) -> Any:
    if isinstance(value, list):
        return [_walk(item, collected, ignored) for item in value]
    if not isinstance(value, dict):
        return value

    typename = value.get(TYPENAME_ALIAS)
    if typename is not None:
        collected.typenames.add(typename)
        entity_id = value.get(ID_ALIAS)
        if entity_id is not None and typename not in ignored:
            collected.entities.add(EntityReference(typename, entity_id))

    return {
        key: _walk(item, collected, ignored)
        for key, item in value.items()
        if key not in _BOOKKEEPING_KEYS
    }
