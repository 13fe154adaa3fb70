"""Tiered TTL resolution, most specific tier wins.

1. Schema coordinates traversed by the operation that have a TTL:
   minimum of them. ``None`` means "no expiry" for that coordinate.
2. Otherwise type names in the selection or the result that have a TTL:
   minimum of them.
3. Otherwise the global TTL.

A resolved TTL of 0 means the result is never cached; ``math.inf`` means
it is cached until invalidated.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping

__all__ = ["coordinate_ttl", "resolve_ttl"]


def coordinate_ttl(
    coordinates: Iterable[str],
    ttl_per_schema_coordinate: Mapping[str, float | None],
) -> float | None:
    """Return the coordinate-tier TTL, or None when no coordinate has one."""
    ttls = [
        math.inf if ttl_per_schema_coordinate[coordinate] is None else ttl_per_schema_coordinate[coordinate]
        for coordinate in coordinates
        if coordinate in ttl_per_schema_coordinate
    ]
    return min(ttls) if ttls else None


def resolve_ttl(
    *,
    coordinates: Iterable[str],
    typenames: Iterable[str],
    global_ttl: float,
    ttl_per_type: Mapping[str, float],
    ttl_per_schema_coordinate: Mapping[str, float | None],
) -> float:
    """Resolve the TTL (milliseconds) of one executed operation."""
    ttl = coordinate_ttl(coordinates, ttl_per_schema_coordinate)
    if ttl is not None:
        return ttl

    type_ttls = [ttl_per_type[typename] for typename in typenames if typename in ttl_per_type]
    if type_ttls:
        return min(type_ttls)

    return global_ttl
