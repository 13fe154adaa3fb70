"""Value types of the response cache."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from graphql import ExecutionResult

__all__ = ["CacheEntry", "EntityReference"]


@dataclass(frozen=True)
class EntityReference:
    """Identity of a domain object surfaced in a result.

    ``id`` is normalised to ``str`` because ID scalars serialise as strings,
    so ``EntityReference("User", 1) == EntityReference("User", "1")``. A
    reference without ``id`` addresses every entry that returned the type.
    """

    typename: str
    id: str | None = None

    def __post_init__(self) -> None:
        if self.id is not None and not isinstance(self.id, str):
            object.__setattr__(self, "id", str(self.id))

    @classmethod
    def coerce(cls, value: EntityReference | Mapping[str, Any]) -> EntityReference:
        """Build a reference from a reference or a ``{"typename", "id"}`` mapping."""
        if isinstance(value, EntityReference):
            return value
        return cls(typename=value["typename"], id=value.get("id"))

    def as_dict(self) -> dict[str, Any]:
        if self.id is None:
            return {"typename": self.typename}
        return {"typename": self.typename, "id": self.id}

    def __str__(self) -> str:
        return self.typename if self.id is None else f"{self.typename}:{self.id}"


@dataclass
class CacheEntry:
    """A cached execution result.

    Attributes:
        key: Cache key derived from document, variables and session.
        value: The final execution result, without per-request metadata.
        expires_at: Monotonic deadline in seconds, ``math.inf`` for no expiry.
        entities: Entities with identity referenced by ``value``.
        typenames: Every object type name returned in ``value``.
    """

    key: str
    value: ExecutionResult
    expires_at: float = math.inf
    entities: frozenset[EntityReference] = field(default_factory=frozenset)
    typenames: frozenset[str] = field(default_factory=frozenset)

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now
