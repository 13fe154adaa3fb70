"""Response cache configuration.

Validated once, when the plugin is created, never per request. Defaults for
the global TTL and metadata flag come from ``ResponseCacheSettings``.

TTL values are milliseconds; ``math.inf`` caches forever and ``0``
disables caching for that tier.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from graphql_envelop.core.settings import get_response_cache_settings
from graphql_envelop.plugins.response_cache.cache_key import (
    build_response_cache_key,
    default_get_document_string,
)

if TYPE_CHECKING:
    from graphql import GraphQLSchema

__all__ = ["INTROSPECTION_FIELDS", "ResponseCacheConfig", "default_ttl_per_schema_coordinate"]

INTROSPECTION_FIELDS = ("__schema", "__type")


def default_ttl_per_schema_coordinate(query_type_name: str = "Query") -> dict[str, float | None]:
    """Introspection is never cached unless these coordinates are overridden."""
    return {f"{query_type_name}.{field}": 0 for field in INTROSPECTION_FIELDS}


def _default_ttl() -> float:
    return get_response_cache_settings().default_ttl


def _default_include_metadata() -> bool:
    return get_response_cache_settings().include_extension_metadata


class ResponseCacheConfig(BaseModel):
    """Options of ``use_response_cache``.

    Attributes:
        session: Returns the session id for a context value (None when the
            result may be shared between all callers).
        ttl: Global TTL in milliseconds.
        ttl_per_type: TTL per object type name.
        ttl_per_schema_coordinate: TTL per ``Type.field``; ``None`` means no
            expiry for operations traversing it. Entries override the
            introspection defaults added per schema by
            ``ttl_per_schema_coordinate_for``.
        ignored_types: Operations selecting any of these are never cached,
            and these types never enter the invalidation index.
        id_fields: Identity field name per type (``id`` otherwise).
        cache: Cache implementation (get/set/invalidate), in-memory by default.
        should_cache_result: ``fn(cache_key=..., result=...) -> bool``;
            defaults to "no errors".
        include_extension_metadata: Attach ``responseCache`` metadata to
            result extensions.
        enabled: ``fn(context) -> bool``; the cache is bypassed when False.
        invalidate_via_mutation: Invalidate entities returned by mutations.
        build_response_cache_key: Key builder (sync or async) taking
            ``document_string``, ``variable_values``, ``session_id``.
        get_document_string: Document string used for the key.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True, extra="forbid")

    session: Callable[[Any], str | None]
    ttl: float = Field(default_factory=_default_ttl, ge=0)
    ttl_per_type: dict[str, float] = Field(default_factory=dict)
    ttl_per_schema_coordinate: dict[str, float | None] = Field(default_factory=dict, validate_default=True)
    ignored_types: frozenset[str] = Field(default_factory=frozenset)
    id_fields: dict[str, str] = Field(default_factory=dict)
    cache: Any = None
    should_cache_result: Callable[..., bool] | None = None
    include_extension_metadata: bool = Field(default_factory=_default_include_metadata)
    enabled: Callable[[Any], bool] | None = None
    invalidate_via_mutation: bool = True
    build_response_cache_key: Callable[..., Any] = build_response_cache_key
    get_document_string: Callable[..., str] = default_get_document_string

    @field_validator("ttl_per_type")
    @classmethod
    def _check_type_ttls(cls, value: dict[str, float]) -> dict[str, float]:
        for typename, ttl in value.items():
            if ttl < 0:
                raise ValueError(f"ttl_per_type[{typename!r}] must be >= 0")
        return value

    @field_validator("ttl_per_schema_coordinate")
    @classmethod
    def _check_coordinate_ttls(cls, value: dict[str, float | None]) -> dict[str, float | None]:
        for coordinate, ttl in value.items():
            type_name, _, field_name = coordinate.partition(".")
            if not type_name or not field_name or "." in field_name:
                raise ValueError(f"{coordinate!r} is not a schema coordinate (Type.field)")
            if ttl is not None and ttl < 0:
                raise ValueError(f"ttl_per_schema_coordinate[{coordinate!r}] must be >= 0")
        return value

    def ttl_per_schema_coordinate_for(self, schema: GraphQLSchema) -> dict[str, float | None]:
        """Coordinate TTLs for ``schema``: introspection defaults under its query root, then user entries."""
        query_type = schema.query_type
        defaults = default_ttl_per_schema_coordinate(query_type.name) if query_type is not None else {}
        return {**defaults, **self.ttl_per_schema_coordinate}

    @field_validator("cache")
    @classmethod
    def _check_cache(cls, value: Any) -> Any:
        if value is None:
            return value
        missing = [name for name in ("get", "set", "invalidate") if not callable(getattr(value, name, None))]
        if missing:
            raise ValueError(f"cache is missing {', '.join(missing)}")
        return value
