"""Response cache: whole-result caching with entity-aware invalidation."""

from __future__ import annotations

from .cache import ResponseCache, create_in_memory_cache
from .cache_key import build_response_cache_key, default_get_document_string
from .config import ResponseCacheConfig, default_ttl_per_schema_coordinate
from .plugin import EXTENSION_KEY, ResponseCachePlugin, use_response_cache
from .store import InMemoryStore, Store
from .types import CacheEntry, EntityReference

__all__ = [
    "EXTENSION_KEY",
    "CacheEntry",
    "EntityReference",
    "InMemoryStore",
    "ResponseCache",
    "ResponseCacheConfig",
    "ResponseCachePlugin",
    "Store",
    "build_response_cache_key",
    "create_in_memory_cache",
    "default_get_document_string",
    "default_ttl_per_schema_coordinate",
    "use_response_cache",
]
