"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the process.

Testing:
    In tests, clear the cache to force reload:
    get_envelop_settings.cache_clear()

    Or override with custom values:
    settings = EnvelopSettings(enable_internal_tracing=True)
"""

from __future__ import annotations

from functools import lru_cache

from .envelop import EnvelopSettings
from .response_cache import ResponseCacheSettings


@lru_cache(maxsize=1)
def get_envelop_settings() -> EnvelopSettings:
    """Get cached pipeline settings.

    Returns:
        Validated and frozen EnvelopSettings instance.
    """
    return EnvelopSettings()


@lru_cache(maxsize=1)
def get_response_cache_settings() -> ResponseCacheSettings:
    """Get cached response cache settings.

    Returns:
        Validated and frozen ResponseCacheSettings instance.
    """
    return ResponseCacheSettings()


def clear_settings_cache() -> None:
    """Clear all cached settings loaders."""
    get_envelop_settings.cache_clear()
    get_response_cache_settings.cache_clear()
