"""Pydantic Settings v2 configuration.

Import settings via cached loaders:
    from graphql_envelop.core.settings import get_envelop_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .envelop import EnvelopSettings
from .loader import (
    clear_settings_cache,
    get_envelop_settings,
    get_response_cache_settings,
)
from .response_cache import ResponseCacheSettings

__all__ = [
    "EnvelopSettings",
    "ResponseCacheSettings",
    "clear_settings_cache",
    "get_envelop_settings",
    "get_response_cache_settings",
]
