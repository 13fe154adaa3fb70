"""Response cache configuration settings.

Provides process-wide defaults for the response cache plugin. Per-instance
options passed to ``use_response_cache`` always win over these.
Environment variables use RESPONSE_CACHE_ prefix.
"""

from __future__ import annotations

import math

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ResponseCacheSettings(BaseSettings):
    """Response cache defaults.

    Environment variables use RESPONSE_CACHE_ prefix.
    Example: RESPONSE_CACHE_DEFAULT_TTL=60000, RESPONSE_CACHE_INCLUDE_EXTENSION_METADATA=true
    """

    default_ttl: float = Field(
        default=math.inf,
        ge=0,
        description="Global TTL in milliseconds (inf caches forever, 0 disables caching)",
    )
    include_extension_metadata: bool = Field(
        default=False,
        description="Attach responseCache metadata to result extensions",
    )
    metrics_enabled: bool = Field(
        default=True,
        description="Record Prometheus counters for hits, misses and invalidations",
    )

    model_config = SettingsConfigDict(
        env_prefix="RESPONSE_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
