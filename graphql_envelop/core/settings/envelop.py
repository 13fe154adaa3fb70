"""Pipeline configuration settings.

Controls internal phase tracing for composed pipelines.
Environment variables use ENVELOP_ prefix.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvelopSettings(BaseSettings):
    """Plugin pipeline configuration.

    Environment variables use ENVELOP_ prefix.
    Example: ENVELOP_ENABLE_INTERNAL_TRACING=true
    """

    enable_internal_tracing: bool = Field(
        default=False,
        description="Measure wall-clock duration of every phase and attach it to results",
    )
    tracing_extension_key: str = Field(
        default="_envelopTracing",
        min_length=1,
        max_length=255,
        description="Result extension (and context) key holding phase durations",
    )
    otel_spans: bool = Field(
        default=False,
        description="Also open an OpenTelemetry span around every traced phase",
    )

    model_config = SettingsConfigDict(
        env_prefix="ENVELOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
