"""Built-in plugins."""

from __future__ import annotations

from .response_cache import use_response_cache
from .use_error_handler import use_error_handler
from .use_extend_context import use_extend_context
from .use_logger import use_logger
from .use_payload_formatter import use_payload_formatter
from .use_schema import use_schema, use_schema_by_context

__all__ = [
    "use_error_handler",
    "use_extend_context",
    "use_logger",
    "use_payload_formatter",
    "use_response_cache",
    "use_schema",
    "use_schema_by_context",
]
