"""Composable plugin pipeline around graphql-core."""

from __future__ import annotations

from graphql_envelop.core import (
    EnvelopError,
    EnvelopedProxy,
    ExecutionArgs,
    GetEnveloped,
    HookError,
    PluginError,
    Plugin,
    envelop,
)
from graphql_envelop.plugins import (
    use_error_handler,
    use_extend_context,
    use_logger,
    use_payload_formatter,
    use_response_cache,
    use_schema,
    use_schema_by_context,
)
from graphql_envelop.plugins.response_cache import (
    build_response_cache_key,
    create_in_memory_cache,
)

__version__ = "0.1.0"

__all__ = [
    "EnvelopError",
    "EnvelopedProxy",
    "ExecutionArgs",
    "GetEnveloped",
    "HookError",
    "Plugin",
    "PluginError",
    "build_response_cache_key",
    "create_in_memory_cache",
    "envelop",
    "use_error_handler",
    "use_extend_context",
    "use_logger",
    "use_payload_formatter",
    "use_response_cache",
    "use_schema",
    "use_schema_by_context",
]
