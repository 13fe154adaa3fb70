"""Plugin composition core: types, phases, context and tracing."""

from __future__ import annotations

from graphql_envelop.core.context import ContextManager
from graphql_envelop.core.envelop import EnvelopedProxy, GetEnveloped, envelop
from graphql_envelop.core.exceptions import (
    EnvelopError,
    HookError,
    PluginError,
    ResponseCacheConfigError,
    StreamingNotSupportedError,
)
from graphql_envelop.core.orchestrator import PluginComposer
from graphql_envelop.core.tracing import TracingRecorder
from graphql_envelop.core.types import ExecutionArgs, Phase, PhaseSignal, Plugin

__all__ = [
    "ContextManager",
    "EnvelopError",
    "EnvelopedProxy",
    "ExecutionArgs",
    "GetEnveloped",
    "HookError",
    "Phase",
    "PhaseSignal",
    "Plugin",
    "PluginComposer",
    "PluginError",
    "ResponseCacheConfigError",
    "StreamingNotSupportedError",
    "TracingRecorder",
    "envelop",
]
