"""Plugin and hook payload types shared by the pipeline.

A plugin is any object exposing zero or more hook attributes. The
``Plugin`` dataclass is a convenience for ad-hoc plugins built from plain
functions; classes that define the same method names work identically.

Hook naming:
    on_plugin_init       once, while the plugin list is composed
    on_schema_change     whenever another plugin replaces the schema
    on_enveloped         once per ``get_enveloped(...)`` call
    on_parse             before parsing      -> optional after-hook
    on_validate          before validation   -> optional after-hook
    on_context_building  before context fold -> optional after-hook
    on_execute           before execution    -> optional after-hook
    on_subscribe         before subscription -> optional after-hook
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from graphql import (
        ASTValidationRule,
        DocumentNode,
        ExecutionResult,
        GraphQLError,
        GraphQLFieldResolver,
        GraphQLSchema,
        GraphQLTypeResolver,
        Source,
    )


class Phase(str, Enum):
    """Query processing phases intercepted by plugins."""

    PARSE = "parse"
    VALIDATE = "validate"
    CONTEXT = "context"
    EXECUTE = "execute"
    SUBSCRIBE = "subscribe"

    @property
    def hook_name(self) -> str:
        """Name of the before-hook attribute for this phase."""
        return _HOOK_NAMES[self]

    @property
    def done_hook_name(self) -> str:
        """Name of the after-hook attribute a before-hook may return."""
        return f"{_HOOK_NAMES[self]}_done"


_HOOK_NAMES = {
    Phase.PARSE: "on_parse",
    Phase.VALIDATE: "on_validate",
    Phase.CONTEXT: "on_context_building",
    Phase.EXECUTE: "on_execute",
    Phase.SUBSCRIBE: "on_subscribe",
}


class PhaseSignal(str, Enum):
    """Control signal of one phase invocation.

    - CONTINUE: run remaining before-hooks, then the implementation
    - HALT: skip remaining before-hooks, still run the implementation
    - RESULT_OVERRIDDEN: skip remaining before-hooks and the implementation
    """

    CONTINUE = "continue"
    HALT = "halt"
    RESULT_OVERRIDDEN = "result_overridden"


ExecutionResultOrStream = Union["ExecutionResult", "AsyncIterator[ExecutionResult]"]
ParseFn = Callable[["str | Source"], "DocumentNode"]
ValidateFn = Callable[
    ["GraphQLSchema", "DocumentNode", "Sequence[type[ASTValidationRule]] | None"],
    "list[GraphQLError]",
]
ExecuteFn = Callable[["ExecutionArgs"], "ExecutionResultOrStream | Awaitable[ExecutionResultOrStream]"]
SubscribeFn = ExecuteFn


@dataclass
class ExecutionArgs:
    """Arguments handed to the execute and subscribe implementations."""

    schema: GraphQLSchema
    document: DocumentNode
    root_value: Any = None
    context_value: Any = None
    variable_values: dict[str, Any] | None = None
    operation_name: str | None = None
    field_resolver: GraphQLFieldResolver | None = None
    type_resolver: GraphQLTypeResolver | None = None
    subscribe_field_resolver: GraphQLFieldResolver | None = None


# ============================================================================
# Lifecycle payloads
# ============================================================================


@dataclass
class OnPluginInitPayload:
    plugins: tuple[object, ...]
    add_plugin: Callable[[object], None]
    set_schema: Callable[[GraphQLSchema], None]


@dataclass
class OnSchemaChangePayload:
    schema: GraphQLSchema
    replace_schema: Callable[[GraphQLSchema], None]


@dataclass
class OnEnvelopedPayload:
    context: dict[str, Any]
    extend_context: Callable[[Mapping[str, Any]], None]
    set_schema: Callable[[GraphQLSchema], None]


# ============================================================================
# Phase payloads
# ============================================================================


@dataclass
class OnParsePayload:
    context: dict[str, Any]
    source: str | Source
    parse_fn: ParseFn
    set_parse_fn: Callable[[ParseFn], None]
    set_parsed_document: Callable[[DocumentNode], None]
    stop_propagation: Callable[[], None]


@dataclass
class OnParseDonePayload:
    context: dict[str, Any]
    result: DocumentNode
    set_parsed_document: Callable[[DocumentNode], None]


@dataclass
class OnValidatePayload:
    context: dict[str, Any]
    schema: GraphQLSchema
    document: DocumentNode
    rules: list[type[ASTValidationRule]]
    validate_fn: ValidateFn
    set_validation_fn: Callable[[ValidateFn], None]
    set_result: Callable[[list[GraphQLError]], None]
    stop_propagation: Callable[[], None]
    add_validation_rule: Callable[[type[ASTValidationRule]], None]


@dataclass
class OnValidateDonePayload:
    context: dict[str, Any]
    valid: bool
    result: list[GraphQLError]
    set_result: Callable[[list[GraphQLError]], None]


@dataclass
class OnContextBuildingPayload:
    context: dict[str, Any]
    extend_context: Callable[[Mapping[str, Any]], None]
    break_context_building: Callable[[], None]


@dataclass
class OnContextBuildingDonePayload:
    context: dict[str, Any]
    extend_context: Callable[[Mapping[str, Any]], None]


@dataclass
class OnExecutePayload:
    args: ExecutionArgs
    execute_fn: ExecuteFn
    set_execute_fn: Callable[[ExecuteFn], None]
    set_result_and_stop_execution: Callable[[ExecutionResult], None]
    stop_propagation: Callable[[], None]
    extend_context: Callable[[Mapping[str, Any]], None]


@dataclass
class OnSubscribePayload:
    args: ExecutionArgs
    subscribe_fn: SubscribeFn
    set_subscribe_fn: Callable[[SubscribeFn], None]
    set_result_and_stop_execution: Callable[[ExecutionResultOrStream], None]
    stop_propagation: Callable[[], None]
    extend_context: Callable[[Mapping[str, Any]], None]


@dataclass
class OnResultPayload:
    """After-hook payload for execute and subscribe.

    ``result`` is either a single ``ExecutionResult`` or an async iterator of
    them. An after-hook may return an object or mapping exposing ``on_next``
    (called per streamed result with another ``OnResultPayload``) and/or
    ``on_end``.
    """

    args: ExecutionArgs
    result: Any
    set_result: Callable[[Any], None]


OnExecuteDonePayload = OnResultPayload
OnSubscribeDonePayload = OnResultPayload


# ============================================================================
# Ad-hoc plugin
# ============================================================================


@dataclass(frozen=True)
class Plugin:
    """Plugin assembled from optional hook callables.

    Example:
        def log_execute(payload: OnExecutePayload):
            logger.info("executing")
            return lambda done: logger.info("executed")

        plugins = [use_schema(schema), Plugin(on_execute=log_execute)]
    """

    on_plugin_init: Callable[[OnPluginInitPayload], None] | None = None
    on_schema_change: Callable[[OnSchemaChangePayload], None] | None = None
    on_enveloped: Callable[[OnEnvelopedPayload], None] | None = None
    on_parse: Callable[[OnParsePayload], Any] | None = None
    on_validate: Callable[[OnValidatePayload], Any] | None = None
    on_context_building: Callable[[OnContextBuildingPayload], Any] | None = None
    on_execute: Callable[[OnExecutePayload], Any] | None = None
    on_subscribe: Callable[[OnSubscribePayload], Any] | None = None
    name: str | None = field(default=None, compare=False)


PLUGIN_HOOKS = (
    "on_plugin_init",
    "on_schema_change",
    "on_enveloped",
    *(_HOOK_NAMES[phase] for phase in Phase),
)


__all__ = [
    "PLUGIN_HOOKS",
    "ExecuteFn",
    "ExecutionArgs",
    "ExecutionResultOrStream",
    "OnContextBuildingDonePayload",
    "OnContextBuildingPayload",
    "OnEnvelopedPayload",
    "OnExecuteDonePayload",
    "OnExecutePayload",
    "OnParseDonePayload",
    "OnParsePayload",
    "OnPluginInitPayload",
    "OnResultPayload",
    "OnSchemaChangePayload",
    "OnSubscribeDonePayload",
    "OnSubscribePayload",
    "OnValidateDonePayload",
    "OnValidatePayload",
    "ParseFn",
    "Phase",
    "PhaseSignal",
    "Plugin",
    "SubscribeFn",
    "ValidateFn",
]
