"""Plugin composition engine.

Turns an ordered plugin list into one callable per phase. For every phase
the composed callable:

1. runs the before-hooks of all plugins declaring the phase hook, in list
   order, letting any of them replace the underlying implementation;
2. stops iterating before-hooks as soon as one of them halts propagation;
3. calls the implementation unless a before-hook already supplied a result;
4. runs the collected after-hooks in the same forward order, each able to
   replace the result seen by the next one and by the caller.

After-hooks collected before a halt still run; plugins after the halting
one never see the phase. Composition happens once and the composed phases
are reused for every request.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Iterable, Mapping, MutableMapping, Sequence
from typing import TYPE_CHECKING, Any

from graphql import execute as graphql_execute
from graphql import parse as graphql_parse
from graphql import specified_rules
from graphql import subscribe as graphql_subscribe
from graphql import validate as graphql_validate

from graphql_envelop.core.context import ContextManager
from graphql_envelop.core.exceptions import PluginError
from graphql_envelop.core.hooks import acall_hook, call_hook, collect_hooks
from graphql_envelop.core.types import (
    PLUGIN_HOOKS,
    ExecuteFn,
    ExecutionArgs,
    OnParseDonePayload,
    OnParsePayload,
    OnPluginInitPayload,
    OnResultPayload,
    OnSchemaChangePayload,
    OnExecutePayload,
    OnSubscribePayload,
    OnValidateDonePayload,
    OnValidatePayload,
    ParseFn,
    Phase,
    PhaseSignal,
    ValidateFn,
)
from graphql_envelop.core.utils import extract_hook, is_async_iterable, maybe_await

if TYPE_CHECKING:
    from graphql import (
        ASTValidationRule,
        DocumentNode,
        GraphQLError,
        GraphQLSchema,
        Source,
    )

logger = logging.getLogger(__name__)

__all__ = ["PluginComposer", "default_execute", "default_subscribe"]


def default_parse(source: str | Source) -> DocumentNode:
    return graphql_parse(source)


def default_validate(
    schema: GraphQLSchema,
    document: DocumentNode,
    rules: Sequence[type[ASTValidationRule]] | None = None,
) -> list[GraphQLError]:
    return graphql_validate(schema, document, rules)


def default_execute(args: ExecutionArgs) -> Any:
    return graphql_execute(
        args.schema,
        args.document,
        root_value=args.root_value,
        context_value=args.context_value,
        variable_values=args.variable_values,
        operation_name=args.operation_name,
        field_resolver=args.field_resolver,
        type_resolver=args.type_resolver,
    )


def default_subscribe(args: ExecutionArgs) -> Any:
    return graphql_subscribe(
        args.schema,
        args.document,
        root_value=args.root_value,
        context_value=args.context_value,
        variable_values=args.variable_values,
        operation_name=args.operation_name,
        field_resolver=args.field_resolver,
        subscribe_field_resolver=args.subscribe_field_resolver,
    )


class _PhaseRun:
    """Mutable state of one phase invocation for one request."""

    __slots__ = ("impl", "result", "signal")

    def __init__(self, impl: Any) -> None:
        self.impl = impl
        self.result: Any = None
        self.signal = PhaseSignal.CONTINUE

    @property
    def halted(self) -> bool:
        return self.signal is not PhaseSignal.CONTINUE

    def set_impl(self, fn: Any) -> None:
        self.impl = fn

    def stop_propagation(self) -> None:
        if self.signal is PhaseSignal.CONTINUE:
            self.signal = PhaseSignal.HALT

    def override_result(self, result: Any) -> None:
        self.result = result
        self.signal = PhaseSignal.RESULT_OVERRIDDEN

    def replace_result(self, result: Any) -> None:
        self.result = result


class PluginComposer:
    """Compose an ordered plugin list into five phase callables.

    Plugins are initialised (``on_plugin_init``) in order when the composer
    is created; plugins added through ``add_plugin`` are appended and
    initialised in turn. After that the plugin tuple is frozen.

    Example:
            composer = PluginComposer([use_schema(schema), use_logger()])
        document = composer.parse("{ hello }", context)
        errors = composer.validate(composer.schema, document, None, context)
        await composer.build_context(context)
        result = await composer.execute(ExecutionArgs(composer.schema, document, context_value=context))
    """

    def __init__(self, plugins: Iterable[object]) -> None:
        self.schema: GraphQLSchema | None = None
        self._plugins: list[object] = []
        self.plugins = self._init_plugins(plugins)

        self._parse_hooks = collect_hooks(self.plugins, Phase.PARSE.hook_name)
        self._validate_hooks = collect_hooks(self.plugins, Phase.VALIDATE.hook_name)
        self._execute_hooks = collect_hooks(self.plugins, Phase.EXECUTE.hook_name)
        self._subscribe_hooks = collect_hooks(self.plugins, Phase.SUBSCRIBE.hook_name)
        self.enveloped_hooks = collect_hooks(self.plugins, "on_enveloped")
        self.context_manager = ContextManager(self.plugins)

        logger.debug(
            "Composed plugin pipeline",
            extra={
                "plugins": len(self.plugins),
                "parse_hooks": len(self._parse_hooks),
                "validate_hooks": len(self._validate_hooks),
                "context_hooks": self.context_manager.hook_count,
                "execute_hooks": len(self._execute_hooks),
                "subscribe_hooks": len(self._subscribe_hooks),
            },
        )

    # ========================================================================
    # Composition
    # ========================================================================

    def _init_plugins(self, plugins: Iterable[object]) -> tuple[object, ...]:
        # None/False entries allow conditional lists: [use_x() if flag else None]
        pending = self._plugins
        pending.extend(plugin for plugin in plugins if plugin is not None and plugin is not False)
        composing = True

        def add_plugin(plugin: object) -> None:
            if not composing:
                raise PluginError("Plugins can only be added during on_plugin_init")
            if plugin is None:
                raise PluginError("Cannot add None as a plugin")
            pending.append(plugin)

        index = 0
        while index < len(pending):
            plugin = pending[index]
            self._check_plugin(plugin, index)
            hook = getattr(plugin, "on_plugin_init", None)
            if hook is not None:
                payload = OnPluginInitPayload(
                    plugins=tuple(pending),
                    add_plugin=add_plugin,
                    set_schema=self._schema_setter(plugin),
                )
                call_hook("init", plugin, hook, payload)
            index += 1

        composing = False
        return tuple(pending)

    @staticmethod
    def _check_plugin(plugin: object, index: int) -> None:
        for name in PLUGIN_HOOKS:
            hook = getattr(plugin, name, None)
            if hook is not None and not callable(hook):
                raise PluginError(
                    f"Hook '{name}' of plugin at index {index} is not callable",
                    extra={"index": index, "hook": name},
                )

    def _schema_setter(self, plugin: object) -> Callable[[GraphQLSchema], None]:
        return lambda schema: self.replace_schema(schema, plugin)

    def replace_schema(self, schema: GraphQLSchema, source: object | None = None) -> None:
        """Replace the pipeline schema and notify every other plugin."""
        self.schema = schema
        for plugin in tuple(self._plugins):
            if plugin is source:
                continue
            hook = getattr(plugin, "on_schema_change", None)
            if hook is not None:
                payload = OnSchemaChangePayload(
                    schema=schema,
                    replace_schema=self._schema_setter(plugin),
                )
                call_hook("schema", plugin, hook, payload)

    # ========================================================================
    # Synchronous phases
    # ========================================================================

    def parse(self, source: str | Source, context: dict[str, Any]) -> DocumentNode:
        """Composed parse phase."""
        run = _PhaseRun(default_parse)
        after_hooks: list[tuple[object, Any]] = []

        for plugin, hook in self._parse_hooks:
            payload = OnParsePayload(
                context=context,
                source=source,
                parse_fn=run.impl,
                set_parse_fn=run.set_impl,
                set_parsed_document=run.override_result,
                stop_propagation=run.stop_propagation,
            )
            returned = call_hook(Phase.PARSE.value, plugin, hook, payload)
            after = extract_hook(returned, Phase.PARSE.done_hook_name)
            if after is not None:
                after_hooks.append((plugin, after))
            if run.halted:
                break

        if run.signal is not PhaseSignal.RESULT_OVERRIDDEN:
            parse_fn: ParseFn = run.impl
            run.result = parse_fn(source)

        for plugin, after in after_hooks:
            done = OnParseDonePayload(
                context=context,
                result=run.result,
                set_parsed_document=run.replace_result,
            )
            call_hook(Phase.PARSE.value, plugin, after, done, kind="after")

        return run.result

    def validate(
        self,
        schema: GraphQLSchema,
        document: DocumentNode,
        rules: Sequence[type[ASTValidationRule]] | None,
        context: dict[str, Any],
    ) -> list[GraphQLError]:
        """Composed validate phase."""
        run = _PhaseRun(default_validate)
        rule_list = list(specified_rules if rules is None else rules)
        after_hooks: list[tuple[object, Any]] = []

        for plugin, hook in self._validate_hooks:
            payload = OnValidatePayload(
                context=context,
                schema=schema,
                document=document,
                rules=rule_list,
                validate_fn=run.impl,
                set_validation_fn=run.set_impl,
                set_result=run.override_result,
                stop_propagation=run.stop_propagation,
                add_validation_rule=rule_list.append,
            )
            returned = call_hook(Phase.VALIDATE.value, plugin, hook, payload)
            after = extract_hook(returned, Phase.VALIDATE.done_hook_name)
            if after is not None:
                after_hooks.append((plugin, after))
            if run.halted:
                break

        if run.signal is not PhaseSignal.RESULT_OVERRIDDEN:
            validate_fn: ValidateFn = run.impl
            run.result = validate_fn(schema, document, rule_list)

        for plugin, after in after_hooks:
            done = OnValidateDonePayload(
                context=context,
                valid=not run.result,
                result=run.result,
                set_result=run.replace_result,
            )
            call_hook(Phase.VALIDATE.value, plugin, after, done, kind="after")

        return list(run.result or [])

    # ========================================================================
    # Asynchronous phases
    # ========================================================================

    async def build_context(self, context: dict[str, Any]) -> dict[str, Any]:
        """Composed context-building phase."""
        return await self.context_manager.build(context)

    async def execute(self, args: ExecutionArgs) -> Any:
        """Composed execute phase.

        Returns:
            An ``ExecutionResult``, or an async iterator of them for
            incremental delivery.
        """

        def make_payload(run: _PhaseRun) -> OnExecutePayload:
            return OnExecutePayload(
                args=args,
                execute_fn=run.impl,
                set_execute_fn=run.set_impl,
                set_result_and_stop_execution=run.override_result,
                stop_propagation=run.stop_propagation,
                extend_context=_context_extender(args),
            )

        return await self._run_operation(Phase.EXECUTE, self._execute_hooks, default_execute, args, make_payload)

    async def subscribe(self, args: ExecutionArgs) -> Any:
        """Composed subscribe phase.

        Returns:
            An async iterator of ``ExecutionResult`` or a single
            ``ExecutionResult`` describing why the subscription failed.
        """

        def make_payload(run: _PhaseRun) -> OnSubscribePayload:
            return OnSubscribePayload(
                args=args,
                subscribe_fn=run.impl,
                set_subscribe_fn=run.set_impl,
                set_result_and_stop_execution=run.override_result,
                stop_propagation=run.stop_propagation,
                extend_context=_context_extender(args),
            )

        return await self._run_operation(Phase.SUBSCRIBE, self._subscribe_hooks, default_subscribe, args, make_payload)

    async def _run_operation(
        self,
        phase: Phase,
        hooks: list[tuple[object, Any]],
        default_impl: ExecuteFn,
        args: ExecutionArgs,
        make_payload: Callable[[_PhaseRun], Any],
    ) -> Any:
        run = _PhaseRun(default_impl)
        after_hooks: list[tuple[object, Any]] = []

        for plugin, hook in hooks:
            returned = await acall_hook(phase.value, plugin, hook, make_payload(run))
            after = extract_hook(returned, phase.done_hook_name)
            if after is not None:
                after_hooks.append((plugin, after))
            if run.halted:
                logger.debug(
                    "Phase propagation halted",
                    extra={"phase": phase.value, "plugin": type(plugin).__name__, "signal": run.signal.value},
                )
                break

        if run.signal is not PhaseSignal.RESULT_OVERRIDDEN:
            run.result = await maybe_await(run.impl(args))

        on_next_hooks: list[tuple[object, Any]] = []
        on_end_hooks: list[tuple[object, Any]] = []
        for plugin, after in after_hooks:
            done = OnResultPayload(args=args, result=run.result, set_result=run.replace_result)
            returned = await acall_hook(phase.value, plugin, after, done, kind="after")
            on_next = extract_hook(returned, "on_next", allow_callable=False)
            if on_next is not None:
                on_next_hooks.append((plugin, on_next))
            on_end = extract_hook(returned, "on_end", allow_callable=False)
            if on_end is not None:
                on_end_hooks.append((plugin, on_end))

        if is_async_iterable(run.result) and (on_next_hooks or on_end_hooks):
            return _stream_with_hooks(phase, run.result, args, on_next_hooks, on_end_hooks)
        return run.result


def _context_extender(args: ExecutionArgs) -> Callable[[Mapping[str, Any]], None]:
    def extend_context(partial: Mapping[str, Any]) -> None:
        if args.context_value is None:
            args.context_value = {}
        if isinstance(args.context_value, MutableMapping):
            args.context_value.update(partial)
        else:
            for key, value in partial.items():
                setattr(args.context_value, key, value)

    return extend_context


async def _stream_with_hooks(
    phase: Phase,
    stream: AsyncIterator[Any],
    args: ExecutionArgs,
    on_next_hooks: list[tuple[object, Any]],
    on_end_hooks: list[tuple[object, Any]],
) -> AsyncIterator[Any]:
    """Apply ``on_next`` hooks to every streamed result, then ``on_end`` once."""
    try:
        async for item in stream:
            holder = _PhaseRun(None)
            holder.result = item
            for plugin, on_next in on_next_hooks:
                payload = OnResultPayload(args=args, result=holder.result, set_result=holder.replace_result)
                await acall_hook(phase.value, plugin, on_next, payload, kind="after")
            yield holder.result
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()
        for plugin, on_end in on_end_hooks:
            await acall_hook(phase.value, plugin, lambda _payload, end=on_end: end(), None, kind="after")
