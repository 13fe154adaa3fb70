"""Public entry point: compose plugins once, hand out one proxy per request.

Usage:
    from graphql_envelop import envelop, use_schema
    from graphql_envelop.plugins.response_cache import use_response_cache

    get_enveloped = envelop(
        plugins=[
            use_schema(schema),
            use_response_cache(session=lambda context: context.get("session_id")),
        ],
    )

    async def handle(request):
        proxy = get_enveloped({"request": request})
        document = proxy.parse(request.query)
        errors = proxy.validate(proxy.schema, document)
        if errors:
            return ExecutionResult(data=None, errors=errors)
        context = await proxy.context_factory()
        return await proxy.execute(
            document,
            context_value=context,
            variable_values=request.variables,
        )
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable, Mapping, Sequence
from contextlib import AbstractContextManager, nullcontext
from typing import TYPE_CHECKING, Any

from graphql import ExecutionResult

from graphql_envelop.core.exceptions import EnvelopError
from graphql_envelop.core.hooks import call_hook
from graphql_envelop.core.orchestrator import PluginComposer
from graphql_envelop.core.settings import get_envelop_settings
from graphql_envelop.core.tracing import TracingRecorder
from graphql_envelop.core.types import ExecutionArgs, OnEnvelopedPayload, Phase
from graphql_envelop.core.utils import is_async_iterable

if TYPE_CHECKING:
    from graphql import (
        ASTValidationRule,
        DocumentNode,
        GraphQLError,
        GraphQLFieldResolver,
        GraphQLSchema,
        GraphQLTypeResolver,
        Source,
    )

logger = logging.getLogger(__name__)

__all__ = ["EnvelopedProxy", "GetEnveloped", "envelop"]


def envelop(
    plugins: Iterable[object],
    *,
    enable_internal_tracing: bool | None = None,
) -> GetEnveloped:
    """Compose ``plugins`` into a reusable pipeline.

    Args:
        plugins: Ordered plugins; order decides hook order. ``None`` entries
            are skipped.
        enable_internal_tracing: Record phase durations per request. Falls
            back to ``EnvelopSettings.enable_internal_tracing``.

    Returns:
        A ``GetEnveloped`` factory producing one proxy per request.
    """
    settings = get_envelop_settings()
    if enable_internal_tracing is None:
        enable_internal_tracing = settings.enable_internal_tracing
    composer = PluginComposer(plugins)
    return GetEnveloped(
        composer,
        enable_internal_tracing=enable_internal_tracing,
        tracing_extension_key=settings.tracing_extension_key,
        otel_spans=settings.otel_spans,
    )


class GetEnveloped:
    """Factory returned by ``envelop``; call it once per request."""

    def __init__(
        self,
        composer: PluginComposer,
        *,
        enable_internal_tracing: bool = False,
        tracing_extension_key: str = "_envelopTracing",
        otel_spans: bool = False,
    ) -> None:
        self._composer = composer
        self.enable_internal_tracing = enable_internal_tracing
        self._tracing_extension_key = tracing_extension_key
        self._otel_spans = otel_spans

    @property
    def plugins(self) -> tuple[object, ...]:
        return self._composer.plugins

    @property
    def schema(self) -> GraphQLSchema | None:
        return self._composer.schema

    def __call__(self, initial_context: Mapping[str, Any] | None = None) -> EnvelopedProxy:
        """Create the per-request proxy.

        ``initial_context`` becomes the shared context mapping; a ``dict`` is
        used as-is (not copied), any other mapping is copied into one.
        """
        if isinstance(initial_context, dict):
            context = initial_context
        else:
            context = dict(initial_context or {})

        recorder = None
        if self.enable_internal_tracing:
            recorder = TracingRecorder(self._tracing_extension_key, otel_spans=self._otel_spans)

        proxy = EnvelopedProxy(self._composer, context, recorder)
        for plugin, hook in self._composer.enveloped_hooks:
            payload = OnEnvelopedPayload(
                context=context,
                extend_context=context.update,
                set_schema=proxy.set_schema,
            )
            call_hook("enveloped", plugin, hook, payload)
        return proxy


class EnvelopedProxy:
    """Per-request view of the composed pipeline.

    Exposes the five phases plus the schema. Parse and validate are
    synchronous; context building, execute and subscribe are coroutines.
    """

    def __init__(
        self,
        composer: PluginComposer,
        context: dict[str, Any],
        recorder: TracingRecorder | None = None,
    ) -> None:
        self._composer = composer
        self._context = context
        self._recorder = recorder
        self._schema: GraphQLSchema | None = None

    @property
    def schema(self) -> GraphQLSchema | None:
        """Schema for this request (per-request override, else the pipeline schema)."""
        return self._schema or self._composer.schema

    def set_schema(self, schema: GraphQLSchema) -> None:
        self._schema = schema

    @property
    def context(self) -> dict[str, Any]:
        return self._context

    @property
    def tracing(self) -> dict[str, float] | None:
        """Phase durations recorded so far, or None when tracing is off."""
        if self._recorder is None:
            return None
        return self._recorder.snapshot()

    def _measure(self, phase: Phase) -> AbstractContextManager[None]:
        if self._recorder is None:
            return nullcontext()
        return self._recorder.phase(phase)

    def _require_schema(self, schema: GraphQLSchema | None) -> GraphQLSchema:
        schema = schema or self.schema
        if schema is None:
            raise EnvelopError(
                detail="No schema available; add use_schema(...) or pass schema explicitly",
                type="schema-missing",
            )
        return schema

    def parse(self, source: str | Source) -> DocumentNode:
        with self._measure(Phase.PARSE):
            return self._composer.parse(source, self._context)

    def validate(
        self,
        schema: GraphQLSchema | None,
        document: DocumentNode,
        rules: Sequence[type[ASTValidationRule]] | None = None,
    ) -> list[GraphQLError]:
        schema = self._require_schema(schema)
        with self._measure(Phase.VALIDATE):
            return self._composer.validate(schema, document, rules, self._context)

    async def context_factory(self, extra: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Build the execution context.

        Args:
            extra: Keys merged into the shared context before plugins run.

        Returns:
            The shared context mapping.
        """
        if extra:
            self._context.update(extra)
        with self._measure(Phase.CONTEXT):
            return await self._composer.build_context(self._context)

    async def execute(
        self,
        document: DocumentNode,
        *,
        schema: GraphQLSchema | None = None,
        root_value: Any = None,
        context_value: Any = None,
        variable_values: dict[str, Any] | None = None,
        operation_name: str | None = None,
        field_resolver: GraphQLFieldResolver | None = None,
        type_resolver: GraphQLTypeResolver | None = None,
    ) -> Any:
        args = ExecutionArgs(
            schema=self._require_schema(schema),
            document=document,
            root_value=root_value,
            context_value=self._context if context_value is None else context_value,
            variable_values=variable_values,
            operation_name=operation_name,
            field_resolver=field_resolver,
            type_resolver=type_resolver,
        )
        with self._measure(Phase.EXECUTE):
            result = await self._composer.execute(args)
        return self._publish_tracing(result)

    async def subscribe(
        self,
        document: DocumentNode,
        *,
        schema: GraphQLSchema | None = None,
        root_value: Any = None,
        context_value: Any = None,
        variable_values: dict[str, Any] | None = None,
        operation_name: str | None = None,
        field_resolver: GraphQLFieldResolver | None = None,
        subscribe_field_resolver: GraphQLFieldResolver | None = None,
    ) -> Any:
        args = ExecutionArgs(
            schema=self._require_schema(schema),
            document=document,
            root_value=root_value,
            context_value=self._context if context_value is None else context_value,
            variable_values=variable_values,
            operation_name=operation_name,
            field_resolver=field_resolver,
            subscribe_field_resolver=subscribe_field_resolver,
        )
        with self._measure(Phase.SUBSCRIBE):
            result = await self._composer.subscribe(args)
        return self._publish_tracing(result)

    def _publish_tracing(self, result: Any) -> Any:
        recorder = self._recorder
        if recorder is None:
            return result
        recorder.publish(self._context)
        if isinstance(result, ExecutionResult):
            return recorder.attach(result)
        if is_async_iterable(result):
            return _attach_to_stream(result, recorder)
        return result


async def _attach_to_stream(
    stream: AsyncIterator[ExecutionResult],
    recorder: TracingRecorder,
) -> AsyncIterator[ExecutionResult]:
    try:
        async for item in stream:
            yield recorder.attach(item) if isinstance(item, ExecutionResult) else item
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()
