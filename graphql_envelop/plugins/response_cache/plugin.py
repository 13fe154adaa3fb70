"""Response cache plugin.

Caches whole query results keyed by document, variables and session, and
invalidates them when a mutation returns an entity a cached result
referenced.

Query path (``on_execute``):
    hit   -> a copy of the cached result short-circuits execution; later
             plugins' execute hooks and the resolvers never run.
    miss  -> the executed document is augmented with typename/id
             bookkeeping fields; the after-hook strips them, collects
             entity references and stores the result under the resolved TTL.

Mutation path: the document is augmented the same way and every entity in
the result is invalidated.

Cache backend failures never fail the request: they are logged and the
request continues uncached.

Usage:
    plugin = use_response_cache(
        session=lambda context: context.get("user_id"),
        ttl_per_type={"User": 60_000},
        include_extension_metadata=True,
    )
    get_enveloped = envelop([use_schema(schema), plugin])
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from graphql import ExecutionResult, OperationType
from pydantic import ValidationError

from graphql_envelop.core.exceptions import ResponseCacheConfigError, StreamingNotSupportedError
from graphql_envelop.core.settings import get_response_cache_settings
from graphql_envelop.core.utils import (
    get_operation_type,
    is_async_iterable,
    maybe_await,
    merge_extensions,
)
from graphql_envelop.plugins.response_cache import metrics
from graphql_envelop.plugins.response_cache.cache import create_in_memory_cache
from graphql_envelop.plugins.response_cache.config import ResponseCacheConfig
from graphql_envelop.plugins.response_cache.document import (
    DocumentInfo,
    add_bookkeeping_fields,
    collect_document_info,
)
from graphql_envelop.plugins.response_cache.result import strip_bookkeeping
from graphql_envelop.plugins.response_cache.ttl import coordinate_ttl, resolve_ttl
from graphql_envelop.plugins.response_cache.types import EntityReference

if TYPE_CHECKING:
    from graphql_envelop.core.types import ExecuteFn, ExecutionArgs, OnExecutePayload, OnResultPayload

logger = logging.getLogger(__name__)

__all__ = ["EXTENSION_KEY", "ResponseCachePlugin", "use_response_cache"]

EXTENSION_KEY = "responseCache"


class ResponseCachePlugin:
    """Execute-phase plugin backed by a ``ResponseCache``.

    Attributes:
        config: The validated configuration.
        cache: The cache in use (shared by every request of the pipeline).
    """

    def __init__(self, config: ResponseCacheConfig) -> None:
        self.config = config
        self.cache = config.cache if config.cache is not None else create_in_memory_cache()
        self._metrics_enabled = get_response_cache_settings().metrics_enabled

    # ========================================================================
    # Public API
    # ========================================================================

    async def invalidate(self, entities: Iterable[EntityReference | Mapping[str, Any]]) -> list[str]:
        """Invalidate cached results referencing ``entities``, outside any request.

        Args:
            entities: References or ``{"typename": ..., "id": ...}`` mappings;
                omitting ``id`` invalidates every entry that returned the type.

        Returns:
            The deleted cache keys.
        """
        refs = [EntityReference.coerce(entity) for entity in entities]
        keys = await self.cache.invalidate(refs)
        self._record_invalidation(keys, source="manual")
        return list(keys or [])

    # ========================================================================
    # Hooks
    # ========================================================================

    async def on_execute(self, payload: OnExecutePayload) -> Any:
        args = payload.args
        if self.config.enabled is not None and not self.config.enabled(args.context_value):
            return None

        operation_type = get_operation_type(args.document, args.operation_name)
        if operation_type is OperationType.MUTATION:
            if not self.config.invalidate_via_mutation:
                return None
            self._request_bookkeeping(payload)
            return {"on_execute_done": self._on_mutation_done}
        if operation_type is not OperationType.QUERY:
            return None

        info = collect_document_info(args.schema, args.document, args.operation_name)
        coordinate_ttls = self.config.ttl_per_schema_coordinate_for(args.schema)
        if coordinate_ttl(info.coordinates, coordinate_ttls) == 0:
            return None

        cache_key = await self._build_cache_key(args)
        cached = await self._read(cache_key)
        if cached is not None:
            if self._metrics_enabled:
                metrics.record_cache_hit()
            logger.debug("Response cache hit", extra={"cache_key": cache_key})
            # Callers get their own copy; the stored payload is shared by every hit.
            cached = ExecutionResult(
                data=copy.deepcopy(cached.data),
                errors=list(cached.errors) if cached.errors is not None else None,
                extensions=dict(cached.extensions) if cached.extensions is not None else None,
            )
            if self.config.include_extension_metadata:
                cached = self._with_metadata(cached, {"hit": True})
            payload.set_result_and_stop_execution(cached)
            return None

        if self._metrics_enabled:
            metrics.record_cache_miss()
        logger.debug("Response cache miss", extra={"cache_key": cache_key})
        self._request_bookkeeping(payload)

        async def on_execute_done(done: OnResultPayload) -> None:
            await self._on_query_done(done, cache_key, info, coordinate_ttls)

        return {"on_execute_done": on_execute_done}

    async def _on_query_done(
        self,
        done: OnResultPayload,
        cache_key: str,
        info: DocumentInfo,
        coordinate_ttls: Mapping[str, float | None],
    ) -> None:
        result = done.result
        if is_async_iterable(result):
            raise StreamingNotSupportedError()

        data, collected = strip_bookkeeping(result.data, self.config.ignored_types)
        final = ExecutionResult(data=data, errors=result.errors, extensions=result.extensions)
        metadata: dict[str, Any] = {"hit": False, "didCache": False}

        if self._should_cache(cache_key, final):
            typenames = info.types | collected.typenames
            ignored = typenames & self.config.ignored_types
            if ignored:
                self._record_store("ignored")
                logger.debug(
                    "Result not cached: ignored types selected",
                    extra={"cache_key": cache_key, "types": sorted(ignored)},
                )
            else:
                ttl = resolve_ttl(
                    coordinates=info.coordinates,
                    typenames=typenames,
                    global_ttl=self.config.ttl,
                    ttl_per_type=self.config.ttl_per_type,
                    ttl_per_schema_coordinate=coordinate_ttls,
                )
                metadata["ttl"] = ttl
                if ttl > 0:
                    metadata["didCache"] = await self._write(cache_key, final, collected.entities, ttl, collected.typenames)
                else:
                    self._record_store("ttl_zero")
        else:
            self._record_store("declined")

        if self.config.include_extension_metadata:
            final = self._with_metadata(final, metadata)
        done.set_result(final)

    async def _on_mutation_done(self, done: OnResultPayload) -> None:
        result = done.result
        if is_async_iterable(result):
            raise StreamingNotSupportedError()

        data, collected = strip_bookkeeping(result.data, self.config.ignored_types)
        entities = sorted(collected.entities, key=str)
        if entities:
            try:
                keys = await self.cache.invalidate(entities)
            except Exception:
                logger.exception(
                    "Response cache invalidation failed",
                    extra={"entities": [str(entity) for entity in entities]},
                )
                if self._metrics_enabled:
                    metrics.record_store_error("invalidate")
            else:
                self._record_invalidation(keys, source="mutation")

        final = ExecutionResult(data=data, errors=result.errors, extensions=result.extensions)
        if self.config.include_extension_metadata:
            final = self._with_metadata(
                final,
                {"hit": False, "invalidatedEntities": [entity.as_dict() for entity in entities]},
            )
        done.set_result(final)

    # ========================================================================
    # Helpers
    # ========================================================================

    def _request_bookkeeping(self, payload: OnExecutePayload) -> None:
        args = payload.args
        augmented = add_bookkeeping_fields(args.schema, args.document, self.config.id_fields)
        execute_fn: ExecuteFn = payload.execute_fn

        def execute_with_bookkeeping(execution_args: ExecutionArgs) -> Any:
            return execute_fn(dataclasses.replace(execution_args, document=augmented))

        payload.set_execute_fn(execute_with_bookkeeping)

    async def _build_cache_key(self, args: ExecutionArgs) -> str:
        session_id = await maybe_await(self.config.session(args.context_value))
        return await maybe_await(
            self.config.build_response_cache_key(
                document_string=self.config.get_document_string(args),
                variable_values=args.variable_values,
                session_id=session_id,
            )
        )

    def _should_cache(self, cache_key: str, result: ExecutionResult) -> bool:
        if self.config.should_cache_result is not None:
            return bool(self.config.should_cache_result(cache_key=cache_key, result=result))
        return not result.errors

    async def _read(self, cache_key: str) -> ExecutionResult | None:
        try:
            return await self.cache.get(cache_key)
        except Exception:
            logger.exception("Response cache read failed", extra={"cache_key": cache_key})
            if self._metrics_enabled:
                metrics.record_store_error("get")
            return None

    async def _write(
        self,
        cache_key: str,
        result: ExecutionResult,
        entities: Iterable[EntityReference],
        ttl: float,
        typenames: Iterable[str],
    ) -> bool:
        try:
            await self.cache.set(cache_key, result, entities, ttl, typenames)
        except Exception:
            logger.exception("Response cache write failed", extra={"cache_key": cache_key})
            if self._metrics_enabled:
                metrics.record_store_error("set")
            return False
        self._record_store("stored")
        logger.debug("Response cached", extra={"cache_key": cache_key, "ttl": ttl})
        return True

    @staticmethod
    def _with_metadata(result: ExecutionResult, metadata: dict[str, Any]) -> ExecutionResult:
        existing = (result.extensions or {}).get(EXTENSION_KEY) or {}
        return merge_extensions(result, {EXTENSION_KEY: {**existing, **metadata}})

    def _record_store(self, outcome: str) -> None:
        if self._metrics_enabled:
            metrics.record_cache_store(outcome)

    def _record_invalidation(self, keys: Any, source: str) -> None:
        count = len(keys or ())
        if count:
            logger.debug("Invalidated cached responses", extra={"source": source, "keys": count})
        if self._metrics_enabled:
            metrics.record_invalidation(count, source)


def use_response_cache(**options: Any) -> ResponseCachePlugin:
    """Create a response cache plugin.

    Keyword arguments are the fields of ``ResponseCacheConfig``; they are
    validated here, once.

    Raises:
        ResponseCacheConfigError: If the options are invalid.
    """
    try:
        config = ResponseCacheConfig(**options)
    except ValidationError as exc:
        raise ResponseCacheConfigError(
            detail="Invalid response cache configuration",
            extra={"errors": exc.errors(include_url=False)},
        ) from exc
    return ResponseCachePlugin(config)
