"""Small helpers shared by the orchestrator and the built-in plugins."""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterable, Mapping
from typing import TYPE_CHECKING, Any

from graphql import ExecutionResult, OperationType, get_operation_ast

if TYPE_CHECKING:
    from graphql import DocumentNode

__all__ = [
    "extract_hook",
    "get_operation_type",
    "is_introspection_operation",
    "is_async_iterable",
    "maybe_await",
    "merge_extensions",
]


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


def is_async_iterable(value: Any) -> bool:
    """Check whether a phase result is a stream rather than a single result."""
    return isinstance(value, AsyncIterable) and not isinstance(value, ExecutionResult)


def extract_hook(returned: Any, name: str, *, allow_callable: bool = True) -> Any:
    """Pull a named hook out of whatever a hook returned.

    A hook may return nothing, the callable itself (when ``allow_callable``),
    or an object / mapping exposing the hook under ``name``.
    """
    if returned is None:
        return None
    if isinstance(returned, Mapping):
        return returned.get(name)
    hook = getattr(returned, name, None)
    if hook is not None:
        return hook
    if allow_callable and callable(returned):
        return returned
    return None


def get_operation_type(
    document: DocumentNode,
    operation_name: str | None = None,
) -> OperationType | None:
    """Resolve the operation type executed for ``document``.

    Returns:
        The operation type, or None when the operation cannot be determined
    """
    operation = get_operation_ast(document, operation_name)
    if operation is None:
        return None
    return operation.operation


def merge_extensions(
    result: ExecutionResult,
    extensions: Mapping[str, Any],
) -> ExecutionResult:
    """Return a copy of ``result`` with ``extensions`` merged on top.

    The original result is left untouched so cached values never pick up
    per-request metadata.
    """
    merged = dict(result.extensions or {})
    merged.update(extensions)
    return ExecutionResult(data=result.data, errors=result.errors, extensions=merged)


def is_introspection_operation(
    document: DocumentNode,
    operation_name: str | None = None,
) -> bool:
    """Check whether every root field of the operation is an introspection field."""
    operation = get_operation_ast(document, operation_name)
    if operation is None:
        return False
    selections = operation.selection_set.selections
    return bool(selections) and all(
        getattr(getattr(selection, "name", None), "value", "").startswith("__")
        for selection in selections
    )
