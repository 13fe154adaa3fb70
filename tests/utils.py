"""Test utilities and helper functions.

Usage:
    from tests.utils import FakeClock, execute_operation

    result = await execute_operation(get_enveloped, "{ users { id } }", root_value=directory.root())
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from graphql import ExecutionResult

if TYPE_CHECKING:
    from graphql_envelop.core.envelop import GetEnveloped


class FakeClock:
    """Monotonic clock in seconds, advanced explicitly in milliseconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms / 1000.0


async def execute_operation(
    get_enveloped: GetEnveloped,
    source: str,
    *,
    variables: dict[str, Any] | None = None,
    context: Mapping[str, Any] | None = None,
    operation_name: str | None = None,
    root_value: Any = None,
) -> ExecutionResult:
    """Drive one request through parse, validate, context and execute.

    Validation errors are returned as a result without executing, the way a
    transport layer would.
    """
    proxy = get_enveloped(dict(context or {}))
    document = proxy.parse(source)
    errors = proxy.validate(proxy.schema, document)
    if errors:
        return ExecutionResult(data=None, errors=errors)
    context_value = await proxy.context_factory()
    return await proxy.execute(
        document,
        root_value=root_value,
        context_value=context_value,
        variable_values=variables,
        operation_name=operation_name,
    )
