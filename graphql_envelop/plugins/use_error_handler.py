"""Plugin that hands result errors to a callback.

The callback sees every error list produced by execute, and by every
streamed subscription result. It cannot change the result; use
``use_payload_formatter`` for that.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from graphql import ExecutionResult

from graphql_envelop.core.utils import is_async_iterable

if TYPE_CHECKING:
    from graphql import GraphQLError

    from graphql_envelop.core.types import ExecutionArgs, OnResultPayload

__all__ = ["ErrorHandlerPlugin", "use_error_handler"]

ErrorHandler = Callable[["list[GraphQLError]", "ExecutionArgs"], None]


class ErrorHandlerPlugin:
    def __init__(self, handler: ErrorHandler) -> None:
        self.handler = handler

    def _check(self, payload: OnResultPayload) -> None:
        result = payload.result
        if isinstance(result, ExecutionResult) and result.errors:
            self.handler(list(result.errors), payload.args)

    def _done(self, payload: OnResultPayload) -> Any:
        if is_async_iterable(payload.result):
            return {"on_next": self._check}
        self._check(payload)
        return None

    def on_execute(self, payload: Any) -> Any:
        return {"on_execute_done": self._done}

    def on_subscribe(self, payload: Any) -> Any:
        return {"on_subscribe_done": self._done}


def use_error_handler(handler: ErrorHandler) -> ErrorHandlerPlugin:
    return ErrorHandlerPlugin(handler)
