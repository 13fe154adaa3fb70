"""Plugin that rewrites execution results before they leave the pipeline.

The formatter returns a replacement result, or None to keep the original.

Usage:
    def strip_debug(result, args):
        if result.extensions and "debug" in result.extensions:
            extensions = {k: v for k, v in result.extensions.items() if k != "debug"}
            return ExecutionResult(result.data, result.errors, extensions or None)
        return None

    plugins = [use_payload_formatter(strip_debug)]
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from graphql import ExecutionResult

from graphql_envelop.core.utils import is_async_iterable

if TYPE_CHECKING:
    from graphql_envelop.core.types import ExecutionArgs, OnResultPayload

__all__ = ["PayloadFormatterPlugin", "use_payload_formatter"]

Formatter = Callable[[ExecutionResult, "ExecutionArgs"], "ExecutionResult | None"]


class PayloadFormatterPlugin:
    def __init__(self, formatter: Formatter) -> None:
        self.formatter = formatter

    def _format(self, payload: OnResultPayload) -> None:
        if not isinstance(payload.result, ExecutionResult):
            return
        formatted = self.formatter(payload.result, payload.args)
        if formatted is not None:
            payload.set_result(formatted)

    def _done(self, payload: OnResultPayload) -> Any:
        if is_async_iterable(payload.result):
            return {"on_next": self._format}
        self._format(payload)
        return None

    def on_execute(self, payload: Any) -> Any:
        return {"on_execute_done": self._done}

    def on_subscribe(self, payload: Any) -> Any:
        return {"on_subscribe_done": self._done}


def use_payload_formatter(formatter: Formatter) -> PayloadFormatterPlugin:
    return PayloadFormatterPlugin(formatter)
