"""Plugin that reports execute and subscribe start/end events.

Events:
    execute-start    {"args": ExecutionArgs}
    execute-end      {"args": ExecutionArgs, "result": ExecutionResult}
    subscribe-start  {"args": ExecutionArgs}
    subscribe-end    {"args": ExecutionArgs, "result": AsyncIterator | ExecutionResult}
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from graphql_envelop.core.utils import is_introspection_operation

if TYPE_CHECKING:
    from graphql_envelop.core.types import (
        ExecutionArgs,
        OnExecutePayload,
        OnResultPayload,
        OnSubscribePayload,
    )

logger = logging.getLogger(__name__)

__all__ = ["LoggerPlugin", "use_logger"]

LogFn = Callable[[str, dict[str, Any]], None]


def _default_log(event: str, data: dict[str, Any]) -> None:
    args: ExecutionArgs = data["args"]
    logger.info(
        event,
        extra={
            "operation_name": args.operation_name or "anonymous",
            "has_errors": bool(getattr(data.get("result"), "errors", None)),
        },
    )


class LoggerPlugin:
    def __init__(self, log_fn: LogFn | None = None, skip_introspection: bool = False) -> None:
        self.log_fn = log_fn or _default_log
        self.skip_introspection = skip_introspection

    def _skipped(self, args: ExecutionArgs) -> bool:
        return self.skip_introspection and is_introspection_operation(args.document, args.operation_name)

    def on_execute(self, payload: OnExecutePayload) -> Any:
        if self._skipped(payload.args):
            return None
        self.log_fn("execute-start", {"args": payload.args})

        def on_execute_done(done: OnResultPayload) -> None:
            self.log_fn("execute-end", {"args": done.args, "result": done.result})

        return on_execute_done

    def on_subscribe(self, payload: OnSubscribePayload) -> Any:
        if self._skipped(payload.args):
            return None
        self.log_fn("subscribe-start", {"args": payload.args})

        def on_subscribe_done(done: OnResultPayload) -> None:
            self.log_fn("subscribe-end", {"args": done.args, "result": done.result})

        return on_subscribe_done


def use_logger(log_fn: LogFn | None = None, skip_introspection: bool = False) -> LoggerPlugin:
    return LoggerPlugin(log_fn=log_fn, skip_introspection=skip_introspection)
