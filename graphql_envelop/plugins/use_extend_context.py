"""Plugin that merges a factory's output into the execution context.

Usage:
    async def load_user(context):
        return {"user": await users.by_token(context["request"].headers["authorization"])}

    plugins = [use_extend_context(load_user)]
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

from graphql_envelop.core.utils import maybe_await

if TYPE_CHECKING:
    from graphql_envelop.core.types import OnContextBuildingPayload

__all__ = ["ExtendContextPlugin", "use_extend_context"]

ContextFactory = Callable[[dict[str, Any]], "Mapping[str, Any] | Awaitable[Mapping[str, Any]]"]


class ExtendContextPlugin:
    def __init__(self, factory: ContextFactory) -> None:
        self.factory = factory

    async def on_context_building(self, payload: OnContextBuildingPayload) -> None:
        partial = await maybe_await(self.factory(payload.context))
        if partial:
            payload.extend_context(partial)


def use_extend_context(factory: ContextFactory) -> ExtendContextPlugin:
    return ExtendContextPlugin(factory)
