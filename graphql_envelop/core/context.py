"""Context building phase.

Folds every plugin's contribution into one shared, mutable context mapping
before execute/subscribe. Plugins run strictly one after another: a later
plugin may depend on keys an earlier plugin added (an authenticated user
populated before a database client is opened), so hooks are never gathered
concurrently.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from graphql_envelop.core.hooks import acall_hook, collect_hooks
from graphql_envelop.core.types import (
    OnContextBuildingDonePayload,
    OnContextBuildingPayload,
    Phase,
)
from graphql_envelop.core.utils import extract_hook

logger = logging.getLogger(__name__)

__all__ = ["ContextManager"]


class ContextManager:
    """Sequentially fold plugin context contributions into one object.

    ``extend_context`` shallow-merges into the shared mapping immediately, so
    plugin *n* observes every extension made by plugins *0..n-1*. No conflict
    detection is done: the last writer of a key wins.

    Example:
            manager = ContextManager(plugins)
        context = await manager.build({"request": request})
        context["current_user"]
    """

    def __init__(self, plugins: tuple[object, ...]) -> None:
        self._hooks = collect_hooks(plugins, Phase.CONTEXT.hook_name)

    @property
    def hook_count(self) -> int:
        return len(self._hooks)

    async def build(self, context: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run every ``on_context_building`` hook in plugin order.

        Args:
            context: The shared context mapping; it is extended in place and
                returned, never copied.

        Returns:
            The same mapping, extended by every plugin.

        Raises:
            HookError: If a hook raises; remaining hooks do not run.
        """
        if context is None:
            context = {}

        def extend_context(partial: Mapping[str, Any]) -> None:
            context.update(partial)

        stopped = False

        def break_context_building() -> None:
            nonlocal stopped
            stopped = True

        after_hooks: list[tuple[object, Any]] = []
        for plugin, hook in self._hooks:
            payload = OnContextBuildingPayload(
                context=context,
                extend_context=extend_context,
                break_context_building=break_context_building,
            )
            returned = await acall_hook(Phase.CONTEXT.value, plugin, hook, payload)
            after = extract_hook(returned, Phase.CONTEXT.done_hook_name)
            if after is not None:
                after_hooks.append((plugin, after))
            if stopped:
                logger.debug("Context building stopped", extra={"plugin": type(plugin).__name__})
                break

        for plugin, after in after_hooks:
            done = OnContextBuildingDonePayload(context=context, extend_context=extend_context)
            await acall_hook(Phase.CONTEXT.value, plugin, after, done, kind="after")

        return context
