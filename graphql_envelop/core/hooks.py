"""Hook invocation with failure wrapping.

Every plugin callback goes through these helpers so a raising hook is
surfaced as a ``HookError`` tagged with its phase and plugin, regardless of
which phase it belongs to.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any

from graphql_envelop.core.exceptions import HookError

logger = logging.getLogger(__name__)

__all__ = ["acall_hook", "call_hook", "collect_hooks"]


def collect_hooks(plugins: tuple[object, ...], name: str) -> list[tuple[object, Any]]:
    """Return ``(plugin, hook)`` pairs, in plugin order, for plugins defining ``name``."""
    hooks = []
    for plugin in plugins:
        hook = getattr(plugin, name, None)
        if hook is not None:
            hooks.append((plugin, hook))
    return hooks


def call_hook(phase: str, plugin: object, hook: Any, payload: Any, kind: str = "before") -> Any:
    """Invoke a synchronous hook.

    Raises:
        HookError: If the hook raises, or returns an awaitable in a
            synchronous phase.
    """
    try:
        returned = hook(payload)
    except HookError:
        raise
    except Exception as e:
        logger.debug(
            "Hook failed",
            extra={"phase": phase, "hook": kind, "plugin": type(plugin).__name__},
        )
        raise HookError(phase, plugin, e, hook=kind) from e

    if inspect.isawaitable(returned):
        if inspect.iscoroutine(returned):
            returned.close()
        error = TypeError(f"{kind}-hook returned an awaitable in the synchronous {phase} phase")
        raise HookError(phase, plugin, error, hook=kind) from error
    return returned


async def acall_hook(phase: str, plugin: object, hook: Any, payload: Any, kind: str = "before") -> Any:
    """Invoke a hook that may be synchronous or asynchronous, awaiting it if needed.

    Raises:
        HookError: If the hook (or the awaitable it returned) raises.
    """
    try:
        returned = hook(payload)
        if inspect.isawaitable(returned):
            returned = await returned
    except HookError:
        raise
    except Exception as e:
        logger.debug(
            "Hook failed",
            extra={"phase": phase, "hook": kind, "plugin": type(plugin).__name__},
        )
        raise HookError(phase, plugin, e, hook=kind) from e
    return returned
