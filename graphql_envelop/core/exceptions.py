"""Custom exception classes for the plugin pipeline."""

from __future__ import annotations

from typing import Any


class EnvelopError(Exception):
    """Base pipeline exception.

    All custom exceptions should inherit from this class.

    Attributes:
        detail: Human-readable error message.
        type: Error type identifier.
        extra: Additional context-specific information about the error.

    Example:
            raise EnvelopError(
            detail="Schema was never set",
            type="schema-missing",
            extra={"plugins": 3}
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "envelop-error",
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize pipeline exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            extra: Additional context about the error.
        """
        self.detail = detail
        self.type = type
        self.extra = extra or {}
        super().__init__(detail)


class PluginError(EnvelopError):
    """Raised when a plugin list cannot be composed.

    Example:
            raise PluginError(
            detail="Plugin at index 2 is None",
            extra={"index": 2}
        )
    """

    def __init__(self, detail: str, extra: dict[str, Any] | None = None) -> None:
        super().__init__(detail=detail, type="plugin-error", extra=extra)


class HookError(EnvelopError):
    """Raised when a before- or after-hook fails during a phase.

    Aborts the current phase for the current request only. The composed
    pipeline stays usable for later requests. The original exception is
    chained as ``__cause__`` and exposed as ``original``.

    Example:
            try:
            proxy.parse(source)
        except HookError as exc:
            logger.warning("parse aborted", extra={"phase": exc.phase})
    """

    def __init__(
        self,
        phase: str,
        plugin: object,
        original: BaseException,
        hook: str = "before",
    ) -> None:
        """Initialize hook failure.

        Args:
            phase: Phase name (parse, validate, context, execute, subscribe).
            plugin: The plugin whose hook raised.
            original: The exception raised by the hook.
            hook: Either "before" or "after".
        """
        self.phase = phase
        self.plugin = plugin
        self.original = original
        self.hook = hook
        super().__init__(
            detail=f"{hook}-hook failed during {phase}: {original}",
            type=f"{phase}-hook-failure",
            extra={
                "phase": phase,
                "hook": hook,
                "plugin": type(plugin).__name__,
            },
        )


class ResponseCacheConfigError(EnvelopError):
    """Raised when a response cache configuration is rejected."""

    def __init__(self, detail: str, extra: dict[str, Any] | None = None) -> None:
        super().__init__(detail=detail, type="response-cache-config", extra=extra)


class StreamingNotSupportedError(EnvelopError):
    """Raised when the response cache is handed a streamed result."""

    def __init__(self, detail: str = "Caching streamed results is not implemented") -> None:
        super().__init__(detail=detail, type="streaming-not-supported")


__all__ = [
    "EnvelopError",
    "HookError",
    "PluginError",
    "ResponseCacheConfigError",
    "StreamingNotSupportedError",
]
