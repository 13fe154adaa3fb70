"""Internal phase tracing.

Measures, per request, the wall-clock duration of each composed phase as
the whole pipeline experiences it: every plugin's before/after hooks plus
the underlying implementation. Per-plugin timings are not recorded.

Durations are milliseconds (float). Phases that never ran for a request are
absent from the snapshot rather than reported as zero.

Usage:
    recorder = TracingRecorder()
    with recorder.phase(Phase.PARSE):
        document = composer.parse(source, context)
    recorder.snapshot()  # {"parse": 0.42}
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from graphql_envelop.core.utils import merge_extensions

if TYPE_CHECKING:
    from graphql import ExecutionResult

    from graphql_envelop.core.types import Phase

logger = logging.getLogger(__name__)

__all__ = ["TracingRecorder", "get_envelop_tracer"]


def get_envelop_tracer() -> trace.Tracer:
    """Get OpenTelemetry tracer for pipeline phases.

    Returns:
        Tracer instance for creating spans
    """
    return trace.get_tracer("graphql_envelop", "1.0.0")


class TracingRecorder:
    """Record aggregate phase durations for one request.

    Args:
        extension_key: Key under which durations are published on results.
        otel_spans: Also open an OpenTelemetry span ``graphql.<phase>``
            around every measured phase.
    """

    def __init__(self, extension_key: str = "_envelopTracing", otel_spans: bool = False) -> None:
        self.extension_key = extension_key
        self.otel_spans = otel_spans
        self._durations: dict[str, float] = {}

    @contextmanager
    def phase(self, phase: Phase) -> Iterator[None]:
        """Time the enclosed composed phase call.

        The duration is recorded even when the phase raises. Repeated
        measurements of the same phase accumulate.
        """
        span = None
        if self.otel_spans:
            span = get_envelop_tracer().start_span(
                name=f"graphql.{phase.value}",
                kind=trace.SpanKind.INTERNAL,
            )
        start = time.perf_counter()
        try:
            yield
        except Exception as e:
            if span is not None:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
            raise
        finally:
            elapsed = (time.perf_counter() - start) * 1000.0
            self._durations[phase.value] = self._durations.get(phase.value, 0.0) + elapsed
            if span is not None:
                span.set_attribute("graphql.phase.duration_ms", elapsed)
                span.end()

    def snapshot(self) -> dict[str, float]:
        """Durations recorded so far, keyed by phase name."""
        return dict(self._durations)

    def attach(self, result: ExecutionResult) -> ExecutionResult:
        """Return ``result`` with the current durations in its extensions."""
        return merge_extensions(result, {self.extension_key: self.snapshot()})

    def publish(self, context: dict[str, Any]) -> None:
        """Store the current durations on the request context."""
        context[self.extension_key] = self.snapshot()
