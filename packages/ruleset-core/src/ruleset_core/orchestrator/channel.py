"""Threaded event channel.

Runs the pipeline on a worker thread that pushes events onto a bounded
queue. The consumer iterates until ``pipeline:end``; an error raised by the
pipeline is re-raised in the consumer.
"""

from __future__ import annotations

import queue
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

import structlog

from ruleset_core.orchestrator.pipeline import Orchestrator, OrchestratorOptions
from ruleset_core.schemas.compilation import CompilationInput
from ruleset_core.schemas.events import CompilationEvent

logger = structlog.get_logger(__name__)

DEFAULT_MAX_EVENTS = 64

_PUT_INTERVAL_SECONDS = 0.05


@dataclass(frozen=True)
class _Failure:
    error: BaseException


_DONE = object()


def stream_in_background(
    compilation_input: CompilationInput,
    options: OrchestratorOptions | None = None,
    *,
    max_events: int = DEFAULT_MAX_EVENTS,
    orchestrator: Orchestrator | None = None,
) -> Iterator[CompilationEvent]:
    """Stream events produced on a worker thread.

    Args:
        compilation_input: Input for the run.
        options: Orchestrator options.
        max_events: Queue bound. The worker blocks while the queue is full.
        orchestrator: Orchestrator to run. Defaults to a new Orchestrator.

    Yields:
        Events in pipeline order, ending with ``pipeline:end``.

    Example:
        >>> kinds = [event.kind for event in stream_in_background(compilation_input)]
        >>> kinds[-1]
        'pipeline:end'
    """
    orchestrator = orchestrator or Orchestrator()
    channel: queue.Queue[Any] = queue.Queue(maxsize=max(max_events, 1))
    cancelled = threading.Event()

    def put(item: Any) -> bool:
        while not cancelled.is_set():
            try:
                channel.put(item, timeout=_PUT_INTERVAL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def produce() -> None:
        try:
            for event in orchestrator.stream(compilation_input, options):
                if not put(event):
                    return
        except Exception as exc:
            put(_Failure(exc))
            return
        put(_DONE)

    worker = threading.Thread(target=produce, name="ruleset-pipeline", daemon=True)
    worker.start()
    logger.debug("background_stream_started", max_events=max_events)
    try:
        while True:
            item = channel.get()
            if item is _DONE:
                return
            if isinstance(item, _Failure):
                raise item.error
            yield item
    finally:
        cancelled.set()
        worker.join(timeout=5.0)
