"""Incremental watch driver.

RulesetWatcher runs an initial compilation, then watches the directories the
run depends on and recompiles after changes settle.

Architecture:
- _DirectoryEventHandler: watchdog handler forwarding changed paths
- RulesetWatcher: debounce timer, pending path set and re-entrancy guard
- watch_rulesets: generator yielding each run's CompilationOutput

Changes are accumulated into a pending set; every change re-arms a
debounce timer and the full set is flushed as one batch once the timer
fires. Only one run executes at a time; changes that arrive during a run
trigger exactly one follow-up run. The flushed paths are handed to the
executor, which passes them to the orchestrator as the cache invalidation
set.

Usage:
    >>> def executor(phase, changed_paths):
    ...     output = compile_rulesets(
    ...         compilation_input,
    ...         OrchestratorOptions(providers=providers, invalidate_paths=changed_paths),
    ...     )
    ...     return WatchRunResult(output=output, watch_paths=("rules",))
    >>> for output in watch_rulesets(executor, debounce_ms=150):
    ...     print(len(output.artifacts))
"""

from __future__ import annotations

import enum
import os
import queue
import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ruleset_core.errors import WatcherError
from ruleset_core.schemas.compilation import CompilationOutput

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver, ObservedWatch

logger = structlog.get_logger(__name__)

DEFAULT_DEBOUNCE_MS = 150

_CHANGE_EVENTS = frozenset({"created", "modified", "deleted", "moved"})

WatchPhase = Literal["initial", "incremental"]


class WatcherState(enum.Enum):
    """State of the RulesetWatcher."""

    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class WatchRunResult:
    """What an executor run returns.

    Attributes:
        output: Compilation output of the run.
        watch_paths: Files or directories to watch in addition to the
            dependencies reported in the output's source summaries.
    """

    output: CompilationOutput
    watch_paths: tuple[str, ...] = ()


WatchExecutor = Callable[[WatchPhase, tuple[str, ...]], WatchRunResult]


@dataclass(frozen=True)
class _Failure:
    error: BaseException


_STOPPED = object()


class _DirectoryEventHandler(FileSystemEventHandler):
    """Forwards file change events to the watcher."""

    def __init__(self, on_path: Callable[[str], None]) -> None:
        super().__init__()
        self._on_path = on_path

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _CHANGE_EVENTS:
            return
        for raw in (event.src_path, getattr(event, "dest_path", "")):
            if not raw:
                continue
            path = raw.decode("utf-8") if isinstance(raw, bytes) else raw
            self._on_path(path)


def watch_directories(
    watch_paths: Iterable[str],
    output: CompilationOutput,
    cwd: str | None = None,
) -> list[Path]:
    """Directories to observe after a run.

    File paths map to their parent directory, missing directories are
    dropped and the working directory is used when nothing remains.
    """
    candidates = [*watch_paths]
    for summary in output.source_summaries:
        if summary.source_path:
            candidates.append(summary.source_path)
        candidates.extend(summary.dependencies)

    directories: dict[Path, None] = {}
    for candidate in candidates:
        path = Path(candidate).expanduser().resolve()
        directory = path if path.is_dir() else path.parent
        if directory.is_dir():
            directories.setdefault(directory, None)
    if not directories:
        directories[Path(cwd or os.getcwd()).resolve()] = None
    return list(directories)


class RulesetWatcher:
    """Debounced, re-entrancy safe recompilation driver.

    Args:
        executor: Called as executor(phase, changed_paths) for every run.
        debounce_ms: Quiet period before pending changes are flushed.
        cwd: Directory watched when a run reports no paths.

    Example:
        >>> with RulesetWatcher(executor, debounce_ms=150) as watcher:
        ...     initial = watcher.next_output()
        ...     watcher.notify_change("rules/a.md")
        ...     incremental = watcher.next_output()
    """

    def __init__(
        self,
        executor: WatchExecutor,
        *,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        cwd: str | None = None,
    ) -> None:
        self._executor = executor
        self._debounce_seconds = max(debounce_ms, 0) / 1000
        self._cwd = cwd
        self._state = WatcherState.STOPPED
        self._lock = threading.Lock()
        self._pending: set[str] = set()
        self._timer: threading.Timer | None = None
        self._running = False
        self._rerun_requested = False
        self._observer: BaseObserver | None = None
        self._handler = _DirectoryEventHandler(self.notify_change)
        self._watches: dict[Path, ObservedWatch] = {}
        self._outputs: queue.Queue[Any] = queue.Queue()
        self._log = logger.bind(debounce_ms=debounce_ms)

    @property
    def state(self) -> WatcherState:
        with self._lock:
            return self._state

    @property
    def watched_directories(self) -> tuple[Path, ...]:
        with self._lock:
            return tuple(self._watches)

    def start(self) -> None:
        """Run the initial compilation and start watching.

        Raises:
            WatcherError: If the watcher is already running.
            Exception: Whatever the executor raises during the initial run.
        """
        with self._lock:
            if self._state == WatcherState.RUNNING:
                raise WatcherError("Watcher is already running")
            self._state = WatcherState.RUNNING
            self._running = True
            self._observer = Observer()
            self._observer.start()

        self._log.info("watcher_started")
        try:
            result = self._executor("initial", ())
        except Exception:
            self.stop()
            raise
        self._after_run(result)
        self._drain_pending()

    def stop(self) -> None:
        """Stop watching. Safe to call when not running."""
        with self._lock:
            if self._state == WatcherState.STOPPED:
                return
            self._state = WatcherState.STOPPED
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending.clear()
            observer = self._observer
            self._observer = None
            self._watches = {}

        if observer is not None:
            observer.unschedule_all()
            observer.stop()
            if observer is not threading.current_thread():
                observer.join(timeout=5.0)
        self._outputs.put(_STOPPED)
        self._log.info("watcher_stopped")

    def __enter__(self) -> RulesetWatcher:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.stop()

    def notify_change(self, path: str | os.PathLike[str]) -> None:
        """Record a changed path and re-arm the debounce timer."""
        with self._lock:
            if self._state != WatcherState.RUNNING:
                return
            self._pending.add(str(Path(path).expanduser().absolute()))
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._debounce_seconds, self._on_timer)
            self._timer.daemon = True
            self._timer.start()

    def next_output(self, timeout: float | None = None) -> CompilationOutput | None:
        """Block until the next run completes.

        Returns:
            The run's output, or None once the watcher has stopped.

        Raises:
            queue.Empty: If timeout elapses first.
            Exception: The executor's error when a run failed fatally.
        """
        item = self._outputs.get(timeout=timeout)
        if item is _STOPPED:
            self._outputs.put(_STOPPED)
            return None
        if isinstance(item, _Failure):
            raise item.error
        return item

    def _on_timer(self) -> None:
        with self._lock:
            self._timer = None
            if self._state != WatcherState.RUNNING:
                return
            if self._running:
                self._rerun_requested = True
                return
            self._running = True
        self._drain_pending()

    def _drain_pending(self) -> None:
        """Execute runs until no flushed changes remain. Caller holds the run slot."""
        while True:
            with self._lock:
                ready = self._rerun_requested or self._timer is None
                if self._state != WatcherState.RUNNING or not self._pending or not ready:
                    self._running = False
                    self._rerun_requested = False
                    return
                changed = tuple(sorted(self._pending))
                self._pending.clear()
                self._rerun_requested = False

            self._log.info("watch_recompile", changed=len(changed))
            try:
                result = self._executor("incremental", changed)
            except Exception as exc:
                self._log.error("watch_run_failed", error=str(exc))
                self._outputs.put(_Failure(exc))
                with self._lock:
                    self._running = False
                self.stop()
                return
            self._after_run(result)

    def _after_run(self, result: WatchRunResult) -> None:
        directories = watch_directories(result.watch_paths, result.output, self._cwd)
        with self._lock:
            observer = self._observer
            if observer is not None:
                for directory in [d for d in self._watches if d not in directories]:
                    observer.unschedule(self._watches.pop(directory))
                for directory in directories:
                    if directory not in self._watches:
                        self._watches[directory] = observer.schedule(
                            self._handler, str(directory), recursive=False
                        )
        self._log.debug("watch_directories_updated", directories=len(directories))
        self._outputs.put(result.output)


def watch_rulesets(
    executor: WatchExecutor,
    debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    *,
    cwd: str | None = None,
) -> Iterator[CompilationOutput]:
    """Yield the output of the initial run and of every recompilation.

    Closing the generator stops the watcher. A fatal executor error stops
    the watcher and is raised from the generator.
    """
    watcher = RulesetWatcher(executor, debounce_ms=debounce_ms, cwd=cwd)
    watcher.start()
    try:
        while True:
            output = watcher.next_output()
            if output is None:
                return
            yield output
    finally:
        watcher.stop()
