"""File watcher — coalesces bursts of filesystem events into one rebuild.

Two layers:

- :class:`Debouncer` is a pure state machine (IDLE -> PENDING -> FIRING ->
  IDLE) driven by a cancellable timer.  It knows nothing about the
  filesystem, so it can be tested with a fake timer.
- :class:`Watcher` runs watchfiles in a background thread over any number of
  roots and feeds every raw change batch into one shared debouncer.

The rebuild callback runs on the debounce timer thread.  Callbacks never
overlap: events that arrive while a callback runs open the next window once
it returns.
"""

from __future__ import annotations

import enum
import functools
import os
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from watchfiles import DefaultFilter
from watchfiles import watch as _watchfiles_watch

from mew._errors import WatchError
from mew.config import default_config

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from mew._types import ChangeCallback, ErrorCallback, OutputPath
    from mew.config import MewConfig
    from mew.observability.collector import BuildCollector


class DebounceState(enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    FIRING = "firing"


class TimerLike(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


type TimerFactory = Callable[[float, Callable[[], None]], TimerLike]


def _daemon_timer(interval: float, function: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


def _print_error(exc: BaseException) -> None:
    print(f"mew: {exc}", file=sys.stderr)


# ---------------------------------------------------------------------------
# Debouncer
# ---------------------------------------------------------------------------


class Debouncer:
    """Collapses a burst of change notifications into one callback.

    Every :meth:`push` starts or extends the pending window.  When the window
    elapses with no further pushes, ``callback`` receives the union of all
    pushed paths, once.

    Args:
        callback: Receives a ``frozenset`` of changed paths.
        delay: Quiet period in seconds.
        timer_factory: Builds a timer with ``threading.Timer``'s signature.
        on_error: Receives exceptions raised by ``callback``.
        collector: Optional observability collector.

    """

    __slots__ = (
        "_callback",
        "_collector",
        "_delay",
        "_generation",
        "_lock",
        "_on_error",
        "_pending",
        "_raw_events",
        "_state",
        "_timer",
        "_timer_factory",
    )

    def __init__(
        self,
        callback: ChangeCallback,
        *,
        delay: float,
        timer_factory: TimerFactory | None = None,
        on_error: ErrorCallback | None = None,
        collector: BuildCollector | None = None,
    ) -> None:
        self._callback = callback
        self._delay = delay
        self._timer_factory = timer_factory or _daemon_timer
        self._on_error = on_error or _print_error
        self._collector = collector
        self._lock = threading.Lock()
        self._state = DebounceState.IDLE
        self._pending: set[Path] = set()
        self._raw_events = 0
        self._timer: TimerLike | None = None
        # Bumped on every (re)arm and cancel; stale timer expirations are ignored
        self._generation = 0

    @property
    def state(self) -> DebounceState:
        return self._state

    @property
    def pending(self) -> frozenset[Path]:
        """Paths collected for the next callback."""
        with self._lock:
            return frozenset(self._pending)

    def push(self, paths: Iterable[OutputPath]) -> None:
        """Record one raw notification covering ``paths``."""
        with self._lock:
            self._pending.update(Path(p) for p in paths)
            self._raw_events += 1
            if self._state is DebounceState.FIRING:
                return
            self._state = DebounceState.PENDING
            self._arm()

    def cancel(self) -> None:
        """Disarm the timer and drop pending paths."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._generation += 1
            self._pending.clear()
            self._raw_events = 0
            self._state = DebounceState.IDLE

    def _arm(self) -> None:
        # Caller holds the lock
        if self._timer is not None:
            self._timer.cancel()
        self._generation += 1
        timer = self._timer_factory(
            self._delay, functools.partial(self._expire, self._generation)
        )
        self._timer = timer
        timer.start()

    def _expire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._state is not DebounceState.PENDING:
                return
            self._state = DebounceState.FIRING
            self._timer = None
            batch = frozenset(self._pending)
            raw_events = self._raw_events
            self._pending.clear()
            self._raw_events = 0

        if self._collector is not None:
            self._collector.record_rebuild(len(batch), raw_events=raw_events)

        try:
            self._callback(batch)
        except Exception as exc:
            self._on_error(exc)
        finally:
            with self._lock:
                # cancel() during the callback already reset the state
                if self._state is DebounceState.FIRING:
                    if self._pending:
                        self._state = DebounceState.PENDING
                        self._arm()
                    else:
                        self._state = DebounceState.IDLE


# ---------------------------------------------------------------------------
# Watcher
# ---------------------------------------------------------------------------


class Watcher:
    """Watches one or more roots and triggers a debounced rebuild callback.

    Uses watchfiles for filesystem monitoring in a background thread.  Roots
    that are missing at start, or disappear later, are reported to
    ``on_error`` and dropped; the remaining roots keep being watched.  When
    no root is left the watcher stops and :meth:`wait` raises.

    Args:
        roots: Paths to watch recursively.
        on_change: Rebuild callback, receives a ``frozenset`` of changed paths.
        debounce_ms: Debounce window (default: ``config.debounce_ms``).
        on_error: Receives non-fatal errors (default: print to stderr).
        config: Supplies defaults and the cache directory to ignore.
        collector: Optional observability collector.
        timer_factory: Forwarded to the :class:`Debouncer`.

    """

    def __init__(
        self,
        roots: Iterable[OutputPath],
        on_change: ChangeCallback,
        *,
        debounce_ms: int | None = None,
        on_error: ErrorCallback | None = None,
        config: MewConfig | None = None,
        collector: BuildCollector | None = None,
        timer_factory: TimerFactory | None = None,
    ) -> None:
        self._config = config or default_config()
        self._roots = tuple(Path(os.path.abspath(r)) for r in roots)
        self._on_error = on_error or _print_error
        self._collector = collector
        if debounce_ms is None:
            debounce_ms = self._config.debounce_ms
        self._debouncer = Debouncer(
            on_change,
            delay=debounce_ms / 1000,
            timer_factory=timer_factory,
            on_error=self._on_error,
            collector=collector,
        )
        self._active: tuple[Path, ...] = ()
        self._fatal: WatchError | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        """Whether the watcher background thread is active."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def active_roots(self) -> tuple[Path, ...]:
        """Roots currently being watched."""
        return self._active

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    def start(self) -> None:
        """Start watching in a background thread.

        Raises:
            WatchError: If none of the roots exist.

        """
        if self.is_running:
            return

        active = self._live_roots(self._roots)
        if not active:
            msg = "None of the watched paths exist: " + ", ".join(map(str, self._roots))
            raise WatchError(msg)

        self._active = active
        self._fatal = None
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch_loop,
            name="mew-watcher",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Signal the watcher to stop, wait for the thread, disarm the timer."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None
        self._debouncer.cancel()

    def wait(self, timeout: float | None = None) -> None:
        """Block until the watcher thread exits (or ``timeout`` elapses).

        Raises:
            WatchError: If the watcher stopped because every root was lost.

        """
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        if self._fatal is not None:
            raise self._fatal

    def __enter__(self) -> Watcher:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _watch_loop(self) -> None:
        """Background thread: run watchfiles and feed the debouncer."""
        step_ms = self._config.step_ms
        watch_filter = DefaultFilter(ignore_paths=(self._config.cache_path,))

        while not self._stop_event.is_set():
            try:
                for raw_changes in _watchfiles_watch(
                    *self._active,
                    watch_filter=watch_filter,
                    debounce=step_ms,
                    step=step_ms,
                    stop_event=self._stop_event,
                    rust_timeout=1000,
                    yield_on_timeout=True,
                    raise_interrupt=False,
                ):
                    if raw_changes:
                        self._debouncer.push(path for _, path in raw_changes)
                    if not all(root.exists() for root in self._active):
                        break
            except Exception as exc:
                error = WatchError(f"Watching {', '.join(map(str, self._active))} failed: {exc}")
                error.__cause__ = exc
                self._report(error)
                self._stop_event.wait(step_ms / 1000)

            if self._stop_event.is_set():
                return

            remaining = self._live_roots(self._active)
            if not remaining:
                self._fatal = WatchError("No watched paths remain")
                if self._collector is not None:
                    self._collector.record_watch_fault(str(self._fatal), fatal=True)
                self._debouncer.cancel()
                return
            self._active = remaining

    def _live_roots(self, roots: tuple[Path, ...]) -> tuple[Path, ...]:
        """Roots that still exist; report the ones that don't."""
        live: list[Path] = []
        for root in roots:
            if root.exists():
                live.append(root)
            else:
                self._report(WatchError(f"Watched path is gone: {root}"), source=root)
        return tuple(live)

    def _report(self, error: WatchError, *, source: Path | str = "") -> None:
        if self._collector is not None:
            self._collector.record_watch_fault(str(error), source=source)
        self._on_error(error)


def watch(
    roots: OutputPath | Iterable[OutputPath],
    on_change: ChangeCallback,
    **kwargs: object,
) -> None:
    """Watch ``roots`` and call ``on_change`` after each burst of changes.

    Blocks until interrupted with Ctrl+C.

    Raises:
        WatchError: If no root exists, or every root is lost while watching.

    """
    if isinstance(roots, (str, os.PathLike)):
        roots = [roots]
    watcher = Watcher(roots, on_change, **kwargs)  # type: ignore[arg-type]
    watcher.start()
    try:
        while watcher.is_running:
            watcher.wait(timeout=0.5)
        watcher.wait()
    except KeyboardInterrupt:
        return
    finally:
        watcher.stop()
