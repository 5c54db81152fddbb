"""Build collector — the single recording surface for pipeline events.

Pipeline stages, the compilation cache, and the watcher take an optional
collector and call its ``record_*`` methods.  Passing ``None`` disables
recording.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.
    Safe for concurrent use from render worker threads.

"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mew.observability.events import (
    BuildEvent,
    CacheLookup,
    ItemParsed,
    RebuildTriggered,
    WatchFault,
    now_ns,
)
from mew.observability.log import EventLog

if TYPE_CHECKING:
    from pathlib import Path


class BuildCollector:
    """Records build, cache, and watch events into an ``EventLog``.

    Args:
        log: The EventLog to store events in.

    """

    __slots__ = ("_log",)

    def __init__(self, log: EventLog | None = None) -> None:
        self._log = log if log is not None else EventLog()

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    # ----- Pipeline events -----

    def record_parse(
        self,
        path: Path | str,
        *,
        ok: bool = True,
        parse_ms: float = 0.0,
    ) -> None:
        """Record a parse attempt."""
        self._log.append(
            ItemParsed(
                path=str(path),
                ok=ok,
                parse_ms=parse_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_build(
        self,
        kind: str,
        source: Path | str,
        target: Path | str,
        *,
        ok: bool = True,
        duration_ms: float = 0.0,
    ) -> None:
        """Record an output-producing action."""
        self._log.append(
            BuildEvent(
                kind=kind,  # type: ignore[arg-type]
                source=str(source),
                target=str(target),
                ok=ok,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )

    # ----- Cache events -----

    def record_cache_lookup(
        self,
        target: Path | str,
        fingerprint: str,
        *,
        hit: bool,
    ) -> None:
        """Record a compilation cache hit or miss."""
        self._log.append(
            CacheLookup(
                target=str(target),
                fingerprint=fingerprint,
                hit=hit,
                timestamp_ns=now_ns(),
            )
        )

    # ----- Watch events -----

    def record_rebuild(self, paths: int, *, raw_events: int = 0) -> None:
        """Record a debounced rebuild trigger."""
        self._log.append(
            RebuildTriggered(
                paths=paths,
                raw_events=raw_events,
                timestamp_ns=now_ns(),
            )
        )

    def record_watch_fault(
        self,
        message: str,
        *,
        source: Path | str = "",
        fatal: bool = False,
    ) -> None:
        """Record a notifier error."""
        self._log.append(
            WatchFault(
                source=str(source),
                message=message,
                fatal=fatal,
                timestamp_ns=now_ns(),
            )
        )
