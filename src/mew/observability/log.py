"""Build log — bounded record of what the pipeline did, queryable after a build.

The questions asked of it are build questions: which items failed, which
outputs a source produced, how long rendering took, how often the
compilation cache hit.  ``query`` answers the first two, ``summary`` the rest.

Thread Safety:
    Appends and reads share one ``threading.Lock``.  Render workers record
    concurrently.

"""

import threading
from collections import deque
from typing import Any

from mew.observability.events import (
    BuildEvent,
    CacheLookup,
    ItemParsed,
    MewEvent,
    RebuildTriggered,
    WatchFault,
)


def event_paths(event: MewEvent) -> tuple[str, ...]:
    """Every filesystem path an event mentions."""
    if isinstance(event, ItemParsed):
        return (event.path,)
    if isinstance(event, BuildEvent):
        return (event.source, event.target)
    if isinstance(event, CacheLookup):
        return (event.target,)
    if isinstance(event, WatchFault):
        return (event.source,) if event.source else ()
    return ()


def is_failure(event: MewEvent) -> bool:
    """True for failed parses and builds, and for every watch fault."""
    if isinstance(event, WatchFault):
        return True
    return getattr(event, "ok", True) is False


class EventLog:
    """Ring buffer of build events.

    When full, the oldest events are evicted and counted in
    ``summary()["dropped"]``, so a summary over a long watch session says how
    much history it no longer covers.

    Args:
        max_events: Maximum number of events to retain.

    """

    __slots__ = ("_dropped", "_events", "_lock")

    def __init__(self, max_events: int = 10_000) -> None:
        self._events: deque[MewEvent] = deque(maxlen=max_events)
        self._dropped = 0
        self._lock = threading.Lock()

    def append(self, event: MewEvent) -> None:
        with self._lock:
            if len(self._events) == self._events.maxlen:
                self._dropped += 1
            self._events.append(event)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def recent(self, n: int = 20) -> list[MewEvent]:
        """The ``n`` most recent events, oldest first."""
        with self._lock:
            items = list(self._events)
        return items[-n:]

    def query(
        self,
        *,
        event_type: type | None = None,
        kind: str | None = None,
        failed: bool | None = None,
        since_ns: int = 0,
        path: str | None = None,
        limit: int = 100,
    ) -> list[MewEvent]:
        """Matching events, most recent first.

        Args:
            event_type: Only events of this class.
            kind: Only ``BuildEvent``s of this kind (``"render"``, ``"copy"``...).
            failed: True for failures only, False for successes only.
            since_ns: Only events at or after this monotonic timestamp.
            path: Substring matched against every path the event mentions.
            limit: Maximum number of events returned.

        """
        with self._lock:
            snapshot = list(self._events)

        results: list[MewEvent] = []
        for event in reversed(snapshot):
            if len(results) >= limit:
                break
            if event_type is not None and not isinstance(event, event_type):
                continue
            if kind is not None and not (isinstance(event, BuildEvent) and event.kind == kind):
                continue
            if failed is not None and is_failure(event) != failed:
                continue
            if event.timestamp_ns < since_ns:
                continue
            if path is not None and not any(path in p for p in event_paths(event)):
                continue
            results.append(event)
        return results

    def failures(self, limit: int = 100) -> list[MewEvent]:
        """Failed parses, failed builds and watch faults, most recent first."""
        return self.query(failed=True, limit=limit)

    def clear(self) -> int:
        """Forget every event and the dropped count.  Returns how many were held."""
        with self._lock:
            count = len(self._events)
            self._events.clear()
            self._dropped = 0
        return count

    def summary(self) -> dict[str, Any]:
        """Per-stage totals over the retained events.

        ``parse`` and each build kind report ``ok``/``failed`` counts and the
        summed milliseconds.  ``cache`` reports hits, misses and the hit rate
        (None before the first lookup).

        """
        with self._lock:
            events = list(self._events)
            dropped = self._dropped

        parse = {"ok": 0, "failed": 0, "ms": 0.0}
        builds: dict[str, dict[str, Any]] = {}
        hits = misses = rebuilds = faults = 0

        for event in events:
            if isinstance(event, ItemParsed):
                parse["failed" if not event.ok else "ok"] += 1
                parse["ms"] += event.parse_ms
            elif isinstance(event, BuildEvent):
                totals = builds.setdefault(event.kind, {"ok": 0, "failed": 0, "ms": 0.0})
                totals["failed" if not event.ok else "ok"] += 1
                totals["ms"] += event.duration_ms
            elif isinstance(event, CacheLookup):
                if event.hit:
                    hits += 1
                else:
                    misses += 1
            elif isinstance(event, RebuildTriggered):
                rebuilds += 1
            elif isinstance(event, WatchFault):
                faults += 1

        lookups = hits + misses
        return {
            "events": len(events),
            "dropped": dropped,
            "parse": parse,
            "builds": builds,
            "cache": {
                "hits": hits,
                "misses": misses,
                "hit_rate": hits / lookups if lookups else None,
            },
            "rebuilds": rebuilds,
            "watch_faults": faults,
        }
