"""Build observability — a queryable record of what the pipeline did.

Every stage (parse, render, copy, compile, watch) can report into a
``BuildCollector``.  Events are frozen dataclasses with nanosecond
timestamps, safe for concurrent production from render worker threads.

Quick Start:
    >>> from mew.observability import BuildCollector, BuildEvent
    >>> collector = BuildCollector()
    >>> # mew.glob("content/*.md", collector=collector).parse(...)
    >>> collector.log.query(event_type=BuildEvent)
    >>> collector.log.failures()
    >>> collector.log.summary()["cache"]["hit_rate"]

"""

from mew.observability.collector import BuildCollector
from mew.observability.events import (
    BuildEvent,
    CacheLookup,
    ItemParsed,
    MewEvent,
    RebuildTriggered,
    WatchFault,
    now_ns,
)
from mew.observability.log import EventLog

__all__ = [
    "BuildCollector",
    "BuildEvent",
    "CacheLookup",
    "EventLog",
    "ItemParsed",
    "MewEvent",
    "RebuildTriggered",
    "WatchFault",
    "now_ns",
]
