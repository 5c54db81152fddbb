"""Event model for build observability.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.
    Render workers produce them concurrently.

"""

import time
from dataclasses import dataclass
from typing import Literal


# ---------------------------------------------------------------------------
# Pipeline events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ItemParsed:
    """A source file went through the caller's parse function.

    Attributes:
        path: Source file path.
        ok: False if the parse function raised.
        parse_ms: Time spent parsing in milliseconds.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    path: str
    ok: bool
    parse_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class BuildEvent:
    """An output-producing action occurred.

    Attributes:
        kind: The type of build action.
        source: Source file path (or description).
        target: Output file path.
        ok: False if the action failed.
        duration_ms: Time taken in milliseconds.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    kind: Literal["render", "render_all", "copy", "compile"]
    source: str
    target: str
    ok: bool
    duration_ms: float
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Cache events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CacheLookup:
    """A compilation cache lookup.

    Attributes:
        target: Output path the lookup was for.
        fingerprint: Fingerprint of the compiler inputs.
        hit: True if the cached artifact was reused.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    target: str
    fingerprint: str
    hit: bool
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Watch events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RebuildTriggered:
    """The debouncer fired the rebuild callback.

    Attributes:
        paths: Number of distinct changed paths in the window.
        raw_events: Number of raw notifier batches coalesced into this trigger.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    paths: int
    raw_events: int
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class WatchFault:
    """A non-fatal (or final) notifier error.

    Attributes:
        source: Watched root involved, if known.
        message: Error description.
        fatal: True if the watcher stopped because of it.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    source: str
    message: str
    fatal: bool
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

type MewEvent = (
    ItemParsed
    | BuildEvent
    | CacheLookup
    | RebuildTriggered
    | WatchFault
)


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
