"""Mew error hierarchy.

All mew-specific errors inherit from MewError for easy catching.

Two families matter to callers:

- Structural errors (``IoError``, ``WatchError``) abort a stage outright.
- ``AggregateError`` collects independent per-item failures (parse, render,
  copy) after every sibling item has been attempted.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from mew.pipeline import Parsed, RenderOutcome


class MewError(Exception):
    """Base error for all mew operations."""


class ConfigError(MewError):
    """Invalid or missing configuration."""


class IoError(MewError):
    """Filesystem access failure that prevents a stage from running at all."""


class ParseError(MewError):
    """A source file could not be parsed into an item."""


class RenderError(MewError):
    """An item or collection could not be rendered or written."""


class OutputCollisionError(RenderError):
    """Two items resolved to the same output path."""


class CompileError(MewError):
    """A stylesheet (or other compiled artifact) failed to compile."""


class WatchError(MewError):
    """Filesystem notifier failure."""


@dataclass(frozen=True, slots=True)
class ItemFailure:
    """One per-item failure, attributed to the path or key that caused it.

    Attributes:
        key: Source path of the failing item, in every stage.  A render
            failure's output path, when it got that far, is on the
            matching ``RenderOutcome``.
        error: The underlying exception.

    """

    key: Path | str
    error: BaseException

    def __str__(self) -> str:
        return f"{self.key}: {self.error}"


type Stage = Literal["parse", "render", "copy"]


class AggregateError(MewError):
    """Every per-item failure of one stage, in input order.

    Attributes:
        stage: Which stage failed.
        failures: All failures, never just the first.
        partial: The collection of items that did succeed (parse stage).
        outcomes: Every render outcome, successes included (render stage).

    """

    def __init__(
        self,
        stage: Stage,
        failures: tuple[ItemFailure, ...],
        *,
        partial: Parsed[Any] | None = None,
        outcomes: tuple[RenderOutcome, ...] = (),
    ) -> None:
        self.stage = stage
        self.failures = failures
        self.partial = partial
        self.outcomes = outcomes
        lines = [f"{len(failures)} {stage} failure(s):"]
        lines.extend(f"  {failure}" for failure in failures)
        super().__init__("\n".join(lines))

    @property
    def keys(self) -> tuple[Path | str, ...]:
        """The failing paths/keys, in input order."""
        return tuple(f.key for f in self.failures)
