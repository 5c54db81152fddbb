"""Shared type definitions for mew."""

from collections.abc import Callable
from os import PathLike
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

# Path known to exist at discovery time
type MatchedPath = Path

# Anything accepted where an output path is expected
type OutputPath = str | PathLike[str]

# Rendered or compiled artifact content
type Content = str | bytes

# Caller-supplied parse function: raises on failure
type ParseFunc[T] = Callable[[Path], T]

# Caller-supplied per-item render and output-path functions
type RenderFunc[T] = Callable[[T], Content]
type PathFunc[T] = Callable[[T], OutputPath]

# Rebuild callback, invoked once per debounce window
type ChangeCallback = Callable[[frozenset[Path]], Any]

# Receives non-fatal errors from background threads
type ErrorCallback = Callable[[BaseException], Any]
