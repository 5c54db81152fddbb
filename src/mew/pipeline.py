"""Build pipeline — glob, parse, sort, render.

The chain mirrors how a site section is built::

    mew.glob("content/blog/*.md")
        .parse(parse_post)
        .sort_by_key(lambda post: post.date, reverse=True)
        .render_each(render_post, lambda post: f"dist/blog/{post.slug}/index.html")
        .render_all(render_index, "dist/blog/index.html")

Per-item failures never abort siblings.  Each stage attempts every item,
then raises one ``AggregateError`` listing every failure in input order.
"""

from __future__ import annotations

import functools
import glob as _glob
import os
import re
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mew._errors import (
    AggregateError,
    IoError,
    ItemFailure,
    OutputCollisionError,
    RenderError,
)
from mew.config import default_config

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from mew._types import Content, OutputPath, ParseFunc, PathFunc, RenderFunc
    from mew.config import MewConfig
    from mew.markdown import Markdown
    from mew.observability.collector import BuildCollector

_MAGIC = re.compile(r"[*?[]")


def write(contents: Content, to: OutputPath) -> int:
    """Write contents to a file, creating parent directories as needed.

    Bytes are written verbatim; anything else is converted with ``str()``
    and encoded as UTF-8.  Returns the number of bytes written.

    """
    path = Path(to)
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(contents, (bytes, bytearray, memoryview)):
        data = bytes(contents)
    else:
        data = str(contents).encode("utf-8")
    path.write_bytes(data)
    return len(data)


# ---------------------------------------------------------------------------
# Path matching
# ---------------------------------------------------------------------------


def glob(
    pattern: str | os.PathLike[str],
    *,
    config: MewConfig | None = None,
    collector: BuildCollector | None = None,
) -> Glob:
    """Get the paths that match the given glob pattern.

    Supports ``*``, ``?``, ``[...]`` and recursive ``**``.  Hidden files are
    matched like any other file.  Results are deduplicated and sorted
    lexically so downstream processing is deterministic.

    Raises:
        IoError: If the pattern's base directory is missing or unreadable.

    """
    pattern = os.fspath(pattern)
    base = _base_dir(pattern)
    if not base.is_dir():
        msg = f"Glob base directory does not exist: {base}"
        raise IoError(msg)
    if not os.access(base, os.R_OK | os.X_OK):
        msg = f"Glob base directory is not readable: {base}"
        raise IoError(msg)

    matches = _glob.glob(pattern, recursive=True, include_hidden=True)
    paths = sorted({Path(m) for m in matches})
    return Glob(paths, config=config, collector=collector)


def _base_dir(pattern: str) -> Path:
    """Longest leading directory of ``pattern`` free of glob magic."""
    parts = Path(pattern).parts
    base: list[str] = []
    for part in parts[:-1]:
        if _MAGIC.search(part):
            break
        base.append(part)
    return Path(*base) if base else Path(".")


class Glob:
    """A list of paths, probably created by :func:`glob`."""

    __slots__ = ("_collector", "_config", "_paths")

    def __init__(
        self,
        paths: Iterable[Path],
        *,
        config: MewConfig | None = None,
        collector: BuildCollector | None = None,
    ) -> None:
        self._paths = tuple(paths)
        self._config = config or default_config()
        self._collector = collector

    @property
    def paths(self) -> tuple[Path, ...]:
        """Matched paths in lexical order."""
        return self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[Path]:
        return iter(self._paths)

    def __repr__(self) -> str:
        return f"Glob({len(self._paths)} paths)"

    def parse[T](self, parse_fn: ParseFunc[T], *, workers: int | None = None) -> Parsed[T]:
        """Parse every path with ``parse_fn``.

        Args:
            parse_fn: Called with each path; raises to signal a failure.
            workers: ``None`` or 1 parses sequentially, 0 uses one thread per
                CPU, anything larger is the thread count.

        Raises:
            AggregateError: Listing every failing path.  ``partial`` holds the
                items that did parse.

        """
        parsed, failures = self.parse_partial(parse_fn, workers=workers)
        if failures:
            raise AggregateError("parse", failures, partial=parsed)
        return parsed

    def parse_partial[T](
        self,
        parse_fn: ParseFunc[T],
        *,
        workers: int | None = None,
    ) -> tuple[Parsed[T], tuple[ItemFailure, ...]]:
        """Like :meth:`parse`, but return failures instead of raising."""
        parse_one = functools.partial(self._parse_one, parse_fn)
        if workers is None or workers == 1:
            results = [parse_one(path) for path in self._paths]
        else:
            count = workers or self._config.worker_count
            with ThreadPoolExecutor(max_workers=count, thread_name_prefix="mew-parse") as pool:
                # map() yields in submission order, so attribution is preserved
                results = list(pool.map(parse_one, self._paths))

        items: list[ParsedItem[T]] = []
        failures: list[ItemFailure] = []
        for path, value, error in results:
            if error is not None:
                failures.append(ItemFailure(key=path, error=error))
            else:
                items.append(ParsedItem(value=value, source=path))

        parsed = Parsed(items, config=self._config, collector=self._collector)
        return parsed, tuple(failures)

    def parse_markdown(
        self,
        model: Callable[..., Any] | None = None,
        *,
        workers: int | None = None,
    ) -> Parsed[Markdown]:
        """Parse the paths as Markdown files with YAML frontmatter."""
        from mew.markdown import parse_markdown

        return self.parse(functools.partial(parse_markdown, model=model), workers=workers)

    def _parse_one[T](
        self,
        parse_fn: ParseFunc[T],
        path: Path,
    ) -> tuple[Path, T | None, Exception | None]:
        t0 = time.perf_counter()
        try:
            value = parse_fn(path)
        except Exception as exc:
            self._record_parse(path, ok=False, t0=t0)
            return path, None, exc
        self._record_parse(path, ok=True, t0=t0)
        return path, value, None

    def _record_parse(self, path: Path, *, ok: bool, t0: float) -> None:
        if self._collector is not None:
            elapsed = (time.perf_counter() - t0) * 1000
            self._collector.record_parse(path, ok=ok, parse_ms=elapsed)


# ---------------------------------------------------------------------------
# Item collection
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParsedItem[T]:
    """A parsed value and the file it came from.

    Attributes:
        value: Whatever the parse function returned.
        source: The path that was parsed.

    """

    value: T
    source: Path


@dataclass(frozen=True, slots=True)
class RenderOutcome:
    """Result of rendering one item.

    Attributes:
        source: Path of the item's source file.
        output_path: Where the item renders to (None if ``path_fn`` failed).
        error: The failure, or None on success.
        size_bytes: Bytes written.
        duration_ms: Time taken to render and write.

    """

    source: Path
    output_path: Path | None
    error: BaseException | None = None
    size_bytes: int = 0
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class Parsed[T]:
    """Parsed items, ready to be sorted and rendered.

    Iterating yields the parsed values; :attr:`items` exposes the
    :class:`ParsedItem` wrappers with their source paths.  Rendering only
    reads the collection, sorting reorders it in place.

    """

    __slots__ = ("_collector", "_config", "_items")

    def __init__(
        self,
        items: Iterable[ParsedItem[T]] = (),
        *,
        config: MewConfig | None = None,
        collector: BuildCollector | None = None,
    ) -> None:
        self._items = list(items)
        self._config = config or default_config()
        self._collector = collector

    @property
    def items(self) -> tuple[ParsedItem[T], ...]:
        return tuple(self._items)

    def values(self) -> list[T]:
        """The parsed values, in collection order."""
        return [item.value for item in self._items]

    def first(self) -> T | None:
        """The first value, or None if empty."""
        return self._items[0].value if self._items else None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return (item.value for item in self._items)

    def __getitem__(self, index: int) -> T:
        return self._items[index].value

    def __repr__(self) -> str:
        return f"Parsed({len(self._items)} items)"

    def sort_by_key(self, key: Callable[[T], Any], *, reverse: bool = False) -> Parsed[T]:
        """Sort the items by ``key``.  Stable in both directions."""
        self._items.sort(key=lambda item: key(item.value), reverse=reverse)
        return self

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render_each(
        self,
        render_fn: RenderFunc[T],
        path_fn: PathFunc[T],
        *,
        workers: int | None = None,
    ) -> Parsed[T]:
        """Render every item to its own file, in parallel.

        Args:
            render_fn: Returns the rendered content for one value.
            path_fn: Returns the output path for one value.
            workers: Thread pool size (default: the configured worker count).

        Raises:
            AggregateError: After all items were attempted, if any failed.
                ``outcomes`` holds every outcome in collection order.

        """
        outcomes = self.render_outcomes(render_fn, path_fn, workers=workers)
        failures = tuple(
            ItemFailure(key=o.source, error=o.error)
            for o in outcomes
            if o.error is not None
        )
        if failures:
            raise AggregateError("render", failures, outcomes=outcomes)
        return self

    def render_outcomes(
        self,
        render_fn: RenderFunc[T],
        path_fn: PathFunc[T],
        *,
        workers: int | None = None,
    ) -> tuple[RenderOutcome, ...]:
        """Render every item and return one outcome per item, without raising.

        Output paths are resolved before any rendering starts.  An item whose
        path was already claimed by an earlier item is a failure and is not
        rendered.

        """
        outcomes: list[RenderOutcome | None] = [None] * len(self._items)
        jobs: list[tuple[int, ParsedItem[T], Path]] = []
        claimed: dict[Path, Path] = {}

        for index, item in enumerate(self._items):
            try:
                target = Path(path_fn(item.value))
            except Exception as exc:
                outcomes[index] = RenderOutcome(source=item.source, output_path=None, error=exc)
                continue

            normalized = Path(os.path.abspath(target))
            owner = claimed.get(normalized)
            if owner is not None:
                msg = f"Output path {target} is already claimed by {owner}"
                outcomes[index] = RenderOutcome(
                    source=item.source,
                    output_path=target,
                    error=OutputCollisionError(msg),
                )
                continue
            claimed[normalized] = item.source
            jobs.append((index, item, target))

        if jobs:
            count = min(workers or self._config.worker_count, len(jobs))
            with ThreadPoolExecutor(max_workers=count, thread_name_prefix="mew-render") as pool:
                futures = [
                    (index, pool.submit(self._render_one, render_fn, item, target))
                    for index, item, target in jobs
                ]
                # Collected by index, not completion order
                for index, future in futures:
                    outcomes[index] = future.result()

        return tuple(o for o in outcomes if o is not None)

    def render_all(
        self,
        render_fn: Callable[[Parsed[T]], Content],
        output_path: OutputPath,
    ) -> Parsed[T]:
        """Render the whole collection into a single file.

        Raises:
            RenderError: If rendering or writing fails, chained from the cause.

        """
        t0 = time.perf_counter()
        target = Path(output_path)
        try:
            write(render_fn(self), target)
        except Exception as exc:
            self._record_render("render_all", "*", target, ok=False, t0=t0)
            msg = f"Failed to render {target}: {exc}"
            raise RenderError(msg) from exc
        self._record_render("render_all", "*", target, ok=True, t0=t0)
        return self

    def _render_one(
        self,
        render_fn: RenderFunc[T],
        item: ParsedItem[T],
        target: Path,
    ) -> RenderOutcome:
        t0 = time.perf_counter()
        try:
            size = write(render_fn(item.value), target)
        except Exception as exc:
            self._record_render("render", item.source, target, ok=False, t0=t0)
            return RenderOutcome(source=item.source, output_path=target, error=exc)

        elapsed = self._record_render("render", item.source, target, ok=True, t0=t0)
        return RenderOutcome(
            source=item.source,
            output_path=target,
            size_bytes=size,
            duration_ms=elapsed,
        )

    def _record_render(
        self,
        kind: str,
        source: Path | str,
        target: Path,
        *,
        ok: bool,
        t0: float,
    ) -> float:
        elapsed = (time.perf_counter() - t0) * 1000
        if self._collector is not None:
            self._collector.record_build(kind, source, target, ok=ok, duration_ms=elapsed)
        return elapsed
