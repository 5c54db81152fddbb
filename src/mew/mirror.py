"""Directory mirror — copy static passthrough assets into the output tree.

Copies every file and directory under a source root into a destination root,
preserving relative structure and overwriting whatever is already there.
"""

from __future__ import annotations

import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from mew._errors import AggregateError, IoError, ItemFailure

if TYPE_CHECKING:
    from mew._types import OutputPath
    from mew.observability.collector import BuildCollector


@dataclass(frozen=True, slots=True)
class CopiedFile:
    """Record of a single file copied by :func:`copy_dir`.

    Attributes:
        source_path: Path of the original file.
        output_path: Path of the copy.
        size_bytes: Size of the copy in bytes.
        duration_ms: Time taken to copy this file.

    """

    source_path: Path
    output_path: Path
    size_bytes: int
    duration_ms: float


def copy_dir(
    source: OutputPath,
    dest: OutputPath,
    *,
    collector: BuildCollector | None = None,
) -> tuple[CopiedFile, ...]:
    """Recursively copy ``source`` into ``dest``.

    Hidden files are copied too.  Empty directories are recreated.  A failing
    entry does not stop the rest of the tree from being copied.

    Args:
        source: Directory to copy from.
        dest: Directory to copy into.  Created if absent.
        collector: Optional observability collector.

    Returns:
        One :class:`CopiedFile` per copied file, in lexical source order.

    Raises:
        IoError: If ``source`` is not a directory.
        AggregateError: After every entry was attempted, if any failed.

    """
    src_root = Path(source)
    dest_root = Path(dest)
    if not src_root.is_dir():
        msg = f"Cannot mirror {src_root}: not a directory"
        raise IoError(msg)

    try:
        dest_root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        msg = f"Cannot create mirror destination {dest_root}: {exc}"
        raise IoError(msg) from exc

    results: list[CopiedFile] = []
    failures: list[ItemFailure] = []

    for src_entry in sorted(src_root.rglob("*")):
        relative = src_entry.relative_to(src_root)
        dest_entry = dest_root / relative
        t0 = time.perf_counter()

        try:
            if src_entry.is_dir():
                dest_entry.mkdir(parents=True, exist_ok=True)
                continue
            dest_entry.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src_entry, dest_entry)
            size = dest_entry.stat().st_size
        except OSError as exc:
            failures.append(ItemFailure(key=src_entry, error=exc))
            if collector is not None:
                collector.record_build("copy", src_entry, dest_entry, ok=False)
            continue

        elapsed = (time.perf_counter() - t0) * 1000
        if collector is not None:
            collector.record_build("copy", src_entry, dest_entry, duration_ms=elapsed)

        results.append(CopiedFile(
            source_path=src_entry,
            output_path=dest_entry,
            size_bytes=size,
            duration_ms=elapsed,
        ))

    if failures:
        raise AggregateError("copy", tuple(failures))
    return tuple(results)
