"""Compilation cache — skip recompiling artifacts whose inputs did not change.

Each output target owns one JSON record in the store directory::

    {"output": "/abs/dist/style.css", "fingerprint": "<sha256>", "digest": "<sha256>"}

``fingerprint`` hashes the compiler inputs (source text, options, and the
text of anything the source can import).  ``digest`` hashes the bytes that
were written.  A lookup hits only when both still match, so a hit returns
exactly the bytes a fresh compile would produce.  Any record that cannot be
read or decoded counts as a miss.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import os
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mew._errors import CompileError
from mew.pipeline import write

if TYPE_CHECKING:
    from collections.abc import Callable

    from mew._types import Content, OutputPath
    from mew.config import MewConfig
    from mew.observability.collector import BuildCollector


def _sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@dataclass(frozen=True, slots=True)
class CompileInputs:
    """Everything that determines a compiler's output.

    Attributes:
        source: Source text of the entry file.
        options: Compiler options (must be JSON-serializable).
        dependencies: Text of files the source may import, keyed by name.
        source_path: Where the source came from.  Not part of the fingerprint.

    """

    source: str
    options: Mapping[str, Any] = field(default_factory=dict)
    dependencies: Mapping[str, str] = field(default_factory=dict)
    source_path: Path | None = None

    def fingerprint(self) -> str:
        """SHA-256 of a canonical encoding of the inputs."""
        payload = json.dumps(
            {
                "source": self.source,
                "options": dict(self.options),
                "dependencies": dict(self.dependencies),
            },
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        return _sha256(payload.encode("utf-8"))


@dataclass(frozen=True, slots=True)
class CompiledOutput:
    """Result of :meth:`CompilationCache.compile_or_cached`.

    Attributes:
        content: The artifact bytes (as written to ``output_path``).
        fingerprint: Fingerprint of the inputs.
        output_path: Where the artifact lives.
        cached: True if the compile function was skipped.

    """

    content: bytes
    fingerprint: str
    output_path: Path
    cached: bool


class CompilationCache:
    """Filesystem-backed memoization of compiled artifacts.

    Args:
        store_dir: Directory for cache records.  Created on first write.
        enabled: When False every lookup misses.  Output is identical either
            way, only slower.
        collector: Optional observability collector.

    Thread Safety:
        Lookups and record writes are serialized by one lock per instance.
        Compilation itself runs outside the lock.

    """

    __slots__ = ("_collector", "_enabled", "_lock", "_store_dir")

    def __init__(
        self,
        store_dir: OutputPath,
        *,
        enabled: bool = True,
        collector: BuildCollector | None = None,
    ) -> None:
        self._store_dir = Path(store_dir)
        self._enabled = enabled
        self._collector = collector
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: MewConfig,
        *,
        collector: BuildCollector | None = None,
    ) -> CompilationCache:
        return cls(config.cache_path, enabled=config.cache_enabled, collector=collector)

    @property
    def store_dir(self) -> Path:
        return self._store_dir

    def compile_or_cached(
        self,
        inputs: CompileInputs,
        compile_fn: Callable[[CompileInputs], Content],
        output_path: OutputPath,
    ) -> CompiledOutput:
        """Return the artifact for ``inputs``, compiling only on a miss.

        On a miss the output is written to ``output_path`` and the record for
        that path is replaced.  A record that cannot be written is dropped:
        the artifact is still returned and the next lookup misses.

        Raises:
            CompileError: If ``compile_fn`` fails.  No record is written.

        """
        target = Path(output_path)
        fingerprint = inputs.fingerprint()

        cached = self._lookup(target, fingerprint)
        if self._collector is not None:
            self._collector.record_cache_lookup(target, fingerprint, hit=cached is not None)
        if cached is not None:
            return CompiledOutput(
                content=cached,
                fingerprint=fingerprint,
                output_path=target,
                cached=True,
            )

        source = inputs.source_path or "<string>"
        t0 = time.perf_counter()
        try:
            result = compile_fn(inputs)
        except Exception as exc:
            self._record_compile(source, target, t0, ok=False)
            if isinstance(exc, CompileError):
                raise
            msg = f"Failed to compile {source}: {exc}"
            raise CompileError(msg) from exc

        content = result.encode("utf-8") if isinstance(result, str) else bytes(result)
        write(content, target)
        self._record_compile(source, target, t0, ok=True)
        self._store(target, fingerprint, _sha256(content))
        return CompiledOutput(
            content=content,
            fingerprint=fingerprint,
            output_path=target,
            cached=False,
        )

    def invalidate(self, output_path: OutputPath) -> bool:
        """Drop the record for ``output_path``.  Returns True if one existed."""
        record = self._record_path(Path(output_path))
        with self._lock:
            try:
                record.unlink()
            except FileNotFoundError:
                return False
        return True

    def clear(self) -> int:
        """Drop every record.  Returns the number removed."""
        if not self._store_dir.is_dir():
            return 0
        removed = 0
        with self._lock:
            for record in self._store_dir.glob("*.json"):
                record.unlink(missing_ok=True)
                removed += 1
        return removed

    def _record_compile(
        self, source: Path | str, target: Path, t0: float, *, ok: bool,
    ) -> None:
        if self._collector is not None:
            elapsed = (time.perf_counter() - t0) * 1000
            self._collector.record_build(
                "compile", source, target, ok=ok, duration_ms=elapsed,
            )

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _record_path(self, target: Path) -> Path:
        key = _sha256(os.path.abspath(target).encode("utf-8"))[:32]
        return self._store_dir / f"{key}.json"

    def _lookup(self, target: Path, fingerprint: str) -> bytes | None:
        if not self._enabled:
            return None
        with self._lock:
            record = self._read_record(self._record_path(target))
            if record is None or record.get("fingerprint") != fingerprint:
                return None
            try:
                content = target.read_bytes()
            except OSError:
                return None
            if _sha256(content) != record.get("digest"):
                return None
            return content

    def _store(self, target: Path, fingerprint: str, digest: str) -> None:
        record_path = self._record_path(target)
        payload = json.dumps(
            {
                "output": os.path.abspath(target),
                "fingerprint": fingerprint,
                "digest": digest,
            },
            indent=2,
            sort_keys=True,
        )
        tmp = record_path.with_name(f"{record_path.name}.{threading.get_ident()}.tmp")
        with self._lock:
            try:
                self._store_dir.mkdir(parents=True, exist_ok=True)
                tmp.write_text(payload + "\n", encoding="utf-8")
                os.replace(tmp, record_path)
            except OSError:
                with contextlib.suppress(OSError):
                    tmp.unlink(missing_ok=True)

    @staticmethod
    def _read_record(path: Path) -> dict[str, Any] | None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        if not isinstance(data, dict):
            return None
        return data
