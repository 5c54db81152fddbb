"""Stylesheet rendering — compile SCSS/Sass through the compilation cache.

Every stylesheet under the entry file's directory, subdirectories included, is
available for ``@import``/``@use`` and is part of the cache fingerprint, so
editing a partial recompiles.

The default compiler is libsass (the ``sass`` extra).  Pass ``compile_fn`` to
use any other compiler.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from mew._errors import CompileError
from mew.cache import CompileInputs
from mew.pipeline import write

if TYPE_CHECKING:
    from collections.abc import Callable

    from mew._types import Content, OutputPath
    from mew.cache import CompilationCache

type OutputStyle = Literal["nested", "expanded", "compact", "compressed"]

_STYLESHEET_SUFFIXES = frozenset({".scss", ".sass", ".css"})


def render_stylesheet(
    source: OutputPath,
    dest: OutputPath,
    *,
    cache: CompilationCache | None = None,
    compile_fn: Callable[[CompileInputs], Content] | None = None,
    output_style: OutputStyle = "expanded",
) -> str:
    """Compile ``source`` to ``dest``.

    Returns:
        The first 16 hex characters of the CSS's SHA-256, for cache busting
        (``style.css?v=<hash>``).

    Raises:
        CompileError: If the source cannot be read or fails to compile.

    """
    inputs = stylesheet_inputs(source, output_style=output_style)
    compile_fn = compile_fn or compile_with_libsass

    if cache is not None:
        content = cache.compile_or_cached(inputs, compile_fn, dest).content
    else:
        try:
            result = compile_fn(inputs)
        except CompileError:
            raise
        except Exception as exc:
            msg = f"Failed to compile {source}: {exc}"
            raise CompileError(msg) from exc
        content = result.encode("utf-8") if isinstance(result, str) else bytes(result)
        write(content, dest)

    return hashlib.sha256(content).hexdigest()[:16]


def stylesheet_inputs(
    source: OutputPath,
    *,
    output_style: OutputStyle = "expanded",
) -> CompileInputs:
    """Collect the entry file, every stylesheet under its directory, and the options.

    Dependencies are keyed by their POSIX path relative to the entry file's
    directory, which is also the include path, so ``@import "partials/vars"``
    is covered by the fingerprint.
    """
    path = Path(source)
    base = path.parent
    try:
        text = path.read_text(encoding="utf-8")
        dependencies = {
            candidate.relative_to(base).as_posix(): candidate.read_text(encoding="utf-8")
            for candidate in sorted(base.rglob("*"))
            if candidate != path
            and candidate.suffix in _STYLESHEET_SUFFIXES
            and candidate.is_file()
        }
    except OSError as exc:
        msg = f"Cannot read stylesheet {path}: {exc}"
        raise CompileError(msg) from exc

    return CompileInputs(
        source=text,
        options={
            "output_style": output_style,
            "indented": path.suffix == ".sass",
            "include_path": str(base.resolve()),
        },
        dependencies=dependencies,
        source_path=path,
    )


def compile_with_libsass(inputs: CompileInputs) -> str:
    """Compile with libsass, resolving imports next to the source file."""
    try:
        import sass
    except ImportError as exc:
        msg = "libsass is not installed; install mew[sass] or pass compile_fn"
        raise CompileError(msg) from exc

    try:
        return sass.compile(
            string=inputs.source,
            include_paths=[inputs.options["include_path"]],
            output_style=inputs.options["output_style"],
            indented=inputs.options["indented"],
        )
    except sass.CompileError as exc:
        msg = f"Failed to compile {inputs.source_path or '<string>'}: {exc}"
        raise CompileError(msg) from exc
