"""Mew — composable building blocks for static sites.

Discover source files, parse them into typed items, render them in parallel
through your own functions, copy static assets, cache stylesheet builds, and
rebuild on change.  No template language, no server, no plugins: just the
pieces.

Quick start::

    import mew

    def build() -> None:
        (
            mew.glob("content/blog/*.md")
            .parse_markdown(BlogPost)
            .sort_by_key(lambda post: post.frontmatter.date, reverse=True)
            .render_each(render_post, lambda post: f"dist/blog/{post.basename}/index.html")
            .render_all(render_index, "dist/blog/index.html")
        )
        mew.copy_dir("static", "dist/static")
        mew.render_stylesheet("styles/main.scss", "dist/style.css")

    build()
    mew.watch(["content", "styles"], lambda paths: build())

Every stage attempts all of its items and reports every failure at once
through ``mew.AggregateError``.

"""

from typing import TYPE_CHECKING

from mew._errors import (
    AggregateError,
    CompileError,
    ConfigError,
    IoError,
    ItemFailure,
    MewError,
    OutputCollisionError,
    ParseError,
    RenderError,
    WatchError,
)

if TYPE_CHECKING:
    from mew.cache import CompilationCache, CompiledOutput, CompileInputs
    from mew.config import MewConfig
    from mew.config_loader import load_config
    from mew.markdown import Markdown, parse_markdown
    from mew.mirror import CopiedFile, copy_dir
    from mew.pipeline import Glob, Parsed, ParsedItem, RenderOutcome, glob, write
    from mew.stylesheet import render_stylesheet
    from mew.watcher import Debouncer, Watcher, watch

# PEP 703: Declare this module as free-threading safe
_Py_mod_gil = 0

__version__ = "0.1.0"
__all__ = [
    "AggregateError",
    "CompilationCache",
    "CompileError",
    "CompileInputs",
    "CompiledOutput",
    "ConfigError",
    "CopiedFile",
    "Debouncer",
    "Glob",
    "IoError",
    "ItemFailure",
    "Markdown",
    "MewConfig",
    "MewError",
    "OutputCollisionError",
    "ParseError",
    "Parsed",
    "ParsedItem",
    "RenderError",
    "RenderOutcome",
    "WatchError",
    "Watcher",
    "__version__",
    "copy_dir",
    "glob",
    "load_config",
    "parse_markdown",
    "render_stylesheet",
    "watch",
    "write",
]

# Public name -> defining module, imported on first access
_LAZY = {
    "CompilationCache": "mew.cache",
    "CompileInputs": "mew.cache",
    "CompiledOutput": "mew.cache",
    "MewConfig": "mew.config",
    "load_config": "mew.config_loader",
    "Markdown": "mew.markdown",
    "parse_markdown": "mew.markdown",
    "CopiedFile": "mew.mirror",
    "copy_dir": "mew.mirror",
    "Glob": "mew.pipeline",
    "Parsed": "mew.pipeline",
    "ParsedItem": "mew.pipeline",
    "RenderOutcome": "mew.pipeline",
    "glob": "mew.pipeline",
    "write": "mew.pipeline",
    "render_stylesheet": "mew.stylesheet",
    "Debouncer": "mew.watcher",
    "Watcher": "mew.watcher",
    "watch": "mew.watcher",
}


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import mew`` fast, and keeps the optional markdown dependencies
    out of the way until ``mew.parse_markdown`` is actually used.
    """
    module_name = _LAZY.get(name)
    if module_name is None:
        msg = f"module {__name__!r} has no attribute {name!r}"
        raise AttributeError(msg)

    import importlib

    return getattr(importlib.import_module(module_name), name)
