"""Tests for mew.stylesheet — cached stylesheet rendering."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from mew._errors import CompileError
from mew.cache import CompilationCache, CompileInputs
from mew.stylesheet import render_stylesheet, stylesheet_inputs


@pytest.fixture
def styles(tmp_path: Path) -> Path:
    styles = tmp_path / "styles"
    styles.mkdir()
    (styles / "main.scss").write_text('@import "vars";\nbody { color: $fg; }\n')
    (styles / "_vars.scss").write_text("$fg: #333;\n")
    (styles / "notes.txt").write_text("not a stylesheet")
    return styles


class FakeCompiler:
    """Inlines the variables partial; enough to exercise the plumbing."""

    def __init__(self, partial: str = "_vars.scss") -> None:
        self.calls = 0
        self._partial = partial

    def __call__(self, inputs: CompileInputs) -> str:
        self.calls += 1
        color = inputs.dependencies[self._partial].split(":")[1].strip().rstrip(";")
        return f"body {{ color: {color}; }}\n"


class TestStylesheetInputs:
    """stylesheet_inputs — what goes into the fingerprint."""

    def test_collects_sibling_stylesheets(self, styles: Path) -> None:
        inputs = stylesheet_inputs(styles / "main.scss")

        assert set(inputs.dependencies) == {"_vars.scss"}
        assert inputs.options["output_style"] == "expanded"
        assert inputs.options["indented"] is False
        assert inputs.source_path == styles / "main.scss"

    def test_collects_nested_partials_by_relative_path(self, styles: Path) -> None:
        (styles / "partials" / "deep").mkdir(parents=True)
        (styles / "partials" / "_mixins.scss").write_text("@mixin m {}\n")
        (styles / "partials" / "deep" / "_grid.sass").write_text("$cols: 12\n")
        (styles / "partials" / "readme.md").write_text("# not a stylesheet")

        inputs = stylesheet_inputs(styles / "main.scss")

        assert set(inputs.dependencies) == {
            "_vars.scss",
            "partials/_mixins.scss",
            "partials/deep/_grid.sass",
        }

    def test_missing_source(self, tmp_path: Path) -> None:
        with pytest.raises(CompileError, match="Cannot read"):
            stylesheet_inputs(tmp_path / "missing.scss")


class TestRenderStylesheet:
    """render_stylesheet — compile, write, return a cache-busting hash."""

    def test_writes_css_and_returns_hash(self, tmp_path: Path, styles: Path) -> None:
        dest = tmp_path / "dist" / "style.css"

        digest = render_stylesheet(styles / "main.scss", dest, compile_fn=FakeCompiler())

        css = dest.read_bytes()
        assert css == b"body { color: #333; }\n"
        assert digest == hashlib.sha256(css).hexdigest()[:16]

    def test_cache_skips_unchanged(self, tmp_path: Path, styles: Path) -> None:
        cache = CompilationCache(tmp_path / "cache")
        compiler = FakeCompiler()
        dest = tmp_path / "style.css"

        first = render_stylesheet(styles / "main.scss", dest, cache=cache, compile_fn=compiler)
        second = render_stylesheet(styles / "main.scss", dest, cache=cache, compile_fn=compiler)

        assert compiler.calls == 1
        assert first == second

    def test_partial_change_recompiles(self, tmp_path: Path, styles: Path) -> None:
        cache = CompilationCache(tmp_path / "cache")
        compiler = FakeCompiler()
        dest = tmp_path / "style.css"

        render_stylesheet(styles / "main.scss", dest, cache=cache, compile_fn=compiler)
        (styles / "_vars.scss").write_text("$fg: #000;\n")
        render_stylesheet(styles / "main.scss", dest, cache=cache, compile_fn=compiler)

        assert compiler.calls == 2
        assert "#000" in dest.read_text()

    def test_nested_partial_change_recompiles(self, tmp_path: Path, styles: Path) -> None:
        (styles / "partials").mkdir()
        (styles / "partials" / "_theme.scss").write_text("$fg: #333;\n")
        (styles / "site.scss").write_text('@import "partials/theme";\nbody { color: $fg; }\n')

        compiler = FakeCompiler(partial="partials/_theme.scss")
        cache = CompilationCache(tmp_path / "cache")
        dest = tmp_path / "site.css"

        render_stylesheet(styles / "site.scss", dest, cache=cache, compile_fn=compiler)
        (styles / "partials" / "_theme.scss").write_text("$fg: #000;\n")
        render_stylesheet(styles / "site.scss", dest, cache=cache, compile_fn=compiler)

        assert compiler.calls == 2
        assert dest.read_text() == "body { color: #000; }\n"

    def test_compile_failure_without_cache(self, tmp_path: Path, styles: Path) -> None:
        def broken(inputs: CompileInputs) -> str:
            msg = "syntax error"
            raise ValueError(msg)

        with pytest.raises(CompileError, match="syntax error"):
            render_stylesheet(styles / "main.scss", tmp_path / "s.css", compile_fn=broken)


class TestLibsass:
    """The default compiler, when libsass is installed."""

    def test_compiles_with_imports(self, tmp_path: Path, styles: Path) -> None:
        pytest.importorskip("sass")
        dest = tmp_path / "style.css"

        render_stylesheet(styles / "main.scss", dest, output_style="compressed")

        assert dest.read_text().strip() == "body{color:#333}"

    def test_syntax_error(self, tmp_path: Path) -> None:
        pytest.importorskip("sass")
        source = tmp_path / "bad.scss"
        source.write_text("body { color: $undefined; }\n")

        with pytest.raises(CompileError):
            render_stylesheet(source, tmp_path / "bad.css")
