"""Markdown parse adapter — frontmatter plus highlighted HTML.

A ready-made parse function for :meth:`mew.pipeline.Glob.parse`.  Copy it
into your project and adapt it if you need different extensions.

Requires the ``markdown`` extra (Markdown, Pygments, PyYAML).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import markdown as _markdown
import yaml

from mew._errors import ParseError

if TYPE_CHECKING:
    from collections.abc import Callable

_FRONTMATTER = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*\r?$\n?",
    re.DOTALL | re.MULTILINE,
)

_EXTENSIONS = ["extra", "codehilite", "toc", "sane_lists", "smarty"]
_EXTENSION_CONFIGS: dict[str, dict[str, Any]] = {
    "codehilite": {"guess_lang": False, "css_class": "highlight"},
}


class MissingFrontmatterError(ParseError):
    """The file does not start with a ``---`` frontmatter block."""


class FrontmatterError(ParseError):
    """The frontmatter is not valid YAML or does not fit the model."""


@dataclass(frozen=True, slots=True)
class Markdown:
    """A parsed markdown file.

    Attributes:
        frontmatter: The frontmatter mapping, or the model built from it.
        basename: File name without extension (handy for output paths).
        markdown: The body, without frontmatter.
        html: The body rendered to HTML.
        source: The parsed file.

    """

    frontmatter: Any
    basename: str
    markdown: str
    html: str
    source: Path


def parse_markdown(
    path: Path,
    model: Callable[..., Any] | None = None,
) -> Markdown:
    """Parse a markdown file with YAML frontmatter.

    Args:
        path: File to parse.
        model: Called with the frontmatter keys as keyword arguments, e.g. a
            dataclass.  Without it the raw mapping is kept.

    Raises:
        MissingFrontmatterError: No frontmatter block.
        FrontmatterError: Invalid YAML, not a mapping, or rejected by model.
        OSError: The file could not be read.

    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")

    match = _FRONTMATTER.match(text)
    if match is None:
        msg = f"Missing frontmatter in {path}"
        raise MissingFrontmatterError(msg)

    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        msg = f"Invalid frontmatter in {path}: {exc}"
        raise FrontmatterError(msg) from exc
    if not isinstance(data, dict):
        msg = f"Frontmatter in {path} must be a mapping, got {type(data).__name__}"
        raise FrontmatterError(msg)

    frontmatter: Any = data
    if model is not None:
        try:
            frontmatter = model(**data)
        except (TypeError, ValueError) as exc:
            msg = f"Failed to load frontmatter for {path}: {exc}"
            raise FrontmatterError(msg) from exc

    body = text[match.end():]
    html = _markdown.markdown(
        body,
        extensions=_EXTENSIONS,
        extension_configs=_EXTENSION_CONFIGS,
    )

    return Markdown(
        frontmatter=frontmatter,
        basename=path.stem,
        markdown=body,
        html=html,
        source=path,
    )
