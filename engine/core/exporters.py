"""
Markstyle Core: Export / Import Formats

Three interchange formats:

    project file (JSON)   {"version": "1.2.0", "markdownContent": ..., "theme": {"styles": ...}}
    Markdown + frontmatter
                          ---
                          <YAML style map>
                          ---

                          <markdown>
    standalone HTML       complete document, stylesheet inlined (export only)

Imports never partially apply: they either return a complete document or
fail (project file) / fall back to plain Markdown (frontmatter).
"""

from __future__ import annotations

import html
import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import yaml

from engine.core.css import WRAPPER_CLASS, generate_css
from engine.core.render import TABLE_SCROLL_CLASS, render_markdown
from engine.core.styles import StyleMap, UnknownElementKey
from engine.core.types import DEFAULT_REFERENCE_WIDTH, GLOBAL_KEY, PROJECT_FILE_VERSION, STYLE_KEY_ATTR

logger = logging.getLogger(__name__)

FORMAT_PROJECT = "json"
FORMAT_MARKDOWN = "md"
FORMAT_HTML = "html"
EXPORT_FORMATS = (FORMAT_PROJECT, FORMAT_MARKDOWN, FORMAT_HTML)

MEDIA_TYPES = {
    FORMAT_PROJECT: "application/json",
    FORMAT_MARKDOWN: "text/markdown; charset=utf-8",
    FORMAT_HTML: "text/html; charset=utf-8",
}

DEFAULT_FILENAMES = {
    FORMAT_PROJECT: "markdown-project.json",
    FORMAT_MARKDOWN: "project.md",
    FORMAT_HTML: "export.html",
}

MARKDOWN_SUFFIXES = (".md", ".markdown")

_FRONTMATTER_RE = re.compile(r"^---\r?\n(.+?)\r?\n---\r?\n(.*)", re.DOTALL)


class InvalidProjectFile(ValueError):
    """An imported project file does not have the expected shape."""
    pass


@dataclass
class ImportedDocument:
    """Result of an import. `styles` is None when the file carried none."""

    markdown: str
    styles: StyleMap | None
    format: str


def _style_map(data: Any) -> StyleMap:
    """Build a StyleMap from untrusted data. Raises ValueError/TypeError."""
    if not isinstance(data, Mapping):
        raise TypeError("styles must be a mapping")
    for key, properties in data.items():
        if not isinstance(properties, Mapping):
            raise TypeError(f"property set for {key!r} must be a mapping")
        for name, value in properties.items():
            if isinstance(value, bool) or not isinstance(value, (str, int, float)):
                raise TypeError(f"{key}.{name} must be a string or a number")
    return StyleMap(data)


# ---------------------------------------------------------------------------
# Project file
# ---------------------------------------------------------------------------


def export_project_file(markdown: str, styles: StyleMap) -> str:
    project = {
        "version": PROJECT_FILE_VERSION,
        "markdownContent": markdown,
        "theme": {"styles": styles.to_dict()},
    }
    return json.dumps(project, indent=2, ensure_ascii=False)


def import_project_file(text: str | bytes) -> ImportedDocument:
    """
    Parse a project file. Raises InvalidProjectFile when it is not JSON or
    lacks version / markdownContent / theme.styles.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidProjectFile(f"Project file is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise InvalidProjectFile("Project file must be a JSON object")
    if not data.get("version"):
        raise InvalidProjectFile("Project file has no version")
    markdown = data.get("markdownContent")
    if not isinstance(markdown, str):
        raise InvalidProjectFile("Project file has no markdownContent")
    theme = data.get("theme")
    if not isinstance(theme, dict) or "styles" not in theme:
        raise InvalidProjectFile("Project file has no theme.styles")

    try:
        styles = _style_map(theme["styles"])
    except (UnknownElementKey, TypeError) as e:
        raise InvalidProjectFile(f"Project file styles are invalid: {e}") from e

    if data["version"] != PROJECT_FILE_VERSION:
        logger.info("import: project file version %s, expected %s", data["version"], PROJECT_FILE_VERSION)
    return ImportedDocument(markdown=markdown, styles=styles, format=FORMAT_PROJECT)


# ---------------------------------------------------------------------------
# Markdown with frontmatter
# ---------------------------------------------------------------------------


def export_markdown(markdown: str, styles: StyleMap) -> str:
    front = yaml.safe_dump(styles.to_dict(), sort_keys=False, allow_unicode=True)
    return f"---\n{front}---\n\n{markdown}"


def import_markdown(text: str) -> ImportedDocument:
    """
    Split YAML frontmatter from the body. No frontmatter, or frontmatter that
    is not a valid style map, imports the whole text as plain Markdown.
    """
    match = _FRONTMATTER_RE.match(text)
    if not match:
        return ImportedDocument(markdown=text, styles=None, format=FORMAT_MARKDOWN)

    front, body = match.group(1), match.group(2)
    try:
        styles = _style_map(yaml.safe_load(front))
    except (yaml.YAMLError, UnknownElementKey, TypeError) as e:
        logger.info("import: frontmatter ignored: %s", e)
        return ImportedDocument(markdown=text, styles=None, format=FORMAT_MARKDOWN)

    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]
    return ImportedDocument(markdown=body, styles=styles, format=FORMAT_MARKDOWN)


def import_file(text: str, filename: str | None = None) -> ImportedDocument:
    """Dispatch on file name: Markdown suffixes get frontmatter import, anything else is a project file."""
    if filename and filename.lower().endswith(MARKDOWN_SUFFIXES):
        return import_markdown(text)
    return import_project_file(text)


# ---------------------------------------------------------------------------
# Standalone HTML
# ---------------------------------------------------------------------------

BASE_CSS = f"""\
body {{ margin: 0; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, 'Noto Sans', sans-serif; }}
.{TABLE_SCROLL_CLASS} {{ overflow-x: auto; width: 100%; }}
img {{ max-width: 100%; }}"""


def export_html(
    markdown: str,
    styles: StyleMap,
    relative: bool = False,
    reference_width: int = DEFAULT_REFERENCE_WIDTH,
    title: str = "Export",
) -> str:
    content = render_markdown(markdown)
    css = generate_css(styles, relative=relative, reference_width=reference_width)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{html.escape(title)}</title>
<style>
{BASE_CSS}
{css}
</style>
</head>
<body>
<div id="content" class="{WRAPPER_CLASS}" {STYLE_KEY_ATTR}="{GLOBAL_KEY}">
{content}</div>
</body>
</html>
"""


def export_document(fmt: str, markdown: str, styles: StyleMap, **options: Any) -> str:
    """Render one of EXPORT_FORMATS. Raises ValueError for anything else."""
    if fmt == FORMAT_PROJECT:
        return export_project_file(markdown, styles)
    if fmt == FORMAT_MARKDOWN:
        return export_markdown(markdown, styles)
    if fmt == FORMAT_HTML:
        return export_html(markdown, styles, **options)
    raise ValueError(f"Unknown export format: {fmt!r}")
