"""
Markstyle Core: Style Model

A StyleMap maps every ElementKey to a PropertySet (ordered CSS property ->
value). Values are never validated: a malformed value is kept as an opaque
string and only ever shows up as a rendering artifact.

Also holds the declaration-text helpers used by the CSS text editor:
parse_declarations (text -> PropertySet) and format_declarations
(PropertySet -> text).
"""

from __future__ import annotations

import copy
import re
from collections.abc import Iterator, Mapping
from typing import Any

from engine.core.types import ELEMENT_KEY_SET, ELEMENT_KEYS, PropertySet

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class UnknownElementKey(ValueError):
    """A style edit named an element kind that is not styleable."""

    def __init__(self, key: Any):
        super().__init__(f"Unknown element key: {key!r}")
        self.key = key


# ---------------------------------------------------------------------------
# Default theme
# ---------------------------------------------------------------------------

# Pixel values throughout; relative unit mode converts them against the
# reference width.
DEFAULT_STYLES: dict[str, PropertySet] = {
    "global": {"fontSize": "16px", "color": "#333333", "lineHeight": 1.6, "padding": "16px"},
    "previewPane": {"backgroundColor": "#ffffff"},
    "h1": {"fontSize": "28px", "color": "#000000", "margin": "24px 0 16px"},
    "h2": {"fontSize": "22px", "color": "#111111", "margin": "20px 0 12px"},
    "h3": {"fontSize": "18px", "color": "#222222", "margin": "16px 0 8px"},
    "p": {"fontSize": "16px", "lineHeight": 1.6, "margin": "0 0 12px"},
    "a": {"color": "#1677ff", "textDecoration": "none"},
    "blockquote": {"margin": "0 0 12px", "padding": "8px 12px", "borderLeft": "4px solid #dddddd", "color": "#666666"},
    "code": {"fontSize": "14px", "backgroundColor": "#f5f5f5", "padding": "2px 4px", "borderRadius": "3px"},
    "pre": {"padding": "12px", "backgroundColor": "#f5f5f5", "overflowX": "auto"},
    "strong": {"fontWeight": 700},
    "img": {"maxWidth": "100%"},
    "th": {"padding": "6px 12px", "border": "1px solid #dddddd"},
    "td": {"padding": "6px 12px", "border": "1px solid #dddddd"},
}


# ---------------------------------------------------------------------------
# StyleMap
# ---------------------------------------------------------------------------


def _check_key(key: Any) -> str:
    if not isinstance(key, str) or key not in ELEMENT_KEY_SET:
        raise UnknownElementKey(key)
    return key


def _check_properties(key: str, properties: Any) -> PropertySet:
    if not isinstance(properties, Mapping):
        raise TypeError(f"Property set for {key!r} must be a mapping, got {type(properties).__name__}")
    return {str(name): value for name, value in properties.items()}


class StyleMap:
    """
    Mapping from ElementKey to PropertySet.

    Every ElementKey always has an entry (possibly empty) and unknown keys are
    rejected. Keys keep the order they were given in; keys that were not given
    are appended in canonical order.
    """

    def __init__(self, styles: Mapping[str, Mapping[str, Any]] | None = None):
        self._styles: dict[str, PropertySet] = {}
        self.set_styles(styles or {})

    @classmethod
    def default(cls) -> StyleMap:
        return cls(copy.deepcopy(DEFAULT_STYLES))

    def set_style(self, key: str, properties: Mapping[str, Any]) -> None:
        """Replace (not merge) the property set for one element kind."""
        key = _check_key(key)
        self._styles[key] = _check_properties(key, properties)

    def set_styles(self, styles: Mapping[str, Mapping[str, Any]]) -> None:
        """Replace the whole map. Validates everything before touching state."""
        replacement: dict[str, PropertySet] = {}
        for key, properties in styles.items():
            key = _check_key(key)
            replacement[key] = _check_properties(key, properties)
        for key in ELEMENT_KEYS:
            replacement.setdefault(key, {})
        self._styles = replacement

    def get(self, key: str) -> PropertySet:
        return dict(self._styles[_check_key(key)])

    def items(self) -> Iterator[tuple[str, PropertySet]]:
        return iter(self._styles.items())

    def to_dict(self) -> dict[str, PropertySet]:
        """Detached copy, safe to serialize or hand across a boundary."""
        return {key: dict(properties) for key, properties in self._styles.items()}

    def copy(self) -> StyleMap:
        return StyleMap(self.to_dict())

    def __getitem__(self, key: str) -> PropertySet:
        return self.get(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self._styles)

    def __len__(self) -> int:
        return len(self._styles)

    def __contains__(self, key: object) -> bool:
        return key in self._styles

    def __eq__(self, other: object) -> bool:
        if isinstance(other, StyleMap):
            return self._styles == other._styles
        return NotImplemented

    def __repr__(self) -> str:
        populated = sum(1 for properties in self._styles.values() if properties)
        return f"StyleMap({populated}/{len(self._styles)} styled)"


# ---------------------------------------------------------------------------
# Property names
# ---------------------------------------------------------------------------

_UPPER_RE = re.compile(r"[A-Z]")
_DASHED_RE = re.compile(r"-([a-z])")


def to_css_name(name: str) -> str:
    """fontSize -> font-size. Names already in kebab-case are unchanged."""
    if name.startswith("--"):
        return name
    return _UPPER_RE.sub(lambda m: f"-{m.group(0).lower()}", name)


def to_style_name(name: str) -> str:
    """font-size -> fontSize. Custom properties (--x) are kept as written."""
    if name.startswith("--"):
        return name
    return _DASHED_RE.sub(lambda m: m.group(1).upper(), name)


# ---------------------------------------------------------------------------
# Declaration text
# ---------------------------------------------------------------------------

_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_PROPERTY_RE = re.compile(r"^-{0,2}[a-zA-Z][a-zA-Z0-9-]*$")


def _split_declarations(text: str) -> list[str]:
    """Split on semicolons that are not escaped or inside quotes or parentheses."""
    parts: list[str] = []
    buf: list[str] = []
    depth = 0
    quote: str | None = None
    escaped = False
    for ch in text:
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif quote:
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(depth - 1, 0)
        elif ch == ";" and depth == 0:
            parts.append("".join(buf))
            buf = []
            continue
        buf.append(ch)
    parts.append("".join(buf))
    return parts


def parse_declarations(text: str) -> PropertySet:
    """
    Parse a CSS declaration list into a PropertySet.

    Partial input is expected while the user is typing: fragments without a
    colon, empty values, and invalid names are skipped. Never raises.
    """
    properties: PropertySet = {}
    for part in _split_declarations(_COMMENT_RE.sub("", text or "")):
        name, sep, value = part.partition(":")
        name = name.strip()
        value = value.strip()
        if not sep or not value or not _PROPERTY_RE.match(name):
            continue
        properties[to_style_name(name)] = value
    return properties


def format_value(value: Any) -> str:
    if isinstance(value, float):
        return format(value, ".10g")
    return str(value)


def format_declarations(properties: Mapping[str, Any]) -> str:
    """One `name: value;` line per property, CSS names."""
    return "\n".join(f"{to_css_name(name)}: {format_value(value)};" for name, value in properties.items())
