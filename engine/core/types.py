"""
Markstyle Core: Shared Types

Data classes and constants used across the style model, CSS generation,
the messaging protocol, and both sides of the live preview.
These are the contracts that bind the core together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

# ---------------------------------------------------------------------------
# Element keys
# ---------------------------------------------------------------------------

GLOBAL_KEY = "global"
PREVIEW_ROOT_KEY = "previewPane"

# Canonical order. Style maps fill missing keys in this order.
ELEMENT_KEYS: tuple[str, ...] = (
    GLOBAL_KEY,
    PREVIEW_ROOT_KEY,
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "p",
    "a",
    "blockquote",
    "code",
    "pre",
    "strong",
    "em",
    "ol",
    "ul",
    "li",
    "table",
    "th",
    "td",
    "img",
)

ELEMENT_KEY_SET: frozenset[str] = frozenset(ELEMENT_KEYS)

# Attribute carried by every rendered styleable element
STYLE_KEY_ATTR = "data-style-key"

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

DEFAULT_REFERENCE_WIDTH = 375
MIN_REFERENCE_WIDTH = 320

SCROLL_SUPPRESS_WINDOW = 0.1  # seconds
SCROLL_ECHO_EPSILON = 1e-3

# Power curve that compensates for the rendered preview being denser than
# the raw Markdown source. Not applied unless a session opts in.
DENSITY_EASING_EXPONENT = 1.1

AUTOSAVE_DELAY = 2.0  # seconds

PROJECT_FILE_VERSION = "1.2.0"

PropertyValue = str | int | float
PropertySet = dict[str, PropertyValue]


def is_element_key(value: Any) -> bool:
    """Return True if value names a styleable element kind."""
    return isinstance(value, str) and value in ELEMENT_KEY_SET


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class Project:
    """A persisted document. `id` is None until the store assigns one."""

    name: str
    markdown: str
    styles: dict[str, PropertySet]
    id: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "markdown": self.markdown,
            "styles": self.styles,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Project:
        return cls(
            id=d.get("id"),
            name=d["name"],
            markdown=d.get("markdown", ""),
            styles=d.get("styles", {}),
            created_at=datetime.fromisoformat(d["createdAt"]),
            updated_at=datetime.fromisoformat(d["updatedAt"]),
        )


@dataclass
class Notice:
    """A user-facing notification raised by the host (save failures etc.)."""

    level: str  # "info" | "success" | "error"
    message: str
