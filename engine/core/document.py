"""
Markstyle Core: Document

The single state container of an editing session. The host owns the only
mutable instance; the preview rebuilds a read-only mirror from every
update-state payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from engine.core.styles import StyleMap, UnknownElementKey
from engine.core.types import DEFAULT_REFERENCE_WIDTH, MIN_REFERENCE_WIDTH, is_element_key


def clamp_reference_width(width: Any) -> int:
    """Coerce to an int no smaller than the minimum reference width."""
    try:
        value = int(width)
    except (TypeError, ValueError):
        return DEFAULT_REFERENCE_WIDTH
    return max(value, MIN_REFERENCE_WIDTH)


@dataclass
class Document:
    markdown: str = ""
    styles: StyleMap = field(default_factory=StyleMap.default)
    selected_element: str = "p"
    inspecting: bool = False
    relative_unit_mode: bool = False
    reference_width: int = DEFAULT_REFERENCE_WIDTH

    def to_payload(self) -> dict[str, Any]:
        """Wire form carried by update-state envelopes. Always a full copy."""
        return {
            "markdown": self.markdown,
            "styles": self.styles.to_dict(),
            "selectedElement": self.selected_element,
            "inspecting": self.inspecting,
            "relativeUnitMode": self.relative_unit_mode,
            "referenceWidth": self.reference_width,
        }

    @classmethod
    def from_payload(cls, d: dict[str, Any]) -> Document:
        """
        Rebuild a Document from an update-state payload.

        Raises UnknownElementKey / TypeError when the styles are malformed;
        the caller decides whether that drops the whole message.
        """
        selected = d.get("selectedElement", "p")
        if not is_element_key(selected):
            raise UnknownElementKey(selected)
        return cls(
            markdown=str(d.get("markdown", "")),
            styles=StyleMap(d.get("styles") or {}),
            selected_element=selected,
            inspecting=bool(d.get("inspecting", False)),
            relative_unit_mode=bool(d.get("relativeUnitMode", False)),
            reference_width=clamp_reference_width(d.get("referenceWidth", DEFAULT_REFERENCE_WIDTH)),
        )
