"""
Markstyle Core: CSS Generation

Pure function: (StyleMap, relative?, reference_width) -> stylesheet text.
No IO. Deterministic: same input, byte-identical output. The preview relies
on this to skip re-applying an unchanged stylesheet.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from engine.core.styles import StyleMap, format_value, to_css_name
from engine.core.types import DEFAULT_REFERENCE_WIDTH, GLOBAL_KEY, PREVIEW_ROOT_KEY, STYLE_KEY_ATTR
from engine.core.units import convert_property_set

ROOT_SELECTOR = "body"
WRAPPER_CLASS = "markdown-wrapper"
WRAPPER_SELECTOR = f".{WRAPPER_CLASS}"


def selector_for(key: str) -> str:
    """Map an ElementKey to the selector its property set is bound to."""
    if key == PREVIEW_ROOT_KEY:
        return ROOT_SELECTOR
    if key == GLOBAL_KEY:
        return WRAPPER_SELECTOR
    return f'[{STYLE_KEY_ATTR}="{key}"]'


def _rule(selector: str, properties: Mapping[str, Any]) -> str:
    declarations = " ".join(f"{to_css_name(name)}: {format_value(value)};" for name, value in properties.items())
    return f"{selector} {{ {declarations} }}"


def generate_css(
    styles: StyleMap,
    relative: bool = False,
    reference_width: int = DEFAULT_REFERENCE_WIDTH,
) -> str:
    """
    Render one `selector { property: value; ... }` block per element key,
    in map order, newline separated.

    With relative=True every property set goes through unit conversion first.
    """
    blocks: list[str] = []
    for key, properties in styles.items():
        if relative:
            properties = convert_property_set(properties, reference_width)
        blocks.append(_rule(selector_for(key), properties))
    return "\n".join(blocks)
