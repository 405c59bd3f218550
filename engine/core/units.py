"""
Markstyle Core: Unit Conversion

Pure function: (PropertySet, reference_width) -> PropertySet with absolute
pixel values rewritten as viewport-width percentages.

    vw = px / reference_width * 100

Total by contract: nothing in here raises. Anything that does not parse as a
single pixel length passes through untouched.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Any

from engine.core.styles import to_css_name
from engine.core.types import DEFAULT_REFERENCE_WIDTH, MIN_REFERENCE_WIDTH, PropertySet

# Border and outline widths stay in px at every reference width.
EXEMPT_PROPERTIES: frozenset[str] = frozenset(
    {
        "line-height",
        "border",
        "border-width",
        "border-top-width",
        "border-right-width",
        "border-bottom-width",
        "border-left-width",
        "outline",
        "outline-width",
    }
)

# A bare number here is not a pixel count.
UNITLESS_PROPERTIES: frozenset[str] = frozenset(
    {
        "font-weight",
        "opacity",
        "z-index",
        "flex-grow",
        "flex-shrink",
        "order",
        "zoom",
    }
)

_PX_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)\s*px\s*$", re.IGNORECASE)


def _effective_width(reference_width: Any) -> float:
    try:
        width = float(reference_width)
    except (TypeError, ValueError):
        return float(DEFAULT_REFERENCE_WIDTH)
    if not math.isfinite(width):
        return float(DEFAULT_REFERENCE_WIDTH)
    return max(width, float(MIN_REFERENCE_WIDTH))


def px_to_vw(value: Any, reference_width: Any = DEFAULT_REFERENCE_WIDTH) -> Any:
    """
    Convert one pixel value (16, 16.5, "16px") to a vw string ("4.2667vw").

    Zero becomes the unitless "0". Values that are not a number or a single
    px length are returned unchanged.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        px = float(value)
    elif isinstance(value, str):
        match = _PX_RE.match(value)
        if not match:
            return value
        px = float(match.group(1))
    else:
        return value

    if not math.isfinite(px):
        return value
    if px == 0:
        return "0"
    vw = px / _effective_width(reference_width) * 100
    return f"{vw:.4f}vw"


def convert_property_set(
    properties: Mapping[str, Any],
    reference_width: Any = DEFAULT_REFERENCE_WIDTH,
) -> PropertySet:
    """
    Return a new PropertySet with pixel values converted to vw.

    Property order is preserved. EXEMPT_PROPERTIES (line-height and the
    border/outline widths) are copied as-is. UNITLESS_PROPERTIES are copied
    as-is as well, on top of that fixed exemption set: a bare number there is
    a count or weight, not pixels, so `fontWeight: 700` stays 700 instead of
    becoming a vw length.
    """
    converted: PropertySet = {}
    for name, value in properties.items():
        css_name = to_css_name(name)
        if css_name in EXEMPT_PROPERTIES or css_name in UNITLESS_PROPERTIES:
            converted[name] = value
        else:
            converted[name] = px_to_vw(value, reference_width)
    return converted
