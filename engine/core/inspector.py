"""
Markstyle Core: Inspect / Select

Maps a click inside the rendered preview to the ElementKey of the nearest
tagged ancestor. Targets are duck-typed: anything with `parent` and `attrs`
(markdown-it SyntaxTreeNode in practice). A root node (no parent token) is
the content wrapper and resolves to `global`.
"""

from __future__ import annotations

from typing import Any

from engine.core.types import GLOBAL_KEY, STYLE_KEY_ATTR, is_element_key

PRIMARY_BUTTON = 0


def _node_attrs(node: Any) -> dict[str, Any]:
    try:
        attrs = node.attrs
    except (AttributeError, IndexError, TypeError):
        return {}
    return attrs if isinstance(attrs, dict) else {}


def resolve_style_key(target: Any) -> str | None:
    """
    Walk up from target until a node tagged with a known ElementKey is found.

    Returns None when target is None or sits outside rendered content.
    """
    node = target
    while node is not None:
        if getattr(node, "is_root", False):
            return GLOBAL_KEY
        key = _node_attrs(node).get(STYLE_KEY_ATTR)
        if is_element_key(key):
            return key
        node = getattr(node, "parent", None)
    return None


def intercept_click(inspecting: bool, target: Any, button: int = PRIMARY_BUTTON) -> tuple[bool, str | None]:
    """
    Decide what a click does in the preview.

    Returns (intercepted, key). Outside inspect mode, or for any button other
    than the primary one, the click is left alone and nothing is selected.
    In inspect mode the click is always intercepted, even when no key
    resolves.
    """
    if not inspecting or button != PRIMARY_BUTTON:
        return False, None
    return True, resolve_style_key(target)
