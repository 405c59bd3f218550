"""
Inspect-mode hit testing tests.
"""

from engine.core.inspector import intercept_click, resolve_style_key
from engine.core.render import parse_tree


def _find(tree, node_type):
    return next(node for node in tree.walk() if node.type == node_type)


class TestResolveStyleKey:
    def test_text_inside_strong(self):
        tree = parse_tree("Some **bold** text")
        text = _find(tree, "strong").children[0]
        assert text.type == "text"
        assert resolve_style_key(text) == "strong"

    def test_plain_text_resolves_to_paragraph(self):
        tree = parse_tree("Just text")
        assert resolve_style_key(_find(tree, "text")) == "p"

    def test_table_cell_and_row(self):
        tree = parse_tree("| a |\n|---|\n| 1 |\n")
        assert resolve_style_key(_find(tree, "td")) == "td"
        assert resolve_style_key(_find(tree, "tr")) == "table"

    def test_fence(self):
        tree = parse_tree("```\ncode\n```\n")
        assert resolve_style_key(_find(tree, "fence")) == "pre"

    def test_tight_list_item(self):
        tree = parse_tree("- item\n")
        assert resolve_style_key(_find(tree, "text")) == "li"

    def test_root_is_global(self):
        tree = parse_tree("text")
        assert resolve_style_key(tree) == "global"

    def test_outside_content(self):
        assert resolve_style_key(None) is None

    def test_duck_typed_target(self):
        class Node:
            def __init__(self, attrs, parent=None):
                self.attrs = attrs
                self.parent = parent

        outer = Node({"data-style-key": "blockquote"})
        inner = Node({"data-style-key": "bogus"}, parent=outer)
        assert resolve_style_key(Node({}, parent=inner)) == "blockquote"
        assert resolve_style_key(Node({})) is None


class TestInterceptClick:
    def test_not_inspecting(self):
        tree = parse_tree("# Title")
        assert intercept_click(False, tree.children[0]) == (False, None)

    def test_inspecting_primary(self):
        tree = parse_tree("# Title")
        assert intercept_click(True, tree.children[0]) == (True, "h1")

    def test_secondary_button_ignored(self):
        tree = parse_tree("# Title")
        assert intercept_click(True, tree.children[0], button=2) == (False, None)

    def test_no_key_still_intercepted(self):
        assert intercept_click(True, None) == (True, None)
