"""
Stylesheet generation tests.
"""

from engine.core.css import generate_css, selector_for
from engine.core.styles import StyleMap
from engine.core.types import ELEMENT_KEYS


class TestSelectors:
    def test_special_keys(self):
        assert selector_for("previewPane") == "body"
        assert selector_for("global") == ".markdown-wrapper"

    def test_element_keys(self):
        assert selector_for("h1") == '[data-style-key="h1"]'
        assert selector_for("pre") == '[data-style-key="pre"]'


class TestGenerateCss:
    def test_block_format(self):
        styles = StyleMap({"h1": {"fontSize": "24px", "color": "red"}})
        first = generate_css(styles).split("\n")[0]
        assert first == '[data-style-key="h1"] { font-size: 24px; color: red; }'

    def test_one_block_per_key_in_map_order(self):
        styles = StyleMap({"p": {"margin": "0"}})
        lines = generate_css(styles).split("\n")
        assert len(lines) == len(ELEMENT_KEYS)
        assert lines[0].startswith('[data-style-key="p"]')
        assert lines[1].startswith(".markdown-wrapper")
        assert lines[2].startswith("body")

    def test_empty_property_set(self):
        css = generate_css(StyleMap())
        assert '[data-style-key="h6"] {  }' in css

    def test_deterministic(self):
        styles = StyleMap.default()
        outputs = {generate_css(styles, relative=True, reference_width=390) for _ in range(50)}
        assert len(outputs) == 1
        assert generate_css(styles) == generate_css(StyleMap(styles.to_dict()))

    def test_relative_mode(self):
        styles = StyleMap({"p": {"fontSize": "37.5px", "lineHeight": "24px"}})
        css = generate_css(styles, relative=True, reference_width=375)
        assert '[data-style-key="p"] { font-size: 10.0000vw; line-height: 24px; }' in css

    def test_absolute_mode_leaves_pixels(self):
        styles = StyleMap({"p": {"fontSize": "37.5px"}})
        assert "font-size: 37.5px;" in generate_css(styles, relative=False)

    def test_numbers_formatted(self):
        styles = StyleMap({"p": {"lineHeight": 1.6, "fontWeight": 700}})
        assert "line-height: 1.6; font-weight: 700;" in generate_css(styles)
