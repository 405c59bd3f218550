"""
Markstyle Core: Markdown Rendering

Markdown -> HTML with every styleable element tagged with its ElementKey
(data-style-key), so generated stylesheets and inspect-mode hit testing can
address element kinds directly. Same tokens, same tags, whether the output
is an HTML string or a node tree.
"""

from __future__ import annotations

from collections.abc import Sequence

from markdown_it import MarkdownIt
from markdown_it.common.utils import escapeHtml, unescapeAll
from markdown_it.rules_core import StateCore
from markdown_it.token import Token
from markdown_it.tree import SyntaxTreeNode

from engine.core.types import ELEMENT_KEY_SET, GLOBAL_KEY, PREVIEW_ROOT_KEY, STYLE_KEY_ATTR

# Tags whose name is also their ElementKey. Code blocks are handled apart
# because the key sits on <pre>, not on the fence token's <code> tag.
_TAG_KEYS: frozenset[str] = ELEMENT_KEY_SET - {GLOBAL_KEY, PREVIEW_ROOT_KEY, "pre"}
_CODE_BLOCK_TYPES = {"fence", "code_block"}

TABLE_SCROLL_CLASS = "table-scroll"


def _tag_tokens(tokens: Sequence[Token]) -> None:
    for token in tokens:
        if token.type in _CODE_BLOCK_TYPES:
            token.attrSet(STYLE_KEY_ATTR, "pre")
        elif token.nesting >= 0 and not token.hidden and token.tag in _TAG_KEYS:
            token.attrSet(STYLE_KEY_ATTR, token.tag)
        if token.children:
            _tag_tokens(token.children)


def _style_keys_rule(state: StateCore) -> None:
    _tag_tokens(state.tokens)


class MarkdownRenderer:
    """CommonMark + tables + strikethrough, raw HTML passed through."""

    def __init__(self) -> None:
        self._md = MarkdownIt("commonmark", {"html": True}).enable("table").enable("strikethrough")
        self._md.core.ruler.push("style_keys", _style_keys_rule)

        default_render_token = self._md.renderer.renderToken

        def render_code_block(tokens, idx, options, env):
            token = tokens[idx]
            info = unescapeAll(token.info).strip() if token.info else ""
            lang = info.split(maxsplit=1)[0] if info else ""
            code_attrs = f' class="language-{escapeHtml(lang)}"' if lang else ""
            return f'<pre {STYLE_KEY_ATTR}="pre"><code{code_attrs}>{escapeHtml(token.content)}</code></pre>\n'

        def render_table_open(tokens, idx, options, env):
            # Wide tables scroll inside the wrapper instead of widening the page.
            return f'<div class="{TABLE_SCROLL_CLASS}">' + default_render_token(tokens, idx, options, env)

        def render_table_close(tokens, idx, options, env):
            return default_render_token(tokens, idx, options, env) + "</div>\n"

        self._md.renderer.rules["fence"] = render_code_block
        self._md.renderer.rules["code_block"] = render_code_block
        self._md.renderer.rules["table_open"] = render_table_open
        self._md.renderer.rules["table_close"] = render_table_close

    def render(self, markdown: str) -> str:
        return self._md.render(markdown or "")

    def parse_tree(self, markdown: str) -> SyntaxTreeNode:
        """
        Node tree of the rendered content. The root node stands for the
        content wrapper, i.e. the `global` element.
        """
        return SyntaxTreeNode(self._md.parse(markdown or ""))


_renderer = MarkdownRenderer()


def render_markdown(markdown: str) -> str:
    return _renderer.render(markdown)


def parse_tree(markdown: str) -> SyntaxTreeNode:
    return _renderer.parse_tree(markdown)
