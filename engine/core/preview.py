"""
Markstyle Core: Preview Session

Read-only mirror of the host's Document. Lifecycle:

    UNINITIALIZED --start()--> AWAITING_FIRST_STATE --(ready posted)--> LIVE

Anything that reaches the preview before it is LIVE is dropped. Every
update-state replaces the mirror wholesale; the stylesheet and the rendered
HTML are regenerated only when their inputs actually changed.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from markdown_it.tree import SyntaxTreeNode

from engine.core.css import generate_css
from engine.core.document import Document
from engine.core.inspector import PRIMARY_BUTTON, intercept_click
from engine.core.protocol import (
    MESSAGE_EDITOR_SCROLL,
    MESSAGE_ELEMENT_SELECTED,
    MESSAGE_PREVIEW_READY,
    MESSAGE_PREVIEW_SCROLL,
    MESSAGE_UPDATE_STATE,
    Channel,
    Envelope,
)
from engine.core.render import MarkdownRenderer
from engine.core.scroll import ScrollState, ScrollSurface, ScrollSync
from engine.core.styles import UnknownElementKey
from engine.core.types import SCROLL_SUPPRESS_WINDOW

logger = logging.getLogger(__name__)

INSPECT_CLASS = "inspect-mode-active"

# Hover outline for taggable elements while inspecting
INSPECTOR_CSS = f"""\
.{INSPECT_CLASS} [data-style-key] {{
  cursor: crosshair;
  outline: 1px dashed rgba(0, 123, 255, 0.5);
  transition: outline-color 0.2s, background-color 0.2s;
}}
.{INSPECT_CLASS} [data-style-key]:hover {{
  background-color: rgba(0, 123, 255, 0.1);
  outline: 2px solid rgba(0, 123, 255, 1);
}}
"""


class PreviewState(Enum):
    UNINITIALIZED = "uninitialized"
    AWAITING_FIRST_STATE = "awaiting_first_state"
    LIVE = "live"


class PreviewSession:
    """
    The preview side of the link.

    Args:
        channel: endpoint facing the host
        surface: the preview's scroll container
        suppress_window: scroll suppression window in seconds
        easing_exponent: density easing applied to incoming editor ratios
    """

    def __init__(
        self,
        channel: Channel,
        *,
        surface: ScrollSurface | None = None,
        suppress_window: float = SCROLL_SUPPRESS_WINDOW,
        easing_exponent: float | None = None,
        renderer: MarkdownRenderer | None = None,
    ) -> None:
        self.channel = channel
        self.surface = surface or ScrollState()
        self.state = PreviewState.UNINITIALIZED
        self.document: Document | None = None
        self.css = ""
        self.html = ""
        self.tree: SyntaxTreeNode | None = None
        self.render_count = 0
        self.style_count = 0
        self._renderer = renderer or MarkdownRenderer()
        self._css_inputs: tuple[Any, ...] | None = None
        self.scroll = ScrollSync(
            self.surface,
            self.channel.post,
            MESSAGE_PREVIEW_SCROLL,
            window=suppress_window,
            easing_exponent=easing_exponent,
        )

    @property
    def live(self) -> bool:
        return self.state is PreviewState.LIVE

    @property
    def inspecting(self) -> bool:
        return self.document is not None and self.document.inspecting

    @property
    def body_classes(self) -> list[str]:
        return [INSPECT_CLASS] if self.inspecting else []

    def start(self) -> None:
        """Attach the listener, announce readiness, go live."""
        if self.state is not PreviewState.UNINITIALIZED:
            return
        self.state = PreviewState.AWAITING_FIRST_STATE
        self.channel.listen(self.handle)
        self.channel.post(Envelope(MESSAGE_PREVIEW_READY))
        self.state = PreviewState.LIVE
        logger.info("preview: live")

    def handle(self, envelope: Envelope) -> None:
        if not self.live:
            logger.debug("preview: %s dropped before live", envelope.type)
            return
        if envelope.type == MESSAGE_UPDATE_STATE:
            self.apply_state(envelope.payload)
        elif envelope.type == MESSAGE_EDITOR_SCROLL:
            self.scroll.receive(envelope)
        else:
            logger.warning("preview: unexpected %s from host", envelope.type)

    def apply_state(self, payload: dict[str, Any]) -> bool:
        """Replace the mirror with a full Document. Malformed payloads are dropped whole."""
        try:
            document = Document.from_payload(payload)
        except (UnknownElementKey, TypeError, ValueError) as e:
            logger.warning("preview: update-state dropped: %s", e)
            return False

        previous = self.document
        self.document = document

        # Declaration order matters to the cascade, so the key keeps it
        css_inputs = (
            tuple((key, tuple(properties.items())) for key, properties in document.styles.items()),
            document.relative_unit_mode,
            document.reference_width,
        )
        if css_inputs != self._css_inputs:
            self.css = generate_css(
                document.styles,
                relative=document.relative_unit_mode,
                reference_width=document.reference_width,
            )
            self._css_inputs = css_inputs
            self.style_count += 1

        if previous is None or previous.markdown != document.markdown:
            self.html = self._renderer.render(document.markdown)
            self.tree = self._renderer.parse_tree(document.markdown)
            self.render_count += 1
        return True

    def scrolled(self) -> float | None:
        """The preview surface scrolled natively."""
        if not self.live:
            return None
        return self.scroll.local_scroll()

    def click(self, target: Any, button: int = PRIMARY_BUTTON) -> bool:
        """
        A pointer activation on `target` (a node of `tree`). Returns True if
        the click was intercepted, i.e. default handling must be suppressed.
        """
        intercepted, key = intercept_click(self.inspecting, target, button)
        if key is not None and self.live:
            self.channel.post(Envelope(MESSAGE_ELEMENT_SELECTED, key))
        return intercepted

    def close(self) -> None:
        self.scroll.close()
        self.state = PreviewState.UNINITIALIZED
