"""
Markstyle Core: Scroll Synchronization

Ratio-based scroll mirroring between two surfaces that share nothing but a
channel. Each side owns one ScrollSync.

Echo prevention, in order of precedence:
  1. suppression window: applying a remote ratio sets `suppressing`; local
     scroll events are ignored until a timer clears it (100 ms default). The
     native scroll event caused by our own scroll_to lands inside the window.
  2. echo match: the first local scroll after a remote apply is dropped if
     it reports the ratio we just applied (within epsilon). Covers scroll
     events that arrive after the window closed.
  3. sequence numbers: outgoing scroll envelopes carry an increasing seq;
     incoming ones that are not newer than the last seen are ignored.

Easing is off by default. With an exponent k the receiving side maps the
ratio through r ** k. The host is given 1/k so a round trip is the identity.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass

from engine.core.protocol import Envelope
from engine.core.types import SCROLL_ECHO_EPSILON, SCROLL_SUPPRESS_WINDOW

logger = logging.getLogger(__name__)


@dataclass
class ScrollMetrics:
    scroll_top: float
    scroll_height: float
    client_height: float

    @property
    def max_scroll(self) -> float:
        span = self.scroll_height - self.client_height
        return span if span > 0 and math.isfinite(span) else 0.0


class ScrollSurface:
    """A scroll container: report its geometry, move it."""

    def metrics(self) -> ScrollMetrics:
        raise NotImplementedError

    def scroll_to(self, top: float) -> None:
        raise NotImplementedError


class ScrollState(ScrollSurface):
    """In-memory scroll container. Clamps like a browser does."""

    def __init__(self, scroll_height: float = 0.0, client_height: float = 0.0, scroll_top: float = 0.0) -> None:
        self.scroll_height = scroll_height
        self.client_height = client_height
        self.scroll_top = 0.0
        self.scroll_to(scroll_top)

    def metrics(self) -> ScrollMetrics:
        return ScrollMetrics(self.scroll_top, self.scroll_height, self.client_height)

    def scroll_to(self, top: float) -> None:
        self.scroll_top = min(max(top, 0.0), self.metrics().max_scroll)

    def resize(self, scroll_height: float, client_height: float | None = None) -> None:
        self.scroll_height = scroll_height
        if client_height is not None:
            self.client_height = client_height
        self.scroll_to(self.scroll_top)


# ---------------------------------------------------------------------------
# Ratio math
# ---------------------------------------------------------------------------


def scroll_ratio(metrics: ScrollMetrics) -> float:
    """scrollTop / (scrollHeight - clientHeight), 0 when not scrollable."""
    span = metrics.max_scroll
    if span <= 0:
        return 0.0
    ratio = metrics.scroll_top / span
    if not math.isfinite(ratio):
        return 0.0
    return min(max(ratio, 0.0), 1.0)


def scroll_top_for(ratio: float, metrics: ScrollMetrics) -> float:
    return ratio * metrics.max_scroll


def ease(ratio: float, exponent: float | None) -> float:
    ratio = min(max(ratio, 0.0), 1.0)
    if exponent is None or exponent == 1:
        return ratio
    return ratio**exponent


# ---------------------------------------------------------------------------
# ScrollSync
# ---------------------------------------------------------------------------


class ScrollSync:
    """
    One side of the scroll link.

    Args:
        surface: the local scroll container
        post: sends an envelope to the other side
        outgoing: message type this side emits (editor-scroll or preview-scroll)
        window: suppression window in seconds
        easing_exponent: applied to incoming ratios; None means linear
        epsilon: tolerance for recognizing our own applied ratio
    """

    def __init__(
        self,
        surface: ScrollSurface,
        post: Callable[[Envelope], None],
        outgoing: str,
        *,
        window: float = SCROLL_SUPPRESS_WINDOW,
        easing_exponent: float | None = None,
        epsilon: float = SCROLL_ECHO_EPSILON,
    ) -> None:
        self.surface = surface
        self.outgoing = outgoing
        self.window = window
        self.easing_exponent = easing_exponent
        self.epsilon = epsilon
        self.suppressing = False
        self._post = post
        self._release_handle: asyncio.TimerHandle | None = None
        self._last_applied: float | None = None
        self._out_seq = 0
        self._in_seq = 0

    def local_scroll(self) -> float | None:
        """
        Handle a native scroll event on the local surface.
        Returns the ratio sent, or None if the event was an echo.
        """
        if self.suppressing:
            return None
        ratio = scroll_ratio(self.surface.metrics())
        if self._last_applied is not None:
            echo = abs(ratio - self._last_applied) <= self.epsilon
            self._last_applied = None
            if echo:
                logger.debug("scroll: %s echo at %.4f ignored", self.outgoing, ratio)
                return None
        self._out_seq += 1
        self._post(Envelope(self.outgoing, ratio, seq=self._out_seq))
        return ratio

    def receive(self, envelope: Envelope) -> bool:
        """Apply an incoming scroll envelope unless it is stale."""
        if envelope.seq is not None:
            if envelope.seq <= self._in_seq:
                logger.debug("scroll: stale %s seq=%d ignored", envelope.type, envelope.seq)
                return False
            self._in_seq = envelope.seq
        self.apply_remote(envelope.payload)
        return True

    def apply_remote(self, ratio: float) -> float:
        """Move the local surface to the (eased) ratio and open the window."""
        self.suppressing = True
        target = ease(ratio, self.easing_exponent)
        self.surface.scroll_to(scroll_top_for(target, self.surface.metrics()))
        self._last_applied = scroll_ratio(self.surface.metrics())
        self._schedule_release()
        return target

    def reset_peer(self) -> None:
        """The other side restarted; its sequence numbers start over."""
        self._in_seq = 0

    def close(self) -> None:
        if self._release_handle is not None:
            self._release_handle.cancel()
            self._release_handle = None
        self.suppressing = False

    def _schedule_release(self) -> None:
        if self._release_handle is not None:
            self._release_handle.cancel()
        loop = asyncio.get_running_loop()
        self._release_handle = loop.call_later(self.window, self._release)

    def _release(self) -> None:
        self._release_handle = None
        self.suppressing = False
