"""
Live editing sessions.

A session pairs one HostSession with the sockets looking at it: any number
of editor sockets (they all see the same Document) and at most one preview
socket. The host lives server-side; both browsers are thin clients.

Editor-side scrolling is mirrored through RemoteScrollSurface: the editor
reports its geometry on every scroll, and programmatic scrolls decided by
the host are sent back to the editors as editor.scroll_to events.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from backend.config import settings
from backend.services.ws_channel import Outbox, WebSocketChannel
from engine.core.document import Document
from engine.core.host import HostSession
from engine.core.scroll import ScrollMetrics, ScrollSurface
from engine.core.store import MemoryProjectStore, ProjectStore
from engine.core.styles import format_declarations
from engine.core.types import Notice, PropertySet

logger = logging.getLogger(__name__)


class RemoteScrollSurface(ScrollSurface):
    """Scroll container in a browser: geometry is whatever was last reported."""

    def __init__(self, on_scroll: Callable[[float], None]) -> None:
        self._metrics = ScrollMetrics(0.0, 0.0, 0.0)
        self._on_scroll = on_scroll

    def report(self, scroll_top: float, scroll_height: float, client_height: float) -> None:
        self._metrics = ScrollMetrics(scroll_top, scroll_height, client_height)

    def metrics(self) -> ScrollMetrics:
        m = self._metrics
        return ScrollMetrics(m.scroll_top, m.scroll_height, m.client_height)

    def scroll_to(self, top: float) -> None:
        m = self._metrics
        top = min(max(top, 0.0), m.max_scroll)
        self._metrics = ScrollMetrics(top, m.scroll_height, m.client_height)
        self._on_scroll(top)


class LiveSession:
    """One host plus the editor and preview sockets attached to it."""

    def __init__(self, session_id: str, store: ProjectStore) -> None:
        self.session_id = session_id
        self.editors: list[Outbox] = []
        self.preview: WebSocketChannel | None = None
        self.editor_surface = RemoteScrollSurface(self._scroll_editors)
        self.host = HostSession(
            document=Document(reference_width=settings.DEFAULT_REFERENCE_WIDTH),
            store=store,
            editor_surface=self.editor_surface,
            autosave_delay=settings.autosave_delay,
            suppress_window=settings.scroll_suppress_window,
            easing_exponent=settings.SCROLL_EASING_EXPONENT,
            on_notice=self._broadcast_notice,
            on_change=self._broadcast_state,
            on_select=self._broadcast_selection,
        )

    @property
    def idle(self) -> bool:
        return not self.editors and self.preview is None

    # -- Events to editors ---------------------------------------------------

    def state_event(self) -> dict[str, Any]:
        return {
            "type": "state",
            "document": self.host.document.to_payload(),
            "project": {"id": self.host.current_project_id, "name": self.host.project_name},
        }

    def selection_event(self) -> dict[str, Any]:
        key = self.host.document.selected_element
        properties = self.host.selected_properties()
        return {
            "type": "element.selected",
            "key": key,
            "properties": properties,
            "css": format_declarations(properties),
        }

    def broadcast(self, event: dict[str, Any]) -> None:
        for outbox in list(self.editors):
            outbox.send_json(event)

    def _broadcast_state(self, document: Document) -> None:
        self.broadcast(self.state_event())

    def _broadcast_selection(self, key: str, properties: PropertySet) -> None:
        self.broadcast(self.selection_event())

    def _broadcast_notice(self, notice: Notice) -> None:
        self.broadcast({"type": "notice", "level": notice.level, "message": notice.message})

    def _scroll_editors(self, top: float) -> None:
        self.broadcast({"type": "editor.scroll_to", "scrollTop": top})

    # -- Sockets -------------------------------------------------------------

    def add_editor(self, outbox: Outbox) -> None:
        self.editors.append(outbox)
        outbox.send_json(self.state_event())
        outbox.send_json(self.selection_event())

    def remove_editor(self, outbox: Outbox) -> None:
        if outbox in self.editors:
            self.editors.remove(outbox)

    async def attach_preview(self, channel: WebSocketChannel) -> None:
        """A new preview replaces the old one. It gets state once it says preview-ready."""
        previous = self.preview
        self.preview = channel
        self.host.attach_preview(channel)
        if previous is not None and previous is not channel:
            logger.info("session %s: preview replaced", self.session_id)
            await previous.close()

    def detach_preview(self, channel: WebSocketChannel) -> None:
        self.host.detach_preview(channel)
        if self.preview is channel:
            self.preview = None

    async def close(self) -> None:
        await self.host.close()


class SessionManager:
    """Process-wide registry of live sessions and the project store they share."""

    def __init__(self, store: ProjectStore | None = None) -> None:
        self.store: ProjectStore = store or MemoryProjectStore()
        self.sessions: dict[str, LiveSession] = {}

    def get(self, session_id: str) -> LiveSession:
        session = self.sessions.get(session_id)
        if session is None:
            session = LiveSession(session_id, self.store)
            self.sessions[session_id] = session
            logger.info("session %s: created", session_id)
        return session

    async def release(self, session_id: str) -> None:
        """Drop a session once nothing is connected to it. Pending autosaves are flushed."""
        session = self.sessions.get(session_id)
        if session is None or not session.idle:
            return
        del self.sessions[session_id]
        await session.close()
        logger.info("session %s: closed", session_id)

    async def close_all(self) -> None:
        sessions = list(self.sessions.values())
        self.sessions.clear()
        for session in sessions:
            await session.close()


# Singleton instance
session_manager = SessionManager()
