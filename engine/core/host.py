"""
Markstyle Core: Host Session

The host owns the only mutable Document. Every editing action goes through
the narrow mutation API below; each one that changes the Document sends a
full update-state envelope to the preview (once the preview has announced
itself) and notifies the UI listener.

The host never buffers: until preview-ready arrives nothing is posted. When
it arrives the current Document is sent right away, so a preview that
reloads heals itself without the host tracking what the preview missed.

Persistence: explicit save/open/new/delete go through a ProjectStore. Edits
to markdown or styles while a project is open schedule a debounced autosave.
Store failures become error notices; the in-memory Document is never rolled
back.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from engine.core.autosave import Autosaver
from engine.core.document import Document, clamp_reference_width
from engine.core.protocol import (
    MESSAGE_EDITOR_SCROLL,
    MESSAGE_ELEMENT_SELECTED,
    MESSAGE_PREVIEW_READY,
    MESSAGE_PREVIEW_SCROLL,
    MESSAGE_UPDATE_STATE,
    Channel,
    Envelope,
)
from engine.core.scroll import ScrollState, ScrollSurface, ScrollSync
from engine.core.store import MemoryProjectStore, ProjectStore
from engine.core.styles import StyleMap, UnknownElementKey
from engine.core.types import (
    AUTOSAVE_DELAY,
    SCROLL_SUPPRESS_WINDOW,
    Notice,
    Project,
    PropertySet,
    is_element_key,
)

logger = logging.getLogger(__name__)

UNTITLED_PROJECT = "Untitled"


class HostSession:
    """
    Owner of the Document for one editing session.

    Args:
        channel: endpoint facing the preview; can also be attached later
        document: initial Document (defaults: empty markdown, default theme)
        store: project persistence (defaults to an in-memory store)
        editor_surface: the editor's scroll container
        autosave_delay: debounce window in seconds
        suppress_window: scroll suppression window in seconds
        easing_exponent: the preview's easing exponent k; the host maps
            incoming ratios through 1/k. None means linear.
        on_notice: called with a Notice for user-facing messages
        on_change: called with the Document after every change
        on_select: called with (key, property set) when an element is selected
    """

    def __init__(
        self,
        channel: Channel | None = None,
        *,
        document: Document | None = None,
        store: ProjectStore | None = None,
        editor_surface: ScrollSurface | None = None,
        autosave_delay: float = AUTOSAVE_DELAY,
        suppress_window: float = SCROLL_SUPPRESS_WINDOW,
        easing_exponent: float | None = None,
        on_notice: Callable[[Notice], None] | None = None,
        on_change: Callable[[Document], None] | None = None,
        on_select: Callable[[str, PropertySet], None] | None = None,
    ) -> None:
        self.document = document or Document()
        self.store = store or MemoryProjectStore()
        self.editor_surface = editor_surface or ScrollState()
        self.preview_ready = False
        self.current_project_id: int | None = None
        self.project_name = UNTITLED_PROJECT

        self._channel: Channel | None = None
        self._on_notice = on_notice
        self._on_change = on_change
        self._on_select = on_select

        inverse = 1 / easing_exponent if easing_exponent else None
        self.scroll = ScrollSync(
            self.editor_surface,
            self._post,
            MESSAGE_EDITOR_SCROLL,
            window=suppress_window,
            easing_exponent=inverse,
        )
        self.autosaver = Autosaver(self._autosave, delay=autosave_delay, on_error=self._save_failed)

        if channel is not None:
            self.attach_preview(channel)

    # -- Preview link --------------------------------------------------------

    def attach_preview(self, channel: Channel) -> None:
        """Listen on a preview channel. Nothing is sent until preview-ready."""
        self._channel = channel
        self.preview_ready = False
        channel.listen(self.handle)

    def detach_preview(self, channel: Channel | None = None) -> None:
        """Forget the preview. With `channel`, only if it is still the attached one."""
        if channel is not None and channel is not self._channel:
            return
        self._channel = None
        self.preview_ready = False

    @property
    def preview_channel(self) -> Channel | None:
        return self._channel

    def _post(self, envelope: Envelope) -> None:
        if self._channel is None or not self.preview_ready:
            return
        self._channel.post(envelope)

    def send_state(self) -> None:
        self._post(Envelope(MESSAGE_UPDATE_STATE, self.document.to_payload()))

    def handle(self, envelope: Envelope) -> None:
        """Dispatch one envelope from the preview."""
        if envelope.type == MESSAGE_PREVIEW_READY:
            logger.info("host: preview ready")
            self.preview_ready = True
            self.scroll.reset_peer()
            self.send_state()
        elif envelope.type == MESSAGE_PREVIEW_SCROLL:
            self.scroll.receive(envelope)
        elif envelope.type == MESSAGE_ELEMENT_SELECTED:
            self.select_element(envelope.payload)
        else:
            logger.warning("host: unexpected %s from preview", envelope.type)

    # -- Mutation API --------------------------------------------------------

    def set_markdown(self, markdown: str) -> None:
        if markdown == self.document.markdown:
            return
        self.document.markdown = markdown
        self._changed(persisted=True)

    def set_style(self, key: str, properties: Mapping[str, Any]) -> None:
        """Replace one element's property set. Raises UnknownElementKey."""
        self.document.styles.set_style(key, properties)
        self._changed(persisted=True)
        if key == self.document.selected_element:
            self._notify_select()

    def set_styles(self, styles: Mapping[str, Mapping[str, Any]]) -> None:
        """Replace the whole style map. Invalid maps leave it untouched."""
        self.document.styles.set_styles(styles)
        self._changed(persisted=True)

    def load_document(self, markdown: str, styles: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        """Replace markdown and, when given, the style map in one change."""
        if styles is not None:
            self.document.styles.set_styles(styles)
        self.document.markdown = markdown
        self._changed(persisted=True)

    def select_element(self, key: str) -> None:
        if not is_element_key(key):
            raise UnknownElementKey(key)
        self.document.selected_element = key
        self._changed(persisted=False)
        self._notify_select()

    def set_inspecting(self, inspecting: bool) -> None:
        inspecting = bool(inspecting)
        if inspecting == self.document.inspecting:
            return
        self.document.inspecting = inspecting
        self._changed(persisted=False)

    def set_relative_mode(self, enabled: bool, reference_width: int | None = None) -> None:
        self.document.relative_unit_mode = bool(enabled)
        if reference_width is not None:
            self.document.reference_width = clamp_reference_width(reference_width)
        self._changed(persisted=False)

    def editor_scrolled(self) -> float | None:
        """The editor surface scrolled natively."""
        return self.scroll.local_scroll()

    def selected_properties(self) -> PropertySet:
        return self.document.styles.get(self.document.selected_element)

    def _changed(self, persisted: bool) -> None:
        self.send_state()
        self._notify_change()
        if persisted and self.current_project_id is not None:
            self.autosaver.touch()

    def _notify_change(self) -> None:
        if self._on_change is not None:
            self._on_change(self.document)

    def _notify_select(self) -> None:
        if self._on_select is not None:
            self._on_select(self.document.selected_element, self.selected_properties())

    def _notify(self, level: str, message: str) -> None:
        if self._on_notice is not None:
            self._on_notice(Notice(level, message))

    # -- Projects ------------------------------------------------------------

    def _snapshot(self, name: str | None = None) -> Project:
        return Project(
            id=self.current_project_id,
            name=name or self.project_name,
            markdown=self.document.markdown,
            styles=self.document.styles.to_dict(),
        )

    async def _autosave(self) -> None:
        if self.current_project_id is None:
            return
        await self.store.save(self._snapshot())
        logger.debug("host: autosaved project %d", self.current_project_id)

    def _save_failed(self, error: Exception) -> None:
        logger.error("host: autosave failed: %s", error, exc_info=error)
        self._notify("error", "Autosave failed.")

    async def save_project(self, name: str | None = None) -> Project | None:
        """Explicit save. Creates the project on first save."""
        self.autosaver.cancel()
        try:
            project = await self.autosaver.run_exclusive(lambda: self.store.save(self._snapshot(name)))
        except Exception:
            logger.exception("host: save failed")
            self._notify("error", "Failed to save project.")
            return None
        self.current_project_id = project.id
        self.project_name = project.name
        self._notify_change()
        self._notify("success", f"Project '{project.name}' saved.")
        return project

    async def open_project(self, project_id: int) -> Project | None:
        try:
            project = await self.store.get(project_id)
        except Exception:
            logger.exception("host: load of project %s failed", project_id)
            self._notify("error", "Failed to load project.")
            return None
        if project is None:
            self._notify("error", "Project not found.")
            return None

        try:
            styles = StyleMap(project.styles)
        except (UnknownElementKey, TypeError):
            logger.exception("host: project %s has an invalid style map", project_id)
            self._notify("error", "Failed to load project.")
            return None

        self.autosaver.cancel()
        self.current_project_id = project.id
        self.project_name = project.name
        self.document.styles = styles
        self.document.markdown = project.markdown
        self._changed(persisted=False)
        self._notify_select()
        self._notify("info", f"Opened '{project.name}'.")
        return project

    def new_project(self) -> None:
        """Start a fresh, unsaved document."""
        self.autosaver.cancel()
        self.current_project_id = None
        self.project_name = UNTITLED_PROJECT
        self.document.markdown = ""
        self.document.styles = StyleMap.default()
        self._changed(persisted=False)
        self._notify_select()

    async def delete_project(self, project_id: int) -> bool:
        try:
            deleted = await self.autosaver.run_exclusive(lambda: self.store.delete(project_id))
        except Exception:
            logger.exception("host: delete of project %s failed", project_id)
            self._notify("error", "Failed to delete project.")
            return False
        if not deleted:
            self._notify("error", "Project not found.")
            return False
        if project_id == self.current_project_id:
            self.autosaver.cancel()
            self.current_project_id = None
            self._notify_change()
        self._notify("info", "Project deleted.")
        return True

    async def list_projects(self) -> list[Project]:
        try:
            return await self.store.list()
        except Exception:
            logger.exception("host: listing projects failed")
            self._notify("error", "Failed to load projects.")
            return []

    async def close(self) -> None:
        """Write out a pending autosave and stop timers. The channel is the caller's."""
        await self.autosaver.flush()
        await self.autosaver.wait_idle()
        self.scroll.close()
        self.detach_preview()
